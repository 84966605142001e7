"""
Supplier dashboard API (FastAPI).
"""
