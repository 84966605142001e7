"""
Supplier Dashboard — FastAPI backend.

JSON API over supplier identity resolution and consolidation, consumed by
the supplier sidebar / admin pages.

Endpoints
---------
  GET    /api/health                          → liveness probe + database counts
  GET    /api/suppliers                       → overview (supports ?search= and ?company_id=)
  GET    /api/suppliers/duplicates            → identity keys flagged as possible duplicates
  GET    /api/suppliers/merge-candidates      → ranked merge targets for ?source_name=
  POST   /api/suppliers                       → create a supplier profile
  PATCH  /api/suppliers/{supplier_id}         → edit a supplier profile
  POST   /api/suppliers/promote               → create a profile for an inferred supplier
  DELETE /api/suppliers/{supplier_id}         → suspend (data attached) or delete
  POST   /api/merges                          → merge a supplier into a profile
  GET    /api/merges/{intent_id}              → merge intent state
  POST   /api/merges/{intent_id}/resume       → continue a partial merge
"""
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from config import Config
from consolidation.database import Database
from consolidation.duplicate_detector import detect_duplicates
from consolidation.errors import (
    ConflictError,
    NotFoundError,
    PartialFailureError,
    SupplierError,
    ValidationError,
)
from consolidation.merger import SupplierMerger
from consolidation.supplier_service import SupplierService
from models.result import MergeIntent

from dashboard.models import MergeRequest, SupplierCreate, SupplierPromote, SupplierUpdate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config / database (opened lazily on first request)
# ---------------------------------------------------------------------------
_config: Optional[Config] = None
_db: Optional[Database] = None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_db() -> Database:
    global _db
    if _db is None:
        config = get_config()
        config.ensure_output_dir()
        _db = Database(config.db_path)
    return _db


def get_service() -> SupplierService:
    return SupplierService(get_db(), get_config())


def _company(company_id: Optional[str]) -> Optional[str]:
    return company_id or get_config().company_id


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Supplier Dashboard", docs_url=None, redoc_url=None)


@app.exception_handler(SupplierError)
async def supplier_error_handler(request: Request, exc: SupplierError):
    if isinstance(exc, ValidationError):
        return JSONResponse(status_code=422, content={"detail": exc.message, "errors": exc.errors})
    if isinstance(exc, PartialFailureError):
        return JSONResponse(
            status_code=207,
            content={
                "detail": exc.message,
                "intent_id": exc.intent_id,
                "migrated": exc.migrated,
                "failed": exc.failed,
            },
        )
    if isinstance(exc, NotFoundError):
        return JSONResponse(status_code=404, content={"detail": exc.message})
    if isinstance(exc, ConflictError):
        return JSONResponse(status_code=409, content={"detail": exc.message})
    return JSONResponse(status_code=400, content={"detail": exc.message})


# ── Routes ───────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    config = get_config()
    return {
        "status": "ok",
        "db_path": str(config.db_path),
        **get_db().get_stats(),
    }


@app.get("/api/suppliers")
def list_suppliers(
    search: Optional[str] = Query(default=None),
    company_id: Optional[str] = Query(default=None),
):
    return get_service().overview(_company(company_id), search or None)


@app.get("/api/suppliers/duplicates")
def list_duplicates(company_id: Optional[str] = Query(default=None)):
    service = get_service()
    identities = service.load_identities(_company(company_id))
    return sorted(detect_duplicates(identities, service.config.duplicate_similarity_threshold))


@app.get("/api/suppliers/merge-candidates")
def merge_candidates(
    source_name: str = Query(...),
    source_supplier_id: Optional[str] = Query(default=None),
    company_id: Optional[str] = Query(default=None),
):
    service = get_service()
    source = service.find_identity(
        name=source_name, supplier_id=source_supplier_id, company_id=_company(company_id),
    )
    return service.merge_candidates(source, _company(company_id))


@app.post("/api/suppliers", status_code=201)
def create_supplier(body: SupplierCreate, company_id: Optional[str] = Query(default=None)):
    return get_service().create_supplier(body.model_dump(), company_id=_company(company_id), actor="dashboard")


@app.patch("/api/suppliers/{supplier_id}")
def update_supplier(supplier_id: str, body: SupplierUpdate):
    return get_service().update_supplier(
        supplier_id, body.model_dump(exclude_unset=True), actor="dashboard",
    )


@app.post("/api/suppliers/promote", status_code=201)
def promote_supplier(body: SupplierPromote, company_id: Optional[str] = Query(default=None)):
    service = get_service()
    identity = service.find_identity(name=body.name, company_id=_company(company_id))
    data = body.model_dump(exclude={"name"})
    return service.promote_inferred(identity, data, company_id=_company(company_id), actor="dashboard")


@app.delete("/api/suppliers/{supplier_id}")
def retire_supplier(supplier_id: str, company_id: Optional[str] = Query(default=None)):
    service = get_service()
    identity = service.find_identity(supplier_id=supplier_id, company_id=_company(company_id))
    outcome = service.retire_supplier(identity, actor="dashboard")
    return {"supplier_id": supplier_id, "outcome": outcome}


@app.post("/api/merges")
def create_merge(body: MergeRequest, company_id: Optional[str] = Query(default=None)):
    service = get_service()
    source = service.find_identity(
        name=body.source_name,
        supplier_id=body.source_supplier_id,
        company_id=_company(company_id),
    )
    return SupplierMerger(get_db()).merge(source, body.target_supplier_id, actor="dashboard")


@app.get("/api/merges/{intent_id}")
def get_merge(intent_id: str):
    row = get_db().get_merge_intent(intent_id)
    if not row:
        raise HTTPException(404, f"Merge not found: {intent_id}")
    return MergeIntent.model_validate(row)


@app.post("/api/merges/{intent_id}/resume")
def resume_merge(intent_id: str):
    return SupplierMerger(get_db()).resume(intent_id, actor="dashboard")
