"""
Central configuration for supplier identity resolution and consolidation.

All paths and matching thresholds are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/supplier_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"
DEFAULT_DATA_DIR   = PROJECT_ROOT / "data"
DEFAULT_DB_PATH    = DEFAULT_OUTPUT_DIR / "suppliers.db"

# Environment variables that pin a tunable; the JSON overlay never overrides these
_ENV_KEYS = {
    "duplicate_similarity_threshold": "DUPLICATE_SIMILARITY_THRESHOLD",
    "merge_suggestion_threshold":     "MERGE_SUGGESTION_THRESHOLD",
    "merge_suggestion_limit":         "MERGE_SUGGESTION_LIMIT",
}


@dataclass
class Config:
    # --- Storage ---
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )
    data_dir: Path = field(
        default_factory=lambda: Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    )
    config_dir: Path = field(
        default_factory=lambda: Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
    )

    # --- Organisation scope ---
    # None = every record in the database (single-tenant installs)
    company_id: Optional[str] = field(
        default_factory=lambda: os.getenv("COMPANY_ID") or None
    )

    # --- Duplicate detection ---
    duplicate_similarity_threshold: float = field(
        default_factory=lambda: float(os.getenv("DUPLICATE_SIMILARITY_THRESHOLD", "0.80"))
    )
    # Pairs without two VAT numbers are flagged when the bigram Dice score
    # is strictly greater than this value.

    # --- Merge target suggestions ---
    merge_suggestion_threshold: int = field(
        default_factory=lambda: int(os.getenv("MERGE_SUGGESTION_THRESHOLD", "60"))
    )   # Minimum rapidfuzz score (0-100)
    merge_suggestion_limit: int = field(
        default_factory=lambda: int(os.getenv("MERGE_SUGGESTION_LIMIT", "5"))
    )

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from supplier_settings.json if present."""
        settings_file = self.config_dir / "supplier_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "duplicate_similarity_threshold": float,
            "merge_suggestion_threshold":     int,
            "merge_suggestion_limit":         int,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key not in _type_map or not hasattr(self, key):
                    continue
                if os.getenv(_ENV_KEYS[key]) is not None:
                    continue
                setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load supplier_settings.json: %s", exc)

    def ensure_output_dir(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
