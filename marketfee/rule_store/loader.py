from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate as schema_validate

from ..config import Settings, get_settings
from ..errors import CatalogError
from ..logging_config import get_logger
from .catalog import RuleCatalog

logger = get_logger(__name__)

RULES_DIR = Path(__file__).resolve().parents[1] / "rules"
CATALOG_SCHEMA_PATH = RULES_DIR / "schemas" / "catalog.schema.json"
DEFAULT_CATALOG_PATH = RULES_DIR / "catalogs" / "default.yaml"


def _load_schema() -> Dict[str, Any]:
    with CATALOG_SCHEMA_PATH.open("r", encoding="utf-8") as f:
        return json.load(f)


def catalog_from_document(raw: Dict[str, Any]) -> RuleCatalog:
    """Schema check (shape) then structural validation of every rule."""
    try:
        schema_validate(instance=raw, schema=_load_schema())
    except SchemaValidationError as e:
        path = "/".join(str(p) for p in e.absolute_path)
        raise CatalogError(f"catalog schema violation at '{path}': {e.message}") from e
    return RuleCatalog.from_dict(raw)


def _timestamps_to_iso(value: Any) -> Any:
    # safe_load turns unquoted ISO timestamps into date/datetime objects
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _timestamps_to_iso(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_timestamps_to_iso(v) for v in value]
    return value


def load_catalog_file(path: str | os.PathLike) -> RuleCatalog:
    catalog_path = Path(path)
    with catalog_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise CatalogError(f"catalog root must be a mapping: {catalog_path}")
    return catalog_from_document(_timestamps_to_iso(raw))


@dataclass(frozen=True)
class LoadedCatalog:
    catalog: RuleCatalog
    mtime_ns: int


class CatalogLoader:
    """
    Hot reload of the rule catalog from disk (thread-safe).

    - Keeps the last known-good snapshot active
    - On each get(): checks mtime_ns; if changed -> reload + validate
    - If reload fails: logs the error and keeps serving the old snapshot
    """

    def __init__(self, yaml_path: str | os.PathLike):
        self.yaml_path = str(yaml_path)
        self._lock = threading.Lock()
        self._loaded: Optional[LoadedCatalog] = None

        # eager initial load (fail-fast if missing or invalid)
        self._loaded = self._load_from_disk_or_raise()

    def get(self) -> LoadedCatalog:
        """
        Returns the current active (last-known-good) catalog snapshot.
        Performs a cheap mtime check and reloads if needed.
        """
        try:
            current_mtime = self._stat_mtime_ns()
        except FileNotFoundError:
            if self._loaded is None:
                raise
            logger.warning("catalog file missing: {} (keeping previous active)", self.yaml_path)
            return self._loaded

        loaded = self._loaded
        if loaded is not None and current_mtime == loaded.mtime_ns:
            return loaded

        with self._lock:
            loaded = self._loaded
            # double-check after acquiring lock
            try:
                current_mtime = self._stat_mtime_ns()
            except FileNotFoundError:
                if loaded is None:
                    raise
                logger.warning(
                    "catalog file missing after lock: {} (keeping previous active)", self.yaml_path
                )
                return loaded

            if loaded is not None and current_mtime == loaded.mtime_ns:
                return loaded

            try:
                new_loaded = self._load_from_disk_or_raise(expected_mtime_ns=current_mtime)
            except (CatalogError, yaml.YAMLError, OSError) as e:
                if loaded is None:
                    raise
                logger.error("catalog reload failed, keeping previous active: {!r}", e)
                return loaded

            self._loaded = new_loaded
            logger.info(
                "reloaded catalog OK (version={}, rules={}, mtime_ns={})",
                new_loaded.catalog.version,
                len(new_loaded.catalog),
                new_loaded.mtime_ns,
            )
            return new_loaded

    @property
    def catalog(self) -> RuleCatalog:
        return self.get().catalog

    # -----------------
    # internals
    # -----------------

    def _stat_mtime_ns(self) -> int:
        return os.stat(self.yaml_path).st_mtime_ns

    def _load_from_disk_or_raise(self, expected_mtime_ns: Optional[int] = None) -> LoadedCatalog:
        if expected_mtime_ns is None:
            expected_mtime_ns = self._stat_mtime_ns()
        catalog = load_catalog_file(self.yaml_path)
        return LoadedCatalog(catalog=catalog, mtime_ns=expected_mtime_ns)


def default_loader(settings: Optional[Settings] = None) -> CatalogLoader:
    """Loader for `settings.catalog_path`, or the packaged sample catalog."""
    settings = settings or get_settings()
    path = settings.catalog_path or DEFAULT_CATALOG_PATH
    loader = CatalogLoader(path)

    currency = loader.catalog.currency
    if currency != settings.currency:
        raise CatalogError(
            f"catalog currency {currency} does not match configured currency {settings.currency}",
            meta={"path": str(path)},
        )
    logger.info("catalog loaded from {} (version={})", path, loader.catalog.version)
    return loader
