from .catalog import RuleCatalog, RuleIndex  # noqa
from .loader import CatalogLoader, default_loader, load_catalog_file  # noqa
from .validation import ValidationError, ValidationResult, ensure_valid, validate  # noqa
