"""Quote core package exposing the catalog, quote and purchase form workflows."""
from .config import QuoteConfig, Settings, TripType, create_config_from_form, load_settings
from .errors import (
    CatalogUnavailableError,
    MalformedInputError,
    QuoteAgentError,
    RemoteInteractionError,
    ResolutionError,
)
from .models import Catalog, CatalogOption, PurchaseField, PurchaseForm, PurchaseFormData, QuoteData, QuotePlan
from .workflow import (
    CatalogBuildResult,
    PurchaseFormResult,
    QuoteResult,
    SubmissionResult,
    build_catalog_snapshot,
    build_submission,
    run_purchase_form,
    run_quote,
)

__all__ = [
    "Catalog",
    "CatalogBuildResult",
    "CatalogOption",
    "CatalogUnavailableError",
    "MalformedInputError",
    "PurchaseField",
    "PurchaseForm",
    "PurchaseFormData",
    "PurchaseFormResult",
    "QuoteAgentError",
    "QuoteConfig",
    "QuoteData",
    "QuotePlan",
    "QuoteResult",
    "RemoteInteractionError",
    "ResolutionError",
    "Settings",
    "SubmissionResult",
    "TripType",
    "build_catalog_snapshot",
    "build_submission",
    "create_config_from_form",
    "load_settings",
    "run_purchase_form",
    "run_quote",
]
