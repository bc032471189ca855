"""Site specific Playwright stages."""
from .mercantil import (
    QuoteFormSelectors,
    QuoteResultSelectors,
    SiteConfig,
    open_purchase_page,
    open_quote_form,
    submit_quote,
)

__all__ = [
    "QuoteFormSelectors",
    "QuoteResultSelectors",
    "SiteConfig",
    "open_purchase_page",
    "open_quote_form",
    "submit_quote",
]
