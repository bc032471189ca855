"""High level operations returning ``{success, ...|error}`` envelopes.

None of the functions here raise; failures are reported through the result
objects so the HTTP and CLI layers only have to serialise them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .api_client import DirectQuoteClient
from .catalog import build_catalog
from .config import QuoteConfig, Settings, create_config_from_form
from .errors import CatalogUnavailableError, MalformedInputError, QuoteAgentError
from .extractor import extract_purchase_form_data
from .models import Catalog, PurchaseFormData, QuoteData
from .plans import build_purchase_url, parse_plans
from .processor import prepare_plans, summarise_plans
from .reconstruction import PurchaseFormState, apply_user_input, group_fields
from .resolver import FallbackIds, ResolvedQuote, resolve_quote
from .scraper import BrowserRunner
from .sources.mercantil import SiteConfig, open_purchase_page, submit_quote

LOGGER = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "malformed-input": 400,
    "resolution": 400,
    "catalog-unavailable": 404,
    "remote-interaction": 502,
}


@dataclass
class OperationResult:
    """Common failure fields of every operation result."""

    success: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None
    screenshot_path: Optional[str] = None

    @property
    def status_code(self) -> int:
        if self.success:
            return 200
        return STATUS_BY_KIND.get(self.error_kind or "", 500)

    def _envelope(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.success:
            return {"success": True, **payload}
        envelope: Dict[str, Any] = {"success": False, "error": self.error, "errorKind": self.error_kind}
        if self.screenshot_path:
            envelope["screenshotPath"] = self.screenshot_path
        return envelope

    def fail(self, exc: Exception) -> "OperationResult":
        self.success = False
        if isinstance(exc, QuoteAgentError):
            self.error = str(exc)
            self.error_kind = exc.kind
            self.screenshot_path = getattr(exc, "screenshot_path", None)
        else:
            self.error = f"Unexpected error: {exc}"
            self.error_kind = "error"
        return self


@dataclass
class CatalogBuildResult(OperationResult):
    catalog: Optional[Catalog] = None

    def to_dict(self) -> Dict[str, Any]:
        return self._envelope({"catalog": self.catalog.to_dict() if self.catalog else None})


@dataclass
class QuoteResult(OperationResult):
    """Result returned by :func:`run_quote`."""

    config: Optional[QuoteConfig] = None
    resolved: Optional[ResolvedQuote] = None
    quote_data: Optional[QuoteData] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"quoteData": self.quote_data.to_dict() if self.quote_data else None}
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        return self._envelope(payload)


@dataclass
class PurchaseFormResult(OperationResult):
    """Result returned by :func:`run_purchase_form`."""

    purchase_url: Optional[str] = None
    purchase_form_data: Optional[PurchaseFormData] = None
    snapshot_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.purchase_form_data
        return self._envelope(
            {
                "purchaseUrl": self.purchase_url,
                "purchaseFormData": data.to_dict() if data else None,
                "formGroups": [group_fields(form.fields).to_dict() for form in data.forms] if data else [],
            }
        )


@dataclass
class SubmissionResult(OperationResult):
    submission: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return self._envelope({"submission": self.submission})


def _record_failure(result: OperationResult, operation: str, exc: Exception) -> None:
    if isinstance(exc, QuoteAgentError):
        LOGGER.error("%s failed (%s): %s", operation, exc.kind, exc)
    else:
        LOGGER.exception("%s failed unexpectedly", operation)
    result.fail(exc)


def build_catalog_snapshot(settings: Settings, runner: Optional[BrowserRunner] = None) -> CatalogBuildResult:
    """Scrape a fresh catalog in its own browser session."""

    result = CatalogBuildResult()
    try:
        runner = runner or BrowserRunner(settings)
        result.catalog = runner.run(build_catalog, SiteConfig.from_settings(settings))
        result.success = True
    except Exception as exc:
        _record_failure(result, "Catalog build", exc)
    return result


def _fetch_quote_html(
    resolved: ResolvedQuote,
    settings: Settings,
    runner: Optional[BrowserRunner],
    client: Optional[DirectQuoteClient],
) -> Tuple[str, str]:
    if settings.transport == "direct":
        return (client or DirectQuoteClient(settings)).fetch_quote(resolved)
    runner = runner or BrowserRunner(settings)
    return runner.run(submit_quote, resolved, SiteConfig.from_settings(settings))


def run_quote(
    form_data: Mapping[str, Any],
    catalog: Optional[Catalog],
    settings: Settings,
    runner: Optional[BrowserRunner] = None,
    client: Optional[DirectQuoteClient] = None,
    today: Optional[date] = None,
) -> QuoteResult:
    """Validate, resolve and submit a quote request, then parse its plans."""

    result = QuoteResult()
    try:
        config = create_config_from_form(form_data).validate(today=today or date.today())
        result.config = config
        if catalog is None:
            raise CatalogUnavailableError("No catalog available; refresh the catalog first")
        resolved = resolve_quote(
            config,
            catalog,
            default_agent=settings.default_agent,
            fallbacks=FallbackIds(
                origin=settings.fallback_origin_id,
                destination=settings.fallback_destination_id,
            ),
        )
        result.resolved = resolved
        result.warnings.extend(resolved.warnings)
        url, html = _fetch_quote_html(resolved, settings, runner, client)
        plans = prepare_plans(parse_plans(html))
        if not plans:
            LOGGER.warning("Quote returned no plans for %s", url)
            result.warnings.append("The site returned no plans for this trip")
        result.quote_data = QuoteData(
            url=url,
            plans=plans,
            content_length=len(html or ""),
            summary=summarise_plans(plans),
        )
        result.success = True
    except Exception as exc:
        _record_failure(result, "Quote", exc)
    return result


def save_purchase_snapshot(data: PurchaseFormData, directory: Path) -> Path:
    """Store the extracted forms with label analysis and the raw HTML for offline review."""

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    json_path = directory / f"purchase-form-raw-{stamp}.json"
    html_path = directory / f"purchase-form-html-{stamp}.html"
    payload = {
        "timestamp": datetime.now().isoformat(),
        "url": data.url,
        "forms": [form.to_dict(include_analysis=True) for form in data.forms],
    }
    json_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    html_path.write_text(data.raw_html, encoding="utf-8")
    LOGGER.info("Purchase form snapshot saved to %s", json_path)
    return json_path


def run_purchase_form(
    plan_id: Optional[str],
    quote_url: Optional[str],
    settings: Settings,
    runner: Optional[BrowserRunner] = None,
) -> PurchaseFormResult:
    """Open the purchase page of ``plan_id`` directly and extract its forms."""

    result = PurchaseFormResult()
    try:
        if not plan_id or not quote_url:
            raise MalformedInputError("planId and quoteUrl are required")
        url = build_purchase_url(settings.purchase_url_template, settings.base_url, quote_url, plan_id)
        result.purchase_url = url
        runner = runner or BrowserRunner(settings)
        final_url, html = runner.run(open_purchase_page, url, SiteConfig.from_settings(settings))
        data = extract_purchase_form_data(final_url, html)
        if data.error:
            LOGGER.warning("%s: %s", data.error, final_url)
        if settings.save_snapshots:
            try:
                result.snapshot_path = str(save_purchase_snapshot(data, settings.data_dir))
            except OSError as exc:
                LOGGER.warning("Could not save purchase form snapshot: %s", exc)
        result.purchase_form_data = data
        result.success = True
    except Exception as exc:
        _record_failure(result, "Purchase form", exc)
    return result


def build_submission(payload: Mapping[str, Any]) -> SubmissionResult:
    """Rebuild a purchase form, apply user values and riders, and return the post payload."""

    result = SubmissionResult()
    try:
        raw_data = payload.get("purchaseFormData")
        if not isinstance(raw_data, Mapping):
            raise MalformedInputError("purchaseFormData is required")
        data = PurchaseFormData.from_dict(raw_data)
        try:
            form_index = int(payload.get("formIndex", 0))
        except (TypeError, ValueError):
            raise MalformedInputError(f"Invalid formIndex {payload.get('formIndex')!r}") from None
        form = next((item for item in data.forms if item.index == form_index), None)
        if form is None:
            raise MalformedInputError(f"Purchase page has no form with index {form_index}")

        values = payload.get("values") or {}
        riders: Optional[List[str]] = payload.get("riders")
        if not isinstance(values, Mapping):
            raise MalformedInputError("values must be an object of field name to value")
        if riders is not None and not isinstance(riders, list):
            raise MalformedInputError("riders must be a list of field names")

        state = apply_user_input(PurchaseFormState(form, page_url=data.url), values, riders)
        result.submission = state.to_submission_dict()
        result.success = True
    except Exception as exc:
        _record_failure(result, "Submission", exc)
    return result
