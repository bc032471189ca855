"""Extraction of forms and fields from purchase page HTML."""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
import logging
from typing import Dict, List, Optional, Union

from bs4 import BeautifulSoup, Tag

from .field_paths import FieldPath
from .labels import SOURCE_SKIPPED, infer_label
from .models import PurchaseField, PurchaseForm, PurchaseFormData

LOGGER = logging.getLogger(__name__)

FIELD_TAGS = ["input", "select", "textarea"]
RIDER_PREMIUM_ATTRIBUTE = "data-premium"
NON_DATA_INPUT_TYPES = frozenset({"submit", "button", "reset", "image"})

# Bracket segments that mark bookkeeping values (identifiers, factors, taxes).
INTERNAL_SEGMENTS = frozenset(
    {
        "id",
        "uuid",
        "factor_wlc",
        "factor_main",
        "calculate_premium",
        "free_passenger",
        "data_taxes",
    }
)
INTERNAL_ROOT = "website_quotation"
# Search parameters echoed back by the purchase form.
INTERNAL_ROOT_FIELDS = frozenset(
    {
        "id",
        "search_id",
        "date_from",
        "date_to",
        "days",
        "months",
        "passengers",
        "general_agent",
        "product",
        "origin",
        "destination",
    }
)


def _input_type(element: Tag) -> Optional[str]:
    value = element.get("type")
    return value.lower() if value else None


def _is_riders_checkbox(element: Tag) -> bool:
    return _input_type(element) == "checkbox" and FieldPath.parse(element.get("name")).has("riders")


def has_internal_name(path: FieldPath) -> bool:
    # riders with a readable premium are exempted by the callers
    if any(segment in INTERNAL_SEGMENTS for segment in path.segments) or path.has("riders"):
        return True
    return path.root == INTERNAL_ROOT and len(path.segments) == 1 and path.segments[0] in INTERNAL_ROOT_FIELDS


def is_internal_field(field: PurchaseField) -> bool:
    """Fields kept for resubmission but never labelled or shown by default.

    A ``[riders]`` checkbox only counts as an optional benefit when its
    ``data-premium`` parses; otherwise it is kept as an internal value.
    """

    if field.is_rider:
        return False
    input_type = (field.type or "").lower()
    if input_type == "hidden" or input_type in NON_DATA_INPUT_TYPES:
        return True
    return has_internal_name(FieldPath.parse(field.name))


def _rider_premium(element: Tag) -> Optional[Decimal]:
    raw = (element.get(RIDER_PREMIUM_ATTRIBUTE) or "").strip().replace(",", "")
    if not raw:
        return None
    try:
        return Decimal(raw)
    except InvalidOperation:
        LOGGER.warning("Rider %s has an unreadable premium %r", element.get("name"), raw)
        return None


def _select_options(element: Tag) -> List[Dict[str, str]]:
    options = []
    for option in element.find_all("option"):
        value = option.get("value")
        text = option.get_text(strip=True)
        options.append({"value": value if value is not None else text, "text": text})
    return options


def _select_value(element: Tag) -> Optional[str]:
    options = element.find_all("option")
    chosen = next((option for option in options if option.has_attr("selected")), None)
    if chosen is None and options:
        chosen = options[0]
    if chosen is None:
        return None
    value = chosen.get("value")
    return value if value is not None else chosen.get_text(strip=True)


def _field_value(element: Tag) -> Optional[str]:
    if element.name == "select":
        return _select_value(element)
    if element.name == "textarea":
        text = element.string if element.string is not None else element.get_text()
        return text or None
    return element.get("value")


def _read_field(element: Tag, root: Tag) -> PurchaseField:
    is_select = element.name == "select"
    field = PurchaseField(
        tag=element.name,
        type=element.get("type") or None,
        name=element.get("name") or None,
        id=element.get("id") or None,
        placeholder=element.get("placeholder") or None,
        required=element.has_attr("required"),
        value=_field_value(element),
        options=_select_options(element) if is_select else None,
        rider_premium=_rider_premium(element) if _is_riders_checkbox(element) else None,
        checked=element.has_attr("checked"),
    )
    if is_internal_field(field):
        field.label_source = SOURCE_SKIPPED
        return field

    try:
        field.label, field.label_source = infer_label(element, root)
    except Exception as exc:
        LOGGER.warning("Label inference failed for %s: %s", field.name or field.id, exc)
    return field


def _read_form(index: int, form: Tag, root: Tag) -> PurchaseForm:
    fields: List[PurchaseField] = []
    for element in form.find_all(FIELD_TAGS):
        try:
            fields.append(_read_field(element, root))
        except Exception as exc:
            LOGGER.warning("Skipping unreadable field %s in form %d: %s", element.get("name"), index, exc)
    return PurchaseForm(
        index=index,
        id=form.get("id") or None,
        action=form.get("action") or None,
        method=(form.get("method") or "GET").upper(),
        fields=fields,
    )


def extract_forms(document: Union[str, BeautifulSoup]) -> List[PurchaseForm]:
    """Every ``<form>`` of ``document`` with its fields in document order."""

    soup = document if isinstance(document, BeautifulSoup) else BeautifulSoup(document or "", "html.parser")
    forms = [_read_form(index, form, soup) for index, form in enumerate(soup.find_all("form"))]
    LOGGER.info(
        "Extracted %d forms with %d fields",
        len(forms),
        sum(len(form.fields) for form in forms),
    )
    return forms


def extract_purchase_form_data(url: str, html: str) -> PurchaseFormData:
    forms = extract_forms(html)
    error = None if forms else "No forms found on purchase page"
    return PurchaseFormData(url=url, raw_html=html, forms=forms, error=error)
