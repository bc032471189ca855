"""Extraction of plan cards from quote result HTML and purchase URL construction."""
from __future__ import annotations

import html as html_lib
import logging
import re
from typing import List, Optional, Pattern, Set
from urllib.parse import parse_qs, quote, urlparse

from bs4 import BeautifulSoup, Tag

from .errors import MalformedInputError
from .models import QuotePlan

LOGGER = logging.getLogger(__name__)

PLAN_ID_PATTERN = re.compile(r"^[A-Z]+-\d+$")
PLAN_FORM_NAME = "select-plan"
CARD_CLASS = "item-block"
NAME_HEADING_CLASS = "font-weight-bold"
# Paragraph classes that carry the price, most specific first.
PRICE_CLASS_CANDIDATES = (
    ("text-color-light", "opacity-7", "mb-4"),
    ("opacity-7", "mb-4"),
    ("opacity-7",),
)
CURRENCY_AMOUNT_PATTERN = re.compile(r"USD\s+[\d,]+\.\d{2}")
CURRENCY_LABEL = "USD"
MAX_CARD_DEPTH = 6
MAX_FALLBACK_PLANS = 10
FALLBACK_WINDOW = 5000

_FALLBACK_CARD_PATTERNS = (
    re.compile(
        r'<div[^>]*class="[^"]*item-block[^"]*"[^>]*>(?P<body>[\s\S]{0,%d}?)</div>\s*</label>\s*</div>'
        % FALLBACK_WINDOW
    ),
    re.compile(r'<label[^>]*for="(?P<plan_id>[A-Z]+-\d+)"[^>]*>(?P<body>[\s\S]{0,%d}?)</label>' % FALLBACK_WINDOW),
)
_EMBEDDED_PLAN_ID = re.compile(r'id="([A-Z]+-\d+)"')
_HEADING_PATTERN = re.compile(r"<h3[^>]*>([\s\S]*?)</h3>", re.IGNORECASE)
_BREAK_PATTERN = re.compile(r"<br\s*/?>", re.IGNORECASE)
_SMALL_PATTERN = re.compile(r"<small[^>]*>([\s\S]*?)</small>", re.IGNORECASE)
_TAG_PATTERN = re.compile(r"<[^>]+>")

QUOTE_PREFIX = "D"
PURCHASE_PREFIX = "M"
_TIER_ID_PATTERN = re.compile(r"^(?P<prefix>[A-Za-z]+)-(?P<tier>[A-Za-z0-9]+)$")

_SESSION_PATH_PATTERN = re.compile(r"/(?:quotation|quotations|cotizacion|purchase)/(?P<session>[A-Za-z0-9_-]+)")
_SESSION_QUERY_KEYS = ("search_id", "quotation", "session")


def clean_rich_text(fragment: str) -> str:
    """Turn an HTML fragment into text, keeping ``<br>``/``<small>`` as line breaks."""

    text = _BREAK_PATTERN.sub("\n", fragment)
    text = _SMALL_PATTERN.sub(lambda match: "\n" + match.group(1), text)
    text = html_lib.unescape(_TAG_PATTERN.sub("", text))
    lines = (" ".join(line.split()) for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def normalise_price(text: str) -> str:
    price = " ".join(text.split())
    if price and CURRENCY_LABEL not in price.upper():
        price = f"{CURRENCY_LABEL} {price}"
    return price


def _single_plan_form(tag: Tag) -> bool:
    return len(tag.find_all("form", attrs={"name": PLAN_FORM_NAME})) <= 1


def _plan_card(form: Tag, soup: BeautifulSoup) -> Optional[Tag]:
    container = form.find_parent(class_=CARD_CLASS)
    if container is not None and container.find("h3") is not None:
        return container

    label = soup.find("label", attrs={"for": form.get("id")})
    if label is not None and label.find("h3") is not None:
        return label

    for depth, ancestor in enumerate(form.parents):
        if depth >= MAX_CARD_DEPTH or ancestor.name in {"body", "html", "[document]"}:
            break
        if not _single_plan_form(ancestor):
            break
        if ancestor.find("h3") is not None:
            return ancestor
    return None


def _card_name(card: Tag) -> Optional[str]:
    heading = card.find("h3", class_=NAME_HEADING_CLASS) or card.find("h3")
    if heading is None:
        return None
    return clean_rich_text(heading.decode_contents()) or None


def _card_price(card: Tag) -> Optional[str]:
    paragraphs = card.find_all("p")
    for required in PRICE_CLASS_CANDIDATES:
        for paragraph in paragraphs:
            classes = set(paragraph.get("class") or [])
            if set(required) <= classes:
                text = clean_rich_text(paragraph.decode_contents())
                if text:
                    return normalise_price(text)
    match = CURRENCY_AMOUNT_PATTERN.search(card.get_text(" "))
    return normalise_price(match.group(0)) if match else None


def _plans_from_dom(soup: BeautifulSoup) -> List[QuotePlan]:
    plans: List[QuotePlan] = []
    seen: Set[str] = set()
    for form in soup.find_all("form", attrs={"name": PLAN_FORM_NAME, "id": PLAN_ID_PATTERN}):
        plan_id = form.get("id")
        if plan_id in seen:
            continue
        try:
            card = _plan_card(form, soup)
            if card is None:
                LOGGER.warning("No card found around plan form %s", plan_id)
                continue
            name = _card_name(card)
            price = _card_price(card)
        except Exception as exc:
            LOGGER.warning("Could not parse plan %s: %s", plan_id, exc)
            continue
        if not name or not price:
            LOGGER.warning("Plan %s is missing a name or a price", plan_id)
            continue
        seen.add(plan_id)
        plans.append(QuotePlan(plan_id=plan_id, name=name, price=price))
    return plans


def _plans_from_pattern(pattern: Pattern[str], html: str) -> List[QuotePlan]:
    plans: List[QuotePlan] = []
    for match in pattern.finditer(html):
        if len(plans) >= MAX_FALLBACK_PLANS:
            break
        body = match.group("body")
        heading = _HEADING_PATTERN.search(body)
        price = CURRENCY_AMOUNT_PATTERN.search(body)
        if heading is None or price is None:
            continue
        name = clean_rich_text(heading.group(1))
        if not name:
            continue
        plan_id = match.groupdict().get("plan_id")
        if not plan_id:
            embedded = _EMBEDDED_PLAN_ID.search(body)
            plan_id = embedded.group(1) if embedded else f"plan-{len(plans) + 1}"
        plans.append(QuotePlan(plan_id=plan_id, name=name, price=normalise_price(price.group(0))))
    return plans


def _plans_from_patterns(html: str) -> List[QuotePlan]:
    # Both patterns can match the same card, so the second only runs when the first finds nothing.
    for pattern in _FALLBACK_CARD_PATTERNS:
        plans = _plans_from_pattern(pattern, html)
        if plans:
            return plans
    return []


def parse_plans(html: Optional[str]) -> List[QuotePlan]:
    """Extract ``(planId, name, price)`` triples from quote result HTML.

    An empty list means "no plans" and is a valid outcome; this function does
    not raise.
    """

    if not html:
        return []
    try:
        plans = _plans_from_dom(BeautifulSoup(html, "html.parser"))
        if not plans:
            LOGGER.info("No plan forms found, trying alternative card patterns")
            plans = _plans_from_patterns(html)
    except Exception:
        LOGGER.exception("Plan parsing failed")
        return []
    LOGGER.info("Found %d plans", len(plans))
    return plans


def _split_tier_id(plan_id: str) -> Optional[re.Match]:
    return _TIER_ID_PATTERN.match((plan_id or "").strip())


def map_to_purchase_id(plan_id: str) -> str:
    """Map a quote page plan ID (``D-50``) to its purchase page ID (``M-50``)."""

    match = _split_tier_id(plan_id)
    if match is None or match.group("prefix").upper() not in {QUOTE_PREFIX, PURCHASE_PREFIX}:
        raise MalformedInputError(f"Unrecognised plan identifier {plan_id!r}")
    return f"{PURCHASE_PREFIX}-{match.group('tier')}"


def map_to_quote_id(plan_id: str) -> str:
    """Inverse of :func:`map_to_purchase_id`."""

    match = _split_tier_id(plan_id)
    if match is None or match.group("prefix").upper() not in {QUOTE_PREFIX, PURCHASE_PREFIX}:
        raise MalformedInputError(f"Unrecognised plan identifier {plan_id!r}")
    return f"{QUOTE_PREFIX}-{match.group('tier')}"


def extract_quote_session_id(quote_url: str) -> str:
    """Pull the quote session identifier out of a results URL."""

    parsed = urlparse(quote_url or "")
    query = parse_qs(parsed.query)
    for key in _SESSION_QUERY_KEYS:
        values = [value for value in query.get(key, []) if value.strip()]
        if values:
            return values[0].strip()
    match = _SESSION_PATH_PATTERN.search(parsed.path)
    if match:
        return match.group("session")
    raise MalformedInputError(f"No quote session found in URL {quote_url!r}")


def build_purchase_url(template: str, base_url: str, quote_url: str, plan_id: str) -> str:
    """Direct purchase page URL, skipping the "buy" click on the results page."""

    session = extract_quote_session_id(quote_url)
    return template.format(
        base=base_url.rstrip("/"),
        session=quote(session, safe=""),
        plan=quote(map_to_purchase_id(plan_id), safe=""),
    )
