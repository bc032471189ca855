"""Grouping of purchase form fields and the client side premium engine.

The recomputed premium only mirrors the remote pricing for display; the remote
system recalculates it on submission.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import urljoin

from .errors import MalformedInputError
from .extractor import NON_DATA_INPUT_TYPES, has_internal_name, is_internal_field
from .field_paths import FieldPath
from .models import PurchaseField, PurchaseForm
from .resolver import normalise_text

LOGGER = logging.getLogger(__name__)

CURRENCY_PREFIX = "US$ "
CENTS = Decimal("0.01")
AUTO_FILLED_SEGMENTS = frozenset({"plan", "agent", "general_agent"})
_PREMIUM_TOKEN = re.compile(r"(?:^|_)(?:premium|prima)(?:_|$)")
_PREMIUM_LABEL_WORDS = ("prima", "premium")
_AMOUNT_PATTERN = re.compile(r"\d[\d,]*(?:\.\d+)?")
_UNCHECKED_WORDS = frozenset({"", "0", "false", "off", "no"})


@dataclass
class FieldGroups:
    """Displayable fields split the way the purchase page presents them."""

    passenger_groups: Dict[int, List[PurchaseField]] = field(default_factory=dict)
    contact_group: List[PurchaseField] = field(default_factory=list)
    benefits_group: List[PurchaseField] = field(default_factory=list)
    other_fields: List[PurchaseField] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "passengerGroups": {
                str(number): [item.to_dict() for item in fields]
                for number, fields in self.passenger_groups.items()
            },
            "contactGroup": [item.to_dict() for item in self.contact_group],
            "benefitsGroup": [item.to_dict() for item in self.benefits_group],
            "otherFields": [item.to_dict() for item in self.other_fields],
        }


def is_displayable(purchase_field: PurchaseField) -> bool:
    if purchase_field.is_rider:
        return True
    if is_internal_field(purchase_field):
        return False
    path = FieldPath.parse(purchase_field.name)
    if any(path.has(segment) for segment in AUTO_FILLED_SEGMENTS):
        return False
    return bool(purchase_field.label) or purchase_field.required


def group_fields(fields: Iterable[PurchaseField]) -> FieldGroups:
    """Route displayable fields to passenger, contact, benefit or other groups.

    ``[breakdowns][P]`` belongs to passenger ``P + 1``. Riders always go to the
    benefits group whatever their breakdown index.
    """

    groups = FieldGroups()
    passengers: Dict[int, List[PurchaseField]] = {}
    for purchase_field in fields:
        if not is_displayable(purchase_field):
            continue
        path = FieldPath.parse(purchase_field.name)
        if purchase_field.is_rider:
            groups.benefits_group.append(purchase_field)
        elif path.breakdown_index is not None:
            passengers.setdefault(path.breakdown_index + 1, []).append(purchase_field)
        elif path.has("contact"):
            groups.contact_group.append(purchase_field)
        else:
            groups.other_fields.append(purchase_field)
    groups.passenger_groups = {number: passengers[number] for number in sorted(passengers)}
    return groups


def parse_amount(text: Optional[str]) -> Optional[Decimal]:
    """``"US$ 1,234.50"`` -> ``Decimal("1234.50")``; ``None`` when unreadable."""

    match = _AMOUNT_PATTERN.search(text or "")
    if not match:
        return None
    try:
        return Decimal(match.group(0).replace(",", ""))
    except InvalidOperation:
        return None


def format_premium(amount: Decimal) -> str:
    return f"{CURRENCY_PREFIX}{amount.quantize(CENTS, rounding=ROUND_HALF_UP)}"


def is_premium_field(purchase_field: PurchaseField) -> bool:
    if purchase_field.is_rider or purchase_field.is_checkable:
        return False
    path = FieldPath.parse(purchase_field.name)
    if has_internal_name(path):
        return False
    if any(_PREMIUM_TOKEN.search(normalise_text(token)) for token in path.semantic_tokens()):
        return True
    label = normalise_text(purchase_field.label or "")
    return any(word in label for word in _PREMIUM_LABEL_WORDS)


class PurchaseFormState:
    """Tracked values of one purchase form and the rider premium total.

    A missing key means "omitted from the submission"; an unchecked checkbox
    is never represented by an empty string.
    """

    def __init__(self, form: PurchaseForm, page_url: Optional[str] = None) -> None:
        self.form = form
        self.page_url = page_url
        self._values: Dict[int, str] = {}
        for position, purchase_field in enumerate(form.fields):
            if not purchase_field.name or (purchase_field.type or "").lower() in NON_DATA_INPUT_TYPES:
                continue
            if purchase_field.is_checkable:
                if purchase_field.checked:
                    self._values[position] = purchase_field.on_value
            elif purchase_field.value is not None:
                self._values[position] = purchase_field.value
            elif purchase_field.tag != "select":
                self._values[position] = ""

        self.premium_position: Optional[int] = None
        self.base_premium: Optional[Decimal] = None
        for position, purchase_field in enumerate(form.fields):
            if is_premium_field(purchase_field):
                self.premium_position = position
                self.base_premium = parse_amount(purchase_field.value)
                break
        # the page total already includes riders that arrive checked
        if self.base_premium is not None:
            self.base_premium -= sum(
                (rider.rider_premium or Decimal("0") for rider in self.selected_riders()), Decimal("0")
            )
        if self.premium_position is None:
            LOGGER.info("No premium field found in form %s", form.index)
        else:
            LOGGER.info("Base premium %s read from %s", self.base_premium, form.fields[self.premium_position].name)

    @property
    def premium_field(self) -> Optional[PurchaseField]:
        if self.premium_position is None:
            return None
        return self.form.fields[self.premium_position]

    def _positions(self, name: str) -> List[int]:
        positions = [index for index, item in enumerate(self.form.fields) if item.name == name]
        if not positions:
            raise MalformedInputError(f"Form {self.form.index} has no field named {name!r}")
        return positions

    def value_of(self, name: str) -> Optional[str]:
        for position in self._positions(name):
            if position in self._values:
                return self._values[position]
        return None

    def is_selected(self, position: int) -> bool:
        purchase_field = self.form.fields[position]
        return self._values.get(position) == purchase_field.on_value

    def set_value(self, name: str, value: Optional[str]) -> None:
        positions = self._positions(name)
        first = self.form.fields[positions[0]]
        if (first.type or "").lower() == "radio":
            matches = [position for position in positions if self.form.fields[position].on_value == value]
            if not matches:
                raise MalformedInputError(f"{value!r} is not an option of {name!r}")
            for position in positions:
                self._values.pop(position, None)
            self._values[matches[0]] = self.form.fields[matches[0]].on_value
        elif first.is_checkable:
            checked = value is not None and str(value).strip().lower() not in _UNCHECKED_WORDS
            self.set_checked(name, checked)
        else:
            for position in positions:
                if value is None:
                    self._values.pop(position, None)
                else:
                    self._values[position] = str(value)

    def set_checked(self, name: str, checked: bool) -> None:
        touched_rider = False
        for position in self._positions(name):
            purchase_field = self.form.fields[position]
            if not purchase_field.is_checkable:
                raise MalformedInputError(f"{name!r} is not a checkbox")
            if checked:
                self._values[position] = purchase_field.on_value
            else:
                self._values.pop(position, None)
            touched_rider = touched_rider or purchase_field.is_rider
        if touched_rider:
            self._recompute_premium()

    def toggle_rider(self, name: str, selected: Optional[bool] = None) -> Optional[Decimal]:
        """Select or deselect a rider and return the new total premium."""

        positions = [position for position in self._positions(name) if self.form.fields[position].is_rider]
        if not positions:
            raise MalformedInputError(f"{name!r} is not an optional benefit")
        if selected is None:
            selected = not self.is_selected(positions[0])
        self.set_checked(name, selected)
        return self.total_premium

    def select_riders(self, names: Iterable[str]) -> Optional[Decimal]:
        """Select exactly the riders named in ``names``."""

        wanted = set(names)
        known = {item.name for item in self.riders}
        unknown = wanted - known
        if unknown:
            raise MalformedInputError(f"Unknown optional benefits: {', '.join(sorted(unknown))}")
        for rider_name in sorted(known, key=lambda value: value or ""):
            if rider_name:
                self.set_checked(rider_name, rider_name in wanted)
        return self.total_premium

    @property
    def riders(self) -> List[PurchaseField]:
        return [item for item in self.form.fields if item.is_rider]

    def selected_riders(self) -> List[PurchaseField]:
        return [
            purchase_field
            for position, purchase_field in enumerate(self.form.fields)
            if purchase_field.is_rider and self.is_selected(position)
        ]

    @property
    def total_premium(self) -> Optional[Decimal]:
        if self.base_premium is None:
            return None
        return self.base_premium + sum(
            (rider.rider_premium or Decimal("0") for rider in self.selected_riders()), Decimal("0")
        )

    @property
    def premium_text(self) -> Optional[str]:
        total = self.total_premium
        return format_premium(total) if total is not None else None

    def _recompute_premium(self) -> None:
        text = self.premium_text
        if self.premium_position is None or text is None:
            LOGGER.debug("Premium not recomputed for form %s", self.form.index)
            return
        self._values[self.premium_position] = text

    def build_submission(self) -> List[Tuple[str, str]]:
        """``(name, value)`` pairs in document order, as a browser would post them."""

        return [
            (purchase_field.name, self._values[position])
            for position, purchase_field in enumerate(self.form.fields)
            if position in self._values and purchase_field.name
        ]

    @property
    def action_url(self) -> Optional[str]:
        if self.page_url:
            return urljoin(self.page_url, self.form.action or "")
        return self.form.action

    def to_submission_dict(self) -> Dict[str, object]:
        return {
            "action": self.action_url,
            "method": self.form.method,
            "fields": [[name, value] for name, value in self.build_submission()],
            "totalPremium": self.premium_text,
        }


def apply_user_input(
    state: PurchaseFormState,
    values: Optional[Mapping[str, object]] = None,
    riders: Optional[Iterable[str]] = None,
) -> PurchaseFormState:
    for name, value in (values or {}).items():
        state.set_value(name, None if value is None else str(value))
    if riders is not None:
        state.select_riders(riders)
    return state
