"""Shared data structures used across scraping, parsing and form reconstruction."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class CatalogOption:
    """A single ``<option>`` scraped from the quote form."""

    value: str
    text: str
    disabled: bool = False
    data_filter: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"value": self.value, "text": self.text}
        if self.disabled:
            payload["disabled"] = True
        if self.data_filter:
            payload["dataFilter"] = self.data_filter
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CatalogOption":
        return cls(
            value=str(data.get("value", "")),
            text=str(data.get("text", "")),
            disabled=bool(data.get("disabled", False)),
            data_filter=data.get("dataFilter") or None,
        )


@dataclass(frozen=True)
class Catalog:
    """Trip type -> destination availability matrix plus origins and agents."""

    trip_types: List[CatalogOption]
    origins: List[CatalogOption]
    destinations: Dict[str, List[CatalogOption]]
    agents: List[CatalogOption]

    def destinations_for(self, trip_type_value: str) -> List[CatalogOption]:
        return list(self.destinations.get(trip_type_value, []))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tripTypes": [option.to_dict() for option in self.trip_types],
            "origins": [option.to_dict() for option in self.origins],
            "destinations": {
                trip_type: [option.to_dict() for option in options]
                for trip_type, options in self.destinations.items()
            },
            "agents": [option.to_dict() for option in self.agents],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Catalog":
        raw_destinations = data.get("destinations") or {}
        return cls(
            trip_types=[CatalogOption.from_dict(item) for item in data.get("tripTypes") or []],
            origins=[CatalogOption.from_dict(item) for item in data.get("origins") or []],
            destinations={
                str(key): [CatalogOption.from_dict(item) for item in items or []]
                for key, items in raw_destinations.items()
            },
            agents=[CatalogOption.from_dict(item) for item in data.get("agents") or []],
        )


@dataclass(frozen=True)
class QuotePlan:
    """A plan card extracted from the quote results."""

    plan_id: str
    name: str
    price: str

    @property
    def product(self) -> str:
        return self.name.split("\n", 1)[0]

    @property
    def coverage(self) -> str:
        parts = self.name.split("\n", 1)
        return parts[1] if len(parts) > 1 else ""

    def to_dict(self) -> Dict[str, Any]:
        return {"planId": self.plan_id, "name": self.name, "price": self.price}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuotePlan":
        return cls(
            plan_id=str(data.get("planId", "")),
            name=str(data.get("name", "")),
            price=str(data.get("price", "")),
        )


@dataclass
class QuoteData:
    """Result of a quote submission."""

    url: str
    plans: List[QuotePlan]
    content_length: int = 0
    summary: Dict[str, float] = field(default_factory=dict)

    @property
    def plan_count(self) -> int:
        return len(self.plans)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "plans": [plan.to_dict() for plan in self.plans],
            "planCount": self.plan_count,
            "contentLength": self.content_length,
            "summary": dict(self.summary),
        }


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


@dataclass
class PurchaseField:
    """A single ``input``/``select``/``textarea`` of the purchase page."""

    tag: str
    type: Optional[str] = None
    name: Optional[str] = None
    id: Optional[str] = None
    placeholder: Optional[str] = None
    label: Optional[str] = None
    required: bool = False
    value: Optional[str] = None
    options: Optional[List[Dict[str, str]]] = None
    rider_premium: Optional[Decimal] = None
    checked: bool = False
    label_source: Optional[str] = None

    @property
    def is_checkable(self) -> bool:
        return self.tag == "input" and (self.type or "").lower() in {"checkbox", "radio"}

    @property
    def is_rider(self) -> bool:
        return (self.type or "").lower() == "checkbox" and self.rider_premium is not None

    @property
    def on_value(self) -> str:
        """Value submitted when a checkbox or radio is checked."""

        return self.value if self.value is not None else "on"

    def to_dict(self, include_analysis: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "tag": self.tag,
            "type": self.type,
            "name": self.name,
            "id": self.id,
            "placeholder": self.placeholder,
            "label": self.label,
            "required": self.required,
            "value": self.value,
            "options": [dict(option) for option in self.options] if self.options is not None else None,
            "riderPremium": str(self.rider_premium) if self.rider_premium is not None else None,
            "checked": self.checked,
        }
        if include_analysis:
            payload["labelSource"] = self.label_source
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PurchaseField":
        options = data.get("options")
        return cls(
            tag=str(data.get("tag") or "input"),
            type=data.get("type"),
            name=data.get("name"),
            id=data.get("id"),
            placeholder=data.get("placeholder"),
            label=data.get("label"),
            required=bool(data.get("required", False)),
            value=data.get("value"),
            options=[
                {"value": str(option.get("value", "")), "text": str(option.get("text", ""))}
                for option in options
            ]
            if options is not None
            else None,
            rider_premium=_to_decimal(data.get("riderPremium")),
            checked=bool(data.get("checked", False)),
            label_source=data.get("labelSource"),
        )


@dataclass
class PurchaseForm:
    """A ``<form>`` of the purchase page with its fields in document order."""

    index: int
    id: Optional[str]
    action: Optional[str]
    method: str
    fields: List[PurchaseField] = field(default_factory=list)

    def to_dict(self, include_analysis: bool = False) -> Dict[str, Any]:
        return {
            "index": self.index,
            "id": self.id,
            "action": self.action,
            "method": self.method,
            "fields": [item.to_dict(include_analysis=include_analysis) for item in self.fields],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PurchaseForm":
        return cls(
            index=int(data.get("index", 0)),
            id=data.get("id"),
            action=data.get("action"),
            method=str(data.get("method") or "GET").upper(),
            fields=[PurchaseField.from_dict(item) for item in data.get("fields") or []],
        )


@dataclass
class PurchaseFormData:
    """Everything scraped from a purchase page."""

    url: str
    raw_html: str
    forms: List[PurchaseForm]
    error: Optional[str] = None

    def to_dict(self, include_analysis: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "url": self.url,
            "rawHtml": self.raw_html,
            "forms": [form.to_dict(include_analysis=include_analysis) for form in self.forms],
        }
        if self.error:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PurchaseFormData":
        return cls(
            url=str(data.get("url", "")),
            raw_html=str(data.get("rawHtml") or ""),
            forms=[PurchaseForm.from_dict(item) for item in data.get("forms") or []],
            error=data.get("error") or None,
        )
