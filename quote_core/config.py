"""Configuration helpers for the quote agent."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import MalformedInputError

_DATE_FORMATS = ["%Y-%m-%d", "%d/%m/%Y", "%d.%m.%Y", "%d-%m-%Y"]
HUMAN_DATE_FORMAT = "%d/%m/%Y"
MACHINE_DATE_FORMAT = "%Y-%m-%d"

MIN_PASSENGERS = 1
MAX_PASSENGERS = 8
MAX_AGE = 120


class TripType(str, Enum):
    """Trip types offered by the insurer."""

    DAILY = "daily"
    ANNUAL = "annual"

    @property
    def aliases(self) -> Tuple[str, ...]:
        return _TRIP_TYPE_ALIASES[self]

    @classmethod
    def parse(cls, value: Any) -> "TripType":
        if isinstance(value, TripType):
            return value
        text = str(value or "").strip().lower()
        for trip_type, aliases in _TRIP_TYPE_ALIASES.items():
            if text == trip_type.value or text in aliases:
                return trip_type
        for trip_type, aliases in _TRIP_TYPE_ALIASES.items():
            if any(alias in text for alias in aliases if len(alias) > 3):
                return trip_type
        raise MalformedInputError(f"Unknown trip type {value!r}; expected 'daily' or 'annual'")


_TRIP_TYPE_ALIASES: Dict[TripType, Tuple[str, ...]] = {
    TripType.DAILY: ("daily", "viajes por día", "viajes por dia", "por día", "por dia", "diario"),
    TripType.ANNUAL: ("annual", "anual multiviaje", "viajes anuales", "anual", "anuales", "multiviaje"),
}


@dataclass
class QuoteConfig:
    """Trip parameters entered by a human, before catalog resolution."""

    trip_type: TripType
    origin: str
    destination: str
    departure_date: date
    return_date: date
    passenger_count: int = 1
    ages: List[int] = field(default_factory=list)
    agent: Optional[str] = None
    raw_request: Dict[str, Any] = field(default_factory=dict)

    def validate(self, today: Optional[date] = None) -> "QuoteConfig":
        """Reject malformed input; ``today`` enables the not-in-the-past check."""

        if not self.origin.strip():
            raise MalformedInputError("Origin is required")
        if not self.destination.strip():
            raise MalformedInputError("Destination is required")
        if not MIN_PASSENGERS <= self.passenger_count <= MAX_PASSENGERS:
            raise MalformedInputError(
                f"Passenger count must be between {MIN_PASSENGERS} and {MAX_PASSENGERS}, got {self.passenger_count}"
            )
        if len(self.ages) != self.passenger_count:
            raise MalformedInputError(
                f"Expected {self.passenger_count} ages but got {len(self.ages)}"
            )
        for age in self.ages:
            if not 0 <= age <= MAX_AGE:
                raise MalformedInputError(f"Invalid passenger age {age}")
        if self.return_date < self.departure_date:
            raise MalformedInputError("Return date must not be before the departure date")
        if today is not None and self.departure_date < today:
            raise MalformedInputError(
                f"Departure date {format_human_date(self.departure_date)} is in the past"
            )
        return self

    @property
    def date_range_text(self) -> str:
        """Value typed into the site's date-range picker."""

        return f"{format_human_date(self.departure_date)} - {format_human_date(self.return_date)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tripType": self.trip_type.value,
            "origin": self.origin,
            "destination": self.destination,
            "departureDate": format_human_date(self.departure_date),
            "returnDate": format_human_date(self.return_date),
            "passengerCount": self.passenger_count,
            "ages": list(self.ages),
            "agent": self.agent,
        }


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    text = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def format_human_date(value: date) -> str:
    return value.strftime(HUMAN_DATE_FORMAT)


def format_machine_date(value: date) -> str:
    return value.strftime(MACHINE_DATE_FORMAT)


def _parse_int(value: Any, label: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise MalformedInputError(f"{label} must be an integer, got {value!r}") from None


def _ensure_list(value: str | Iterable[Any] | None) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        if not value:
            return []
        return [item.strip() for item in value.split(",") if item.strip()]
    return [item for item in value if item is not None and item != ""]


def _require_date(form_data: Mapping[str, Any], key: str) -> date:
    raw = form_data.get(key)
    parsed = parse_date(raw)
    if parsed is None:
        raise MalformedInputError(f"{key} is missing or not a valid date: {raw!r}")
    return parsed


def create_config_from_form(form_data: Mapping[str, Any]) -> QuoteConfig:
    """Create a quote configuration from a JSON or HTML form payload."""

    raw_count = form_data.get("passengerCount", form_data.get("passengers"))
    ages = [_parse_int(age, "Age") for age in _ensure_list(form_data.get("ages"))]
    passenger_count = _parse_int(raw_count, "Passenger count") if raw_count not in (None, "") else len(ages)

    config = QuoteConfig(
        trip_type=TripType.parse(form_data.get("tripType")),
        origin=str(form_data.get("origin") or "").strip(),
        destination=str(form_data.get("destination") or "").strip(),
        departure_date=_require_date(form_data, "departureDate"),
        return_date=_require_date(form_data, "returnDate"),
        passenger_count=passenger_count,
        ages=ages,
        agent=str(form_data["agent"]).strip() if form_data.get("agent") else None,
        raw_request=dict(form_data),
    )
    return config.validate()


def _env_flag(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Process level settings, read from the environment."""

    site_url: str = "https://www1.mercantilseguros.com/as/viajesint/MRP022052"
    base_url: str = "https://www1.mercantilseguros.com"
    purchase_url_template: str = "{base}/as/viajesint/MRP022052/purchase/{session}/{plan}"
    headless: bool = True
    browser: str = "chromium"
    navigation_timeout_ms: int = 60000
    selector_timeout_ms: int = 15000
    results_timeout_ms: int = 30000
    settle_ms: int = 500
    screenshot_dir: Path = Path("screenshots")
    data_dir: Path = Path("data")
    catalog_db_path: Path = Path("data") / "catalog.db"
    default_agent: str = "2851"
    transport: str = "browser"
    fallback_origin_id: Optional[str] = None
    fallback_destination_id: Optional[str] = None
    save_snapshots: bool = False


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    defaults = Settings()
    data_dir = Path(env.get("QUOTE_DATA_DIR") or defaults.data_dir)
    transport = (env.get("QUOTE_TRANSPORT") or defaults.transport).strip().lower()
    if transport not in {"browser", "direct"}:
        transport = defaults.transport
    return Settings(
        site_url=env.get("QUOTE_SITE_URL") or defaults.site_url,
        base_url=(env.get("QUOTE_BASE_URL") or defaults.base_url).rstrip("/"),
        purchase_url_template=env.get("QUOTE_PURCHASE_URL_TEMPLATE") or defaults.purchase_url_template,
        headless=_env_flag(env.get("QUOTE_HEADLESS"), defaults.headless),
        browser=env.get("QUOTE_BROWSER") or defaults.browser,
        navigation_timeout_ms=_env_int(env.get("QUOTE_NAVIGATION_TIMEOUT_MS"), defaults.navigation_timeout_ms),
        selector_timeout_ms=_env_int(env.get("QUOTE_SELECTOR_TIMEOUT_MS"), defaults.selector_timeout_ms),
        results_timeout_ms=_env_int(env.get("QUOTE_RESULTS_TIMEOUT_MS"), defaults.results_timeout_ms),
        settle_ms=_env_int(env.get("QUOTE_SETTLE_MS"), defaults.settle_ms),
        screenshot_dir=Path(env.get("QUOTE_SCREENSHOT_DIR") or defaults.screenshot_dir),
        data_dir=data_dir,
        catalog_db_path=Path(env.get("CATALOG_DB_PATH") or data_dir / "catalog.db"),
        default_agent=env.get("QUOTE_DEFAULT_AGENT") or defaults.default_agent,
        transport=transport,
        fallback_origin_id=env.get("QUOTE_FALLBACK_ORIGIN_ID") or None,
        fallback_destination_id=env.get("QUOTE_FALLBACK_DESTINATION_ID") or None,
        save_snapshots=_env_flag(env.get("QUOTE_SAVE_SNAPSHOTS"), defaults.save_snapshots),
    )
