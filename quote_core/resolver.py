"""Resolution of human entered trip parameters against the scraped catalog."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import logging
import unicodedata
from typing import Dict, Iterable, List, Optional, Sequence

from .config import QuoteConfig, TripType, format_machine_date
from .errors import ResolutionError
from .models import Catalog, CatalogOption

LOGGER = logging.getLogger(__name__)

PLACEHOLDER_TEXTS = frozenset({"seleccione", "select", "seleccionar"})


@dataclass(frozen=True)
class FallbackIds:
    """Explicit opt-in for substituting a fixed ID when a lookup misses."""

    origin: Optional[str] = None
    destination: Optional[str] = None


@dataclass
class ResolvedQuote:
    """A quote request expressed in the site's internal IDs."""

    trip_type_value: str
    origin_id: str
    destination_id: str
    agent_id: str
    departure_date: date
    return_date: date
    passenger_count: int
    ages: List[int] = field(default_factory=list)
    config: Optional[QuoteConfig] = None
    warnings: List[str] = field(default_factory=list)

    def to_form_payload(self) -> Dict[str, str]:
        """Url-encoded search form, as the site's own quotation request sends it."""

        payload = {
            "websitebundle_quotation_search[uuid]": "",
            "websitebundle_quotation_search[product]": self.trip_type_value,
            "websitebundle_quotation_search[origin]": self.origin_id,
            "websitebundle_quotation_search[destination]": self.destination_id,
            "websitebundle_quotation_search[agent]": self.agent_id,
            "websitebundle_quotation_search[date_from]": format_machine_date(self.departure_date),
            "websitebundle_quotation_search[date_to]": format_machine_date(self.return_date),
            "selector-passenger-count": str(self.passenger_count),
        }
        for index, age in enumerate(self.ages):
            payload[f"passengers-age[{index}]"] = str(age)
        return payload

    def to_dict(self) -> Dict[str, object]:
        return {
            "tripType": self.trip_type_value,
            "origin": self.origin_id,
            "destination": self.destination_id,
            "agent": self.agent_id,
            "departureDate": format_machine_date(self.departure_date),
            "returnDate": format_machine_date(self.return_date),
            "passengerCount": self.passenger_count,
            "ages": list(self.ages),
        }


def normalise_text(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value or "")
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return " ".join(stripped.casefold().split())


def _usable(options: Iterable[CatalogOption]) -> List[CatalogOption]:
    return [
        option
        for option in options
        if option.value and normalise_text(option.text) not in PLACEHOLDER_TEXTS
    ]


def match_option(query: str, options: Sequence[CatalogOption]) -> Optional[CatalogOption]:
    """Find ``query`` among ``options``.

    Passes, first hit wins: exact text or value, option text containing the
    query, query containing the option text.
    """

    needle = normalise_text(query)
    if not needle:
        return None
    candidates = _usable(options)
    for option in candidates:
        if needle in (normalise_text(option.text), normalise_text(option.value)):
            return option
    for option in candidates:
        if needle in normalise_text(option.text):
            return option
    for option in candidates:
        text = normalise_text(option.text)
        if text and text in needle:
            return option
    return None


def resolve_trip_type(trip_type: TripType, catalog: Catalog) -> CatalogOption:
    candidates = _usable(catalog.trip_types)
    for alias in (trip_type.value,) + trip_type.aliases:
        option = match_option(alias, candidates)
        if option is not None:
            return option
    raise ResolutionError("trip type", trip_type.value, [option.text for option in candidates])


def _resolve_with_fallback(
    field_name: str,
    query: str,
    options: Sequence[CatalogOption],
    fallback: Optional[str],
    warnings: List[str],
) -> str:
    option = match_option(query, options)
    if option is not None:
        return option.value
    if fallback:
        LOGGER.warning("No %s matches %r, using configured fallback ID %s", field_name, query, fallback)
        warnings.append(f"{field_name.capitalize()} {query!r} not found in catalog, using fallback ID {fallback}")
        return fallback
    raise ResolutionError(field_name, query, [item.text for item in _usable(options)])


def resolve_quote(
    config: QuoteConfig,
    catalog: Catalog,
    default_agent: Optional[str] = None,
    fallbacks: Optional[FallbackIds] = None,
) -> ResolvedQuote:
    """Map a :class:`QuoteConfig` onto catalog IDs, failing loudly on a miss."""

    fallbacks = fallbacks or FallbackIds()
    warnings: List[str] = []
    trip_option = resolve_trip_type(config.trip_type, catalog)
    origin_id = _resolve_with_fallback("origin", config.origin, catalog.origins, fallbacks.origin, warnings)
    destination_id = _resolve_with_fallback(
        "destination",
        config.destination,
        catalog.destinations_for(trip_option.value),
        fallbacks.destination,
        warnings,
    )

    if config.agent:
        agent_option = match_option(config.agent, catalog.agents) if catalog.agents else None
        if agent_option is None and catalog.agents:
            raise ResolutionError("agent", config.agent, [item.text for item in _usable(catalog.agents)])
        agent_id = agent_option.value if agent_option else config.agent
    elif default_agent:
        agent_id = default_agent
    else:
        agents = _usable(catalog.agents)
        if not agents:
            raise ResolutionError("agent", "", [])
        agent_id = agents[0].value

    LOGGER.info(
        "Resolved %s/%s/%s to product=%s origin=%s destination=%s agent=%s",
        config.trip_type.value,
        config.origin,
        config.destination,
        trip_option.value,
        origin_id,
        destination_id,
        agent_id,
    )
    return ResolvedQuote(
        trip_type_value=trip_option.value,
        origin_id=origin_id,
        destination_id=destination_id,
        agent_id=agent_id,
        departure_date=config.departure_date,
        return_date=config.return_date,
        passenger_count=config.passenger_count,
        ages=list(config.ages),
        config=config,
        warnings=warnings,
    )
