"""Reporting helpers for catalogs and quotes."""
from __future__ import annotations

from typing import Iterable, List, Sequence

from .config import QuoteConfig, format_human_date
from .models import Catalog, QuotePlan
from .processor import price_amount, summarise_plans


def build_catalog_report(catalog: Catalog) -> str:
    """Plain text summary of a catalog."""

    lines: List[str] = [
        "Catálogo",
        "========",
        f"Tipos de viaje: {len(catalog.trip_types)}",
        f"Orígenes: {len(catalog.origins)}",
        f"Agentes: {len(catalog.agents)}",
        "",
        "Destinos por tipo de viaje:",
    ]
    for trip_type in catalog.trip_types:
        destinations = catalog.destinations_for(trip_type.value)
        names = ", ".join(option.text for option in destinations) or "ninguno"
        lines.append(f"- {trip_type.text} ({trip_type.value}): {len(destinations)} → {names}")
    return "\n".join(lines)


def _cell(text: str) -> str:
    return " ".join(text.replace("|", "/").split())


def generate_plan_table(plans: Iterable[QuotePlan]) -> str:
    """Return a markdown-style table of the quoted plans."""

    plan_list = list(plans)
    headers = ["Plan", "Producto", "Cobertura", "Precio"]
    rows: List[str] = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join(["---"] * len(headers)) + " |",
    ]
    if not plan_list:
        rows.append("| Sin planes |" + " |" * (len(headers) - 1))
        return "\n".join(rows)

    for plan in plan_list:
        price = plan.price if price_amount(plan.price) is not None else "–"
        columns = [plan.plan_id, _cell(plan.product), _cell(plan.coverage) or "–", price]
        rows.append("| " + " | ".join(columns) + " |")
    return "\n".join(rows)


def build_quote_report(
    config: QuoteConfig, plans: List[QuotePlan], warnings: Sequence[str] | None = None
) -> str:
    """Create a text report for one quote."""

    summary = summarise_plans(plans)
    lines: List[str] = ["Cotización", "=========="]
    warning_messages = [message.strip() for message in (warnings or []) if message]
    if warning_messages:
        lines.append("")
        lines.extend(f"ADVERTENCIA: {message}" for message in warning_messages)

    lines.extend(
        [
            "",
            f"Tipo de viaje: {config.trip_type.value}",
            f"Ruta: {config.origin} → {config.destination}",
            f"Fechas: {format_human_date(config.departure_date)} – {format_human_date(config.return_date)}",
            f"Pasajeros: {config.passenger_count} (edades: {', '.join(str(age) for age in config.ages)})",
        ]
    )
    if config.agent:
        lines.append(f"Agente: {config.agent}")

    lines.append("")
    lines.append("Resumen:")
    if summary["count"] == 0:
        lines.append("- Planes sin precio legible" if plans else "- No se encontraron planes")
    else:
        lines.append(f"- {summary['count']} planes encontrados")
        lines.append(f"- Precio promedio: USD {summary['average_price']:.2f}")
        lines.append(f"- Plan más económico: USD {summary['min_price']:.2f}")

    lines.append("")
    lines.append(generate_plan_table(plans))
    return "\n".join(lines)
