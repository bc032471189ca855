"""Human readable labels for purchase form fields.

Strategies are tried in order and the first usable result wins:

1. ``<label for="...">`` pointing at the field id
2. a ``<label>`` wrapping the field
3. a ``<label>`` preceding the field as a sibling
4. the first ``<label>`` of up to three ancestors, never crossing into another
   fieldset and never taking a label that points at a different field
5. a dictionary of known field name fragments
6. the cleaned field name
7. the field id, or a generic placeholder
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Optional, Pattern, Tuple

from bs4 import Tag

from .field_paths import FieldPath
from .resolver import normalise_text

LOGGER = logging.getLogger(__name__)

MAX_LABEL_LENGTH = 50
MAX_FOR_LABEL_LENGTH = 100
MAX_ANCESTOR_LEVELS = 3
GENERIC_LABEL = "Campo"

SOURCE_LABEL_FOR = "label-for-attribute"
SOURCE_PARENT_LABEL = "parent-is-label"
SOURCE_SIBLING_LABEL = "previous-sibling-label"
SOURCE_CONTAINER_LABEL = "label-in-parent-container"
SOURCE_NAME_MAPPING = "field-name-mapping"
SOURCE_NAME_CLEANUP = "field-name-cleanup"
SOURCE_FALLBACK = "fallback"
SOURCE_SKIPPED = "skipped-internal-field"

_BRACKET_SEGMENT = re.compile(r"\[.*?\]")
_NAMESPACE_NOISE = re.compile(r"website.*?quotation", re.IGNORECASE)
_STRUCTURAL_CHARS = re.compile(r"[\[\]{}]")
_WORD_SEPARATORS = re.compile(r"[_\s\-]+")

# Evaluated in order; more specific fragments come before the ones they contain.
FIELD_NAME_LABELS: Tuple[Tuple[str, str], ...] = (
    (r"first_?names?|given_?names?|nombres?", "Nombre"),
    (r"last_?names?|surnames?|apellidos?", "Apellido"),
    (r"gender|sexo|genero", "Género"),
    (r"phone_?code|country_?code|dial_?code|codigo(_pais)?", "Código País"),
    (r"country|nationality|nacionalidad|pais", "País"),
    (r"e_?mail|correo", "Email"),
    (r"phone(_?number)?|mobile|cell_?phone|telefono|celular", "Teléfono"),
    (r"birth_?date|date_of_birth|birthday|fecha(_de)?_nacimiento|nacimiento|fecha", "Fecha de Nacimiento"),
    (r"age|edad", "Edad"),
    (r"document_?type|identification_?type|id_?type|tipo_?identificacion|identificacion", "Tipo de Identificación"),
    (r"document(_?number)?|identification_?number|number|numero", "Número"),
    (r"medical_?conditions?|pre_?existing_?conditions?|conditions?|condiciones(_medicas)?|medicas", "Condiciones Médicas"),
    (r"total_?premium|premium|prima(_total)?", "Prima Total a Pagar"),
    (r"general_?agent|agent|agency|agente|agencia", "Agente/Agencia"),
    (r"emergency_?contact|emergency|contacto(_emergencia)?|emergencia", "Contacto de Emergencia"),
)

_COMPILED_FIELD_NAME_LABELS: Tuple[Tuple[Pattern[str], str], ...] = tuple(
    (re.compile(rf"(?:^|_)(?:{pattern})(?:_|$)"), label) for pattern, label in FIELD_NAME_LABELS
)


def has_structural_punctuation(text: str) -> bool:
    return "[" in text or "]" in text


def is_human_label(text: Optional[str]) -> bool:
    """Reject text that looks programmatic rather than written for people."""

    if not text:
        return False
    return not has_structural_punctuation(text) and len(text) <= MAX_LABEL_LENGTH


def clean_label_text(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    text = " ".join(raw.split())
    if len(_STRUCTURAL_CHARS.findall(text)) > 2:
        return None
    text = _BRACKET_SEGMENT.sub("", text)
    text = _NAMESPACE_NOISE.sub("", text)
    text = " ".join(text.split()).rstrip(" *:").strip()
    return text if is_human_label(text) else None


def _element_text(element: Tag, exclude: Optional[Tag] = None) -> str:
    """Visible text of ``element``, leaving out the text inside ``exclude``."""

    if exclude is None:
        return " ".join(element.get_text(" ", strip=True).split())
    pieces = [
        text.strip()
        for text in element.find_all(string=True)
        if text.strip() and not any(parent is exclude for parent in text.parents)
    ]
    return " ".join(" ".join(pieces).split())


def _label_for_attribute(element: Tag, root: Tag) -> Optional[str]:
    field_id = element.get("id")
    if not field_id:
        return None
    label = root.find("label", attrs={"for": field_id})
    if label is None:
        return None
    text = _element_text(label)
    if text and not has_structural_punctuation(text) and len(text) < MAX_FOR_LABEL_LENGTH:
        return text
    return None


def _parent_label(element: Tag, root: Tag) -> Optional[str]:
    parent = element.parent
    if parent is not None and parent.name == "label":
        return _element_text(parent, exclude=element) or None
    return None


def _previous_sibling_label(element: Tag, root: Tag) -> Optional[str]:
    field_id = element.get("id")
    for sibling in element.find_previous_siblings():
        if sibling.name == "label":
            target = sibling.get("for")
            if target and target != field_id:
                continue
            text = _element_text(sibling)
            if text:
                return text
    return None


def _container_label(element: Tag, root: Tag) -> Optional[str]:
    field_id = element.get("id")
    own_fieldset = element.find_parent("fieldset")
    parent = element.parent
    levels = 0
    while parent is not None and parent.name not in {"form", "body", "[document]"} and levels < MAX_ANCESTOR_LEVELS:
        if parent.name == "fieldset" and parent is not own_fieldset:
            break
        label = next(
            (item for item in parent.find_all("label") if item.find_parent("fieldset") is own_fieldset),
            None,
        )
        if label is not None:
            text = _element_text(label)
            target = label.get("for")
            if text and not has_structural_punctuation(text) and (not target or target == field_id):
                return text
        parent = parent.parent
        levels += 1
    return None


DOM_STRATEGIES: Tuple[Tuple[str, Callable[[Tag, Tag], Optional[str]]], ...] = (
    (SOURCE_LABEL_FOR, _label_for_attribute),
    (SOURCE_PARENT_LABEL, _parent_label),
    (SOURCE_SIBLING_LABEL, _previous_sibling_label),
    (SOURCE_CONTAINER_LABEL, _container_label),
)


def _normalise_token(token: str) -> str:
    return normalise_text(token).replace("-", "_").replace(" ", "_")


def label_from_field_name(name: Optional[str]) -> Optional[str]:
    """Dictionary label for the most specific known fragment of ``name``."""

    for token in FieldPath.parse(name).semantic_tokens():
        candidate = _normalise_token(token)
        for pattern, label in _COMPILED_FIELD_NAME_LABELS:
            if pattern.search(candidate):
                return label
    return None


def clean_field_name(name: Optional[str]) -> Optional[str]:
    """``a[b][emergency_phone]`` -> ``Emergency Phone``."""

    tokens = FieldPath.parse(name).semantic_tokens()
    if not tokens:
        return None
    leaf = _NAMESPACE_NOISE.sub("", tokens[0])
    words = [word for word in _WORD_SEPARATORS.split(leaf) if word]
    text = " ".join(word.capitalize() for word in words)
    return text if is_human_label(text) else None


def _dom_label(element: Tag, root: Tag) -> Tuple[Optional[str], Optional[str]]:
    for source, strategy in DOM_STRATEGIES:
        try:
            label = clean_label_text(strategy(element, root))
        except Exception as exc:
            LOGGER.debug("Label strategy %s failed for %s: %s", source, element.get("name"), exc)
            continue
        if label:
            return label, source
    return None, None


def infer_label(element: Tag, root: Tag) -> Tuple[str, str]:
    """Return ``(label, source)`` for a form control.

    ``root`` is the tree used for ``label[for]`` lookups, usually the whole
    document. The result never contains bracket punctuation.
    """

    label, source = _dom_label(element, root)
    if label:
        return label, source

    name = element.get("name") or element.get("id")
    mapped = label_from_field_name(name)
    if mapped:
        return mapped, SOURCE_NAME_MAPPING

    cleaned = clean_field_name(name)
    if cleaned:
        return cleaned, SOURCE_NAME_CLEANUP

    field_id = element.get("id")
    if field_id and is_human_label(field_id):
        return field_id, SOURCE_FALLBACK
    return GENERIC_LABEL, SOURCE_FALLBACK

