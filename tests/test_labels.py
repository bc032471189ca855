"""Tests for purchase form label inference."""
from __future__ import annotations

from bs4 import BeautifulSoup
import pytest

from quote_core.field_paths import FieldPath
from quote_core.labels import (
    GENERIC_LABEL,
    SOURCE_CONTAINER_LABEL,
    SOURCE_FALLBACK,
    SOURCE_LABEL_FOR,
    SOURCE_NAME_CLEANUP,
    SOURCE_NAME_MAPPING,
    SOURCE_PARENT_LABEL,
    SOURCE_SIBLING_LABEL,
    clean_field_name,
    clean_label_text,
    infer_label,
    label_from_field_name,
)


def _label_for(html: str, selector: str = "input"):
    soup = BeautifulSoup(html, "html.parser")
    return infer_label(soup.select_one(selector), soup)


def test_label_for_attribute_wins() -> None:
    html = '<label for="f1">Nombre completo *</label><div><input id="f1" name="a[b][first_name]"></div>'
    assert _label_for(html) == ("Nombre completo", SOURCE_LABEL_FOR)


def test_wrapping_label_excludes_the_control_text() -> None:
    html = '<label>Tipo <select name="a[type]"><option>Pasaporte</option></select></label>'
    assert _label_for(html, "select") == ("Tipo", SOURCE_PARENT_LABEL)


def test_previous_sibling_label() -> None:
    html = "<div><label>Ciudad</label><span></span><input name=\"a[b][city]\"></div>"
    assert _label_for(html) == ("Ciudad", SOURCE_SIBLING_LABEL)


def test_sibling_label_for_another_field_is_ignored() -> None:
    html = (
        '<div><label for="other">Email</label><input id="other" name="a[email]">'
        '<input id="mine" name="a[b][city_name]"></div>'
    )
    assert _label_for(html, "#mine") == ("City Name", SOURCE_NAME_CLEANUP)


def test_label_in_parent_container() -> None:
    html = '<div class="group"><label>Dirección</label><div><input name="a[b][street]"></div></div>'
    assert _label_for(html) == ("Dirección", SOURCE_CONTAINER_LABEL)


def test_container_search_stops_at_other_fieldsets() -> None:
    html = (
        "<form><div><fieldset><label>Pasajero 1</label></fieldset>"
        '<fieldset><div><input name="a[quotes][0][breakdowns][1][passenger][last_name]"></div></fieldset>'
        "</div></form>"
    )
    assert _label_for(html) == ("Apellido", SOURCE_NAME_MAPPING)


def test_dictionary_uses_the_most_specific_segment() -> None:
    assert label_from_field_name("a[b][first_name]") == "Nombre"
    assert label_from_field_name("website_quotation[contact][phone_code]") == "Código País"
    assert label_from_field_name("website_quotation[contact][phone]") == "Teléfono"
    assert label_from_field_name("website_quotation[quotes][0][breakdowns][0][passenger][birth_date]") == (
        "Fecha de Nacimiento"
    )
    assert label_from_field_name("website_quotation[unknown_thing]") is None


def test_bracket_name_never_leaks_into_label() -> None:
    html = '<input name="website_quotation[quotes][0][breakdowns][0][passenger][first_name]">'
    label, source = _label_for(html)
    assert label == "Nombre"
    assert source == SOURCE_NAME_MAPPING
    assert "[" not in label


def test_field_name_cleanup() -> None:
    assert clean_field_name("a[b][emergency_phone_alt]") == "Emergency Phone Alt"
    assert clean_field_name("") is None


def test_generic_fallback() -> None:
    html = '<input name="a[0][1]">'
    assert _label_for(html) == (GENERIC_LABEL, SOURCE_FALLBACK)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("  Nombre  * : ", "Nombre"),
        ("Total [USD]", "Total"),
        ("a[b][c][d]", None),
        ("x" * 60, None),
        ("", None),
    ],
)
def test_clean_label_text(raw: str, expected) -> None:
    assert clean_label_text(raw) == expected


def test_field_path_tokens_are_leaf_first() -> None:
    path = FieldPath.parse("website_quotation[quotes][0][breakdowns][2][passenger][first_name]")
    assert path.breakdown_index == 2
    assert path.semantic_tokens() == ("first_name",)
