import sys
from decimal import Decimal
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from quote_core.errors import MalformedInputError
from quote_core.extractor import extract_forms
from quote_core.models import PurchaseField, PurchaseForm
from quote_core.reconstruction import (
    PurchaseFormState,
    apply_user_input,
    format_premium,
    group_fields,
    parse_amount,
)
from sample_pages import (
    FIRST_RIDER,
    PREMIUM_FIELD,
    PURCHASE_FORM_INDEX,
    PURCHASE_PAGE_HTML,
    PURCHASE_PAGE_URL,
    SECOND_RIDER,
)


def _purchase_form() -> PurchaseForm:
    return extract_forms(PURCHASE_PAGE_HTML)[PURCHASE_FORM_INDEX]


class GroupFieldsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.groups = group_fields(_purchase_form().fields)

    def test_passengers_are_numbered_from_breakdown_index(self) -> None:
        self.assertEqual(list(self.groups.passenger_groups), [1, 3])
        self.assertEqual(
            [field.label for field in self.groups.passenger_groups[1]],
            ["Nombre", "Apellido", "Género"],
        )
        self.assertEqual(
            [field.label for field in self.groups.passenger_groups[3]],
            ["Nombre del pasajero", "Apellido"],
        )

    def test_riders_always_go_to_benefits(self) -> None:
        self.assertEqual([field.name for field in self.groups.benefits_group], [FIRST_RIDER, SECOND_RIDER])

    def test_contact_and_other_fields(self) -> None:
        self.assertEqual(
            [field.label for field in self.groups.contact_group],
            ["Correo electrónico", "Código País"],
        )
        self.assertEqual(
            [field.label for field in self.groups.other_fields],
            ["Prima Total a Pagar", "Acepto los términos", "Comments"],
        )

    def test_internal_fields_are_not_displayed(self) -> None:
        shown = {field.name for field in self.groups.other_fields + self.groups.contact_group}
        self.assertNotIn("website_quotation[search_id]", shown)
        self.assertNotIn("website_quotation[general_agent]", shown)

    def test_serialised_group_keys(self) -> None:
        payload = self.groups.to_dict()
        self.assertEqual(sorted(payload["passengerGroups"]), ["1", "3"])
        self.assertEqual(len(payload["benefitsGroup"]), 2)


class PremiumTests(unittest.TestCase):
    def setUp(self) -> None:
        self.state = PurchaseFormState(_purchase_form(), page_url=PURCHASE_PAGE_URL)

    def test_base_premium_is_read_from_the_total_field(self) -> None:
        self.assertEqual(self.state.premium_field.name, PREMIUM_FIELD)
        self.assertEqual(self.state.base_premium, Decimal("100.00"))
        self.assertEqual(self.state.total_premium, Decimal("100.00"))

    def test_toggling_riders_updates_the_premium_field(self) -> None:
        self.assertEqual(self.state.toggle_rider(FIRST_RIDER, True), Decimal("105.50"))
        self.assertEqual(self.state.toggle_rider(SECOND_RIDER, True), Decimal("115.50"))
        self.assertEqual(self.state.value_of(PREMIUM_FIELD), "US$ 115.50")

        self.assertEqual(self.state.toggle_rider(SECOND_RIDER), Decimal("105.50"))
        self.assertEqual(self.state.value_of(PREMIUM_FIELD), "US$ 105.50")
        self.assertEqual([field.name for field in self.state.selected_riders()], [FIRST_RIDER])

    def test_select_riders_selects_exactly_the_given_set(self) -> None:
        self.state.select_riders([FIRST_RIDER, SECOND_RIDER])
        self.assertEqual(self.state.select_riders([SECOND_RIDER]), Decimal("110.00"))

    def test_unknown_rider_is_rejected(self) -> None:
        with self.assertRaises(MalformedInputError):
            self.state.select_riders(["website_quotation[riders][9][selected]"])
        with self.assertRaises(MalformedInputError):
            self.state.toggle_rider("website_quotation[terms]", True)

    def test_amount_helpers(self) -> None:
        self.assertEqual(parse_amount("US$ 1,234.50"), Decimal("1234.50"))
        self.assertIsNone(parse_amount("gratis"))
        self.assertEqual(parse_amount("US$ 100.00."), Decimal("100.00"))
        self.assertEqual(format_premium(Decimal("105.5")), "US$ 105.50")
        self.assertEqual(format_premium(Decimal("0.125")), "US$ 0.13")


class PreCheckedRiderTests(unittest.TestCase):
    def setUp(self) -> None:
        form = PurchaseForm(
            index=0,
            id=None,
            action=None,
            method="POST",
            fields=[
                PurchaseField(
                    tag="input",
                    type="checkbox",
                    name=FIRST_RIDER,
                    value="1",
                    label="Cancelación",
                    rider_premium=Decimal("5.50"),
                    checked=True,
                ),
                PurchaseField(tag="input", type="text", name=PREMIUM_FIELD, value="US$ 105.50", label="Prima"),
            ],
        )
        self.state = PurchaseFormState(form)

    def test_page_total_is_not_counted_twice(self) -> None:
        self.assertEqual(self.state.base_premium, Decimal("100.00"))
        payload = self.state.to_submission_dict()
        fields = dict(tuple(pair) for pair in payload["fields"])
        self.assertEqual(fields[PREMIUM_FIELD], "US$ 105.50")
        self.assertEqual(payload["totalPremium"], "US$ 105.50")

    def test_deselecting_returns_to_the_base_premium(self) -> None:
        self.assertEqual(self.state.toggle_rider(FIRST_RIDER, False), Decimal("100.00"))
        self.assertEqual(self.state.value_of(PREMIUM_FIELD), "US$ 100.00")


class SubmissionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.state = PurchaseFormState(_purchase_form(), page_url=PURCHASE_PAGE_URL)

    def test_initial_submission_keeps_internal_values_and_omits_unchecked_boxes(self) -> None:
        submission = dict(self.state.build_submission())

        self.assertEqual(submission["website_quotation[_token]"], "tok123")
        self.assertEqual(submission["website_quotation[search_id]"], "abc123")
        self.assertEqual(submission["website_quotation[quotes][0][plan][id]"], "M-50")
        self.assertEqual(submission["website_quotation[quotes][0][breakdowns][0][passenger][gender]"], "M")
        self.assertEqual(submission[PREMIUM_FIELD], "US$ 100.00")
        self.assertEqual(submission["website_quotation[comments]"], "")
        self.assertNotIn(FIRST_RIDER, submission)
        self.assertNotIn(SECOND_RIDER, submission)
        self.assertNotIn("website_quotation[terms]", submission)
        self.assertNotIn("pay", submission)

    def test_deselected_rider_is_absent_from_the_submission(self) -> None:
        self.state.toggle_rider(FIRST_RIDER, True)
        self.assertEqual(dict(self.state.build_submission())[FIRST_RIDER], "1")
        self.state.toggle_rider(FIRST_RIDER, False)
        self.assertNotIn(FIRST_RIDER, dict(self.state.build_submission()))

    def test_user_values_and_riders_are_applied(self) -> None:
        first_name = "website_quotation[quotes][0][breakdowns][0][passenger][first_name]"
        apply_user_input(
            self.state,
            {first_name: "Ana", "website_quotation[terms]": "yes"},
            [SECOND_RIDER],
        )
        payload = self.state.to_submission_dict()
        fields = dict(tuple(pair) for pair in payload["fields"])

        self.assertEqual(fields[first_name], "Ana")
        self.assertEqual(fields["website_quotation[terms]"], "accepted")
        self.assertEqual(fields[SECOND_RIDER], "on")
        self.assertEqual(fields[PREMIUM_FIELD], "US$ 110.00")
        self.assertEqual(payload["totalPremium"], "US$ 110.00")
        self.assertEqual(payload["method"], "POST")
        self.assertEqual(
            payload["action"],
            "https://www1.mercantilseguros.com/as/viajesint/MRP022052/purchase/abc123/confirm",
        )

    def test_submission_follows_document_order(self) -> None:
        names = [name for name, _ in self.state.build_submission()]
        self.assertEqual(names[0], "website_quotation[_token]")
        self.assertLess(names.index(PREMIUM_FIELD), names.index("website_quotation[comments]"))

    def test_unknown_field_is_rejected(self) -> None:
        with self.assertRaises(MalformedInputError):
            self.state.set_value("website_quotation[nope]", "x")

    def test_radio_groups_keep_one_value(self) -> None:
        form = PurchaseForm(
            index=0,
            id=None,
            action=None,
            method="POST",
            fields=[
                PurchaseField(tag="input", type="radio", name="plan_type", value="basic", checked=True),
                PurchaseField(tag="input", type="radio", name="plan_type", value="gold"),
            ],
        )
        state = PurchaseFormState(form)
        state.set_value("plan_type", "gold")
        self.assertEqual(state.build_submission(), [("plan_type", "gold")])
        with self.assertRaises(MalformedInputError):
            state.set_value("plan_type", "platinum")


if __name__ == "__main__":
    unittest.main()
