from quote_core.field_paths import FieldPath

RIDER_NAME = "website_quotation[quotes][0][breakdowns][2][riders][1][selected]"


def test_parse_splits_root_and_segments() -> None:
    path = FieldPath.parse(RIDER_NAME)
    assert path.root == "website_quotation"
    assert path.segments == ("quotes", "0", "breakdowns", "2", "riders", "1", "selected")
    assert path.leaf == "selected"


def test_indexes_follow_their_segment() -> None:
    path = FieldPath.parse(RIDER_NAME)
    assert path.breakdown_index == 2
    assert path.rider_index == 1
    assert FieldPath.parse("website_quotation[contact][email]").breakdown_index is None


def test_contains_requires_contiguous_segments() -> None:
    path = FieldPath.parse(RIDER_NAME)
    assert path.contains("breakdowns", "2")
    assert not path.contains("quotes", "breakdowns")


def test_plain_names_have_no_segments() -> None:
    path = FieldPath.parse("email")
    assert path.segments == ()
    assert path.leaf == "email"
    assert path.semantic_tokens() == ("email",)
    assert FieldPath.parse(None).semantic_tokens() == ()
