"""Tests for migrate.comparator -- comparison and payload projection."""

from contact_migrate.migrate.comparator import (
    build_create_payload,
    build_update_payload,
    cleared_fields,
    compare_attributes,
    compare_records,
    is_empty,
    normalize_value,
    project_present,
)
from contact_migrate.migrate.models import ContactRecord, FieldDifference


class TestNormalize:
    def test_none_and_blank_collapse(self):
        assert normalize_value(None) == ""
        assert normalize_value("") == ""
        assert normalize_value(" \t\n") == ""

    def test_other_values_unchanged(self):
        assert normalize_value(" CEO ") == " CEO "
        assert normalize_value("ceo") == "ceo"

    def test_is_empty(self):
        assert is_empty(None)
        assert is_empty("  ")
        assert not is_empty("x")


class TestCompareAttributes:
    def test_equal_maps_have_no_differences(self):
        assert compare_attributes({"title": "CEO"}, {"title": "CEO"}) == []

    def test_missing_equals_none_equals_blank(self):
        assert compare_attributes({"title": None}, {}) == []
        assert compare_attributes({"title": ""}, {"title": "   "}) == []

    def test_case_and_inner_whitespace_are_significant(self):
        diffs = compare_attributes(
            {"title": "CEO", "company": "Acme "},
            {"title": "ceo", "company": "Acme"},
        )
        assert [d.field for d in diffs] == ["title", "company"]

    def test_raw_values_kept_in_difference(self):
        diffs = compare_attributes({"notes": "VIP"}, {"notes": None})
        assert diffs == [FieldDifference(field="notes", existing="VIP", new=None)]

    def test_declared_field_order(self):
        diffs = compare_attributes(
            {},
            {"notes": "n", "phone": "1", "first_name": "F", "city": "Oslo"},
        )
        assert [d.field for d in diffs] == ["first_name", "phone", "city", "notes"]

    def test_custom_field_list(self):
        diffs = compare_attributes(
            {"title": "A", "alias": "x"},
            {"title": "B", "alias": "y"},
            fields=("alias",),
        )
        assert [d.field for d in diffs] == ["alias"]

    def test_deterministic(self):
        existing = {"title": "CTO", "city": "Oslo", "notes": "VIP"}
        imported = {"title": "CEO", "city": None, "notes": "VIP"}
        assert compare_attributes(existing, imported) == compare_attributes(
            existing, imported
        )

    def test_identity_fields_not_compared(self):
        existing = ContactRecord(external_address="a@x.com", display_name="Old")
        imported = ContactRecord(external_address="a@x.com", display_name="New")
        assert compare_records(existing, imported) == []


class TestUpdatePayload:
    def test_empty_new_values_dropped(self):
        diffs = [
            FieldDifference(field="title", existing="CTO", new="CEO"),
            FieldDifference(field="notes", existing="VIP", new=None),
            FieldDifference(field="city", existing="Oslo", new="  "),
        ]
        assert build_update_payload(diffs) == {"title": "CEO"}
        assert cleared_fields(diffs) == ["notes", "city"]

    def test_payload_preserves_order(self):
        diffs = [
            FieldDifference(field="first_name", existing=None, new="F"),
            FieldDifference(field="phone", existing=None, new="1"),
        ]
        assert list(build_update_payload(diffs)) == ["first_name", "phone"]

    def test_no_differences(self):
        assert build_update_payload([]) == {}


class TestCreatePayload:
    def test_split(self, alice):
        payload = build_create_payload(alice)
        assert payload.identity == {
            "external_address": "alice@partner.com",
            "alias": "alice.partner",
            "display_name": "Alice Partner",
            "name": "Alice Partner",
        }
        assert payload.attributes == {"first_name": "Alice", "last_name": "Partner"}
        assert payload.followup == {
            "title": "CTO",
            "company": "Partner Inc",
            "phone": "+1 555 0100",
        }

    def test_empty_values_omitted(self):
        payload = build_create_payload(
            ContactRecord(external_address="a@x.com", alias=" ", initials="")
        )
        assert payload.identity == {"external_address": "a@x.com"}
        assert payload.attributes == {}
        assert payload.followup == {}

    def test_project_present(self):
        assert project_present(
            {"a": "1", "b": None, "c": ""}, ("c", "b", "a")
        ) == {"a": "1"}
