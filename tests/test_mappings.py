"""Tests for sheet_importer.mappings."""

import pytest

from sheet_importer.errors import UnknownMappingError
from sheet_importer.mappings import (
    form_url,
    is_valid_mapping_id,
    list_mappings,
    resolve_mapping,
    validate_row,
)


class TestResolveMapping:
    def test_known_mapping(self):
        rule = resolve_mapping("Customers.Basic")
        assert rule.required_fields == ["name", "email", "phone"]
        assert rule.locator_table["email"][0] == 'input[name="customer_email"]'

    def test_unknown_mapping(self):
        with pytest.raises(UnknownMappingError):
            resolve_mapping("Vendors.Basic")

    def test_every_required_field_has_locators(self):
        for rule in list_mappings():
            for field in rule.required_fields:
                assert rule.locator_table.get(field), f"{rule.id}:{field}"

    def test_list_mappings_ids(self):
        ids = {rule.id for rule in list_mappings()}
        assert ids == {"Customers.Basic", "Customers.Full", "Products.Basic", "Orders.Basic"}


class TestValidateRow:
    def test_valid(self, make_row):
        rule = resolve_mapping("Customers.Basic")
        result = validate_row(make_row(2, name="Ann", email="a@x.io", phone="555"), rule)
        assert result.valid
        assert result.reason is None

    def test_first_missing_field_is_reason(self, make_row):
        rule = resolve_mapping("Customers.Basic")
        result = validate_row(make_row(2, name="Ann"), rule)
        assert not result.valid
        assert result.reason == "Required field 'email' is missing or empty"

    def test_whitespace_only_is_empty(self, make_row):
        rule = resolve_mapping("Customers.Basic")
        result = validate_row(make_row(2, name="Ann", email="a@x.io", phone="   "), rule)
        assert result.reason == "Required field 'phone' is missing or empty"

    def test_optional_fields_not_required(self, make_row):
        rule = resolve_mapping("Products.Basic")
        assert validate_row(make_row(2, name="Pen", price="1.5", category="Office"), rule).valid


class TestHelpers:
    @pytest.mark.parametrize("mapping_id", ["Customers.Basic", "Orders.Basic", "A.B"])
    def test_valid_ids(self, mapping_id):
        assert is_valid_mapping_id(mapping_id)

    @pytest.mark.parametrize("mapping_id", ["Customers", "", ".Basic", "Customers."])
    def test_invalid_ids(self, mapping_id):
        assert not is_valid_mapping_id(mapping_id)

    def test_form_url(self):
        rule = resolve_mapping("Orders.Basic")
        assert form_url(rule, "https://target.test/") == "https://target.test/orders/create"
