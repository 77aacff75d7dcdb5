"""Mapping registry — required fields and form locators per import type."""

from __future__ import annotations

import re

from sheet_importer.errors import UnknownMappingError
from sheet_importer.models import MappedRow, MappingRule, ValidationResult

MAPPING_ID_PATTERN = re.compile(r"^[A-Za-z][\w-]*\.[A-Za-z][\w-]*$")

_CUSTOMER_NAME = ['input[name="customer_name"]', 'input[name="name"]']
_CUSTOMER_EMAIL = ['input[name="customer_email"]', 'input[name="email"]', 'input[type="email"]']
_CUSTOMER_PHONE = ['input[name="customer_phone"]', 'input[name="phone"]', 'input[type="tel"]']

MAPPINGS: dict[str, MappingRule] = {
    rule.id: rule
    for rule in [
        MappingRule(
            id="Customers.Basic",
            name="Customers - Basic",
            description="Import basic customer information (name, email, phone)",
            required_fields=["name", "email", "phone"],
            optional_fields=["company", "notes"],
            locator_table={
                "name": _CUSTOMER_NAME,
                "email": _CUSTOMER_EMAIL,
                "phone": _CUSTOMER_PHONE,
                "company": ['input[name="customer_company"]', 'input[name="company"]'],
                "notes": ['textarea[name="customer_notes"]', 'textarea[name="notes"]'],
            },
            form_path="/customers/add",
        ),
        MappingRule(
            id="Customers.Full",
            name="Customers - Full Profile",
            description="Import complete customer profiles with addresses and company details",
            required_fields=["name", "email", "phone", "address", "company"],
            optional_fields=["website", "notes", "tags"],
            locator_table={
                "name": _CUSTOMER_NAME,
                "email": _CUSTOMER_EMAIL,
                "phone": _CUSTOMER_PHONE,
                "address": ['textarea[name="customer_address"]', 'input[name="address"]'],
                "company": ['input[name="customer_company"]', 'input[name="company"]'],
                "website": ['input[name="customer_website"]', 'input[type="url"]'],
                "notes": ['textarea[name="customer_notes"]', 'textarea[name="notes"]'],
                "tags": ['input[name="customer_tags"]', 'input[name="tags"]'],
            },
            form_path="/customers/add-full",
        ),
        MappingRule(
            id="Products.Basic",
            name="Products - Basic",
            description="Import basic product information (name, price, category)",
            required_fields=["name", "price", "category"],
            optional_fields=["description", "sku", "weight"],
            locator_table={
                "name": ['input[name="product_name"]', 'input[name="name"]'],
                "price": ['input[name="product_price"]', 'input[name="price"]'],
                "category": ['input[name="product_category"]', 'input[name="category"]'],
                "description": ['textarea[name="product_description"]', 'textarea[name="description"]'],
                "sku": ['input[name="product_sku"]', 'input[name="sku"]'],
                "weight": ['input[name="product_weight"]', 'input[name="weight"]'],
            },
            form_path="/products/add",
        ),
        MappingRule(
            id="Orders.Basic",
            name="Orders - Basic",
            description="Import basic order information (order number, customer, total)",
            required_fields=["order_number", "customer_email", "total"],
            optional_fields=["order_date", "status", "notes"],
            locator_table={
                "order_number": ['input[name="order_number"]', 'input[name="order_no"]'],
                "customer_email": ['input[name="customer_email"]', 'input[type="email"]'],
                "total": ['input[name="order_total"]', 'input[name="total"]'],
                "order_date": ['input[name="order_date"]', 'input[type="date"]'],
                "status": ['select[name="order_status"]', 'input[name="status"]'],
                "notes": ['textarea[name="order_notes"]', 'textarea[name="notes"]'],
            },
            form_path="/orders/create",
        ),
    ]
}


def is_valid_mapping_id(mapping_id: str) -> bool:
    """Mapping ids have the form ``Category.Type``."""
    return bool(MAPPING_ID_PATTERN.match(mapping_id or ""))


def resolve_mapping(mapping_id: str) -> MappingRule:
    rule = MAPPINGS.get(mapping_id)
    if rule is None:
        raise UnknownMappingError(f"Unknown mapping '{mapping_id}'")
    return rule


def list_mappings() -> list[MappingRule]:
    return list(MAPPINGS.values())


def validate_row(row: MappedRow, rule: MappingRule) -> ValidationResult:
    """Check required fields in declared order; the first gap is the reason."""
    for field in rule.required_fields:
        value = row.get(field)
        if value is None or not str(value).strip():
            return ValidationResult(valid=False, reason=f"Required field '{field}' is missing or empty")
    return ValidationResult(valid=True)


def form_url(rule: MappingRule, base_url: str) -> str:
    return base_url.rstrip("/") + rule.form_path
