"""
Validation for webhook payloads.

All validators raise ValidationError on invalid input and return the
normalized value otherwise.
"""
from typing import Any, Dict, List

from battle.exceptions import ValidationError


def validate_payload_object(payload: Any) -> Dict[str, Any]:
    """
    Ensure the decoded body is a JSON object.

    Raises:
        ValidationError: If the payload is not a dict
    """
    if not isinstance(payload, dict):
        raise ValidationError("body", "Must be a JSON object", type(payload).__name__)
    return payload


def validate_order_id(value: Any, field: str = "id") -> str:
    """
    Validate an order identifier and return it as a string.

    Shopify ids are positive integers, but string ids are accepted as long
    as they are not blank.

    Raises:
        ValidationError: If the id is missing, blank, or not positive
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(field, "Order id is required", value)

    if isinstance(value, int):
        if value <= 0:
            raise ValidationError(field, "Must be a positive integer", value)
        return str(value)

    if isinstance(value, str) and value.strip():
        return value.strip()

    raise ValidationError(field, "Must be an integer or non-empty string", value)


def validate_line_items(payload: Dict[str, Any], field: str = "line_items") -> List[Dict[str, Any]]:
    """
    Validate the line item list of an order payload.

    A missing list is treated as empty; non-object entries are rejected.

    Raises:
        ValidationError: If the field is not a list of objects
    """
    items = payload.get(field)
    if items is None:
        return []

    if not isinstance(items, list):
        raise ValidationError(field, "Must be a list", type(items).__name__)

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"{field}[{index}]", "Must be an object", item)

    return items


def validate_order_payload(payload: Any) -> Dict[str, Any]:
    """Validate an orders/paid or orders/cancelled payload."""
    payload = validate_payload_object(payload)
    validate_order_id(payload.get("id"), "id")
    validate_line_items(payload, "line_items")
    return payload


def validate_refund_payload(payload: Any) -> Dict[str, Any]:
    """Validate a refunds/create payload."""
    payload = validate_payload_object(payload)
    validate_order_id(payload.get("order_id"), "order_id")
    validate_line_items(payload, "refund_line_items")
    return payload


def parse_quantity(value: Any) -> int:
    """
    Read a quantity field leniently.

    Missing, malformed or non-finite quantities read as 0 so the line is
    skipped.
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
