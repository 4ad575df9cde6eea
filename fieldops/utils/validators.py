"""Input validation helpers.

All helpers raise `ValidationError` so malformed input is rejected before any
shared state is consulted.
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional, Sequence

from fieldops.core.exceptions import ValidationError
from fieldops.models.booking import DocumentStatus, DocumentType
from fieldops.models.geo import GeoPoint

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def require_object_id(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Missing required field: {field}")
    if not OBJECT_ID_PATTERN.match(value):
        raise ValidationError(f"Invalid {field} format")
    return value


def require_non_empty(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required field: {field}")
    return value.strip()


def require_document_type(value: Any) -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in DocumentType)
        raise ValidationError(f"Invalid document type '{value}'. Must be one of: {allowed}") from exc


def require_review_decision(value: Any) -> DocumentStatus:
    try:
        decision = DocumentStatus(value)
    except ValueError as exc:
        raise ValidationError("Invalid document status. Must be: approved or rejected") from exc
    if decision is DocumentStatus.PENDING:
        raise ValidationError("Invalid document status. Must be: approved or rejected")
    return decision


def require_coordinates(value: Any) -> GeoPoint:
    """Validate a ``[longitude, latitude]`` pair."""

    if not isinstance(value, Sequence) or isinstance(value, str) or len(value) != 2:
        raise ValidationError("Invalid coordinates. Must be an array of [longitude, latitude]")

    longitude, latitude = value
    for component in (longitude, latitude):
        if isinstance(component, bool) or not isinstance(component, (int, float)) or not math.isfinite(component):
            raise ValidationError("Invalid coordinates. Longitude and latitude must be numbers")

    if not -180 <= longitude <= 180 or not -90 <= latitude <= 90:
        raise ValidationError(
            "Invalid coordinates. Longitude must be between -180 and 180, latitude between -90 and 90"
        )
    return GeoPoint.from_lng_lat(float(longitude), float(latitude))


def optional_non_negative(value: Any, field: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        raise ValidationError(f"Invalid {field}. Must be a non-negative number")
    return float(value)
