"""
Type coercion for CSV cell values.

Shared by the row validator and the component processor so both apply the
same rules to the same declared attribute types.
"""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as date_parser

from src.schemas.content_type_schema import (
    AttributeDescriptor,
    AttributeType,
    DATE_TYPES,
    DECIMAL_TYPES,
    INTEGER_TYPES,
)

EMAIL_REGEX = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

TRUE_VALUES = {'true', '1', 'yes'}
FALSE_VALUES = {'false', '0', 'no'}


class CoercionError(ValueError):
    """Valore non convertibile nel tipo dichiarato"""

    def __init__(self, field_name: str, message: str):
        self.field_name = field_name
        self.message = message
        super().__init__(message)


def is_present(value: Any) -> bool:
    """Un valore è presente se definito e non stringa vuota"""
    return value is not None and value != ''


def to_iso_string(value: datetime) -> str:
    """ISO-8601 UTC con millisecondi, es. 2024-01-15T00:00:00.000Z"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S') + f'.{value.microsecond // 1000:03d}Z'


def parse_integer(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        pass
    # "10.0" -> 10
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Not a finite number: {value}")
    return int(number)


def parse_decimal(value: str) -> float:
    number = float(value)
    if math.isnan(number):
        raise ValueError(f"Not a number: {value}")
    return number


def parse_boolean(value: str) -> bool:
    token = str(value).strip().lower()
    if token in TRUE_VALUES:
        return True
    if token in FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean token: {value}")


def parse_date(value: str) -> str:
    try:
        return to_iso_string(date_parser.parse(value))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Not a date: {value}") from e


def coerce_value(value: str, attribute: AttributeDescriptor, field_name: str) -> Any:
    """
    Converte il valore di una cella nel tipo dichiarato dall'attributo.

    Args:
        value: Valore della cella (presente, non vuoto)
        attribute: Descrittore dell'attributo
        field_name: Nome campo (per i messaggi di errore)

    Returns:
        Valore convertito. Le relation restano stringhe grezze, risolte in seguito.

    Raises:
        CoercionError: Se il valore non rispetta il tipo dichiarato
    """
    attribute_type = attribute.type

    if attribute_type in INTEGER_TYPES:
        try:
            return parse_integer(value)
        except ValueError:
            raise CoercionError(field_name, f'"{field_name}" must be a number')

    if attribute_type in DECIMAL_TYPES:
        try:
            return parse_decimal(value)
        except ValueError:
            raise CoercionError(field_name, f'"{field_name}" must be a decimal number')

    if attribute_type == AttributeType.BOOLEAN:
        try:
            return parse_boolean(value)
        except ValueError:
            raise CoercionError(field_name, f'"{field_name}" must be true/false, 1/0, or yes/no')

    if attribute_type in DATE_TYPES:
        try:
            return parse_date(value)
        except ValueError:
            raise CoercionError(field_name, f'"{field_name}" must be a valid date')

    if attribute_type == AttributeType.EMAIL:
        if not EMAIL_REGEX.match(value):
            raise CoercionError(field_name, f'"{field_name}" must be a valid email')
        return value

    if attribute_type == AttributeType.ENUMERATION:
        if attribute.enum and value not in attribute.enum:
            raise CoercionError(field_name, f'"{field_name}" must be one of: {", ".join(attribute.enum)}')
        return value

    if attribute_type == AttributeType.RELATION:
        return value

    return str(value)
