"""Shared request-parsing helpers for blueprints.

parse_date_input:  ISO / DD.MM.YYYY date parsing, raises ValueError on bad input
parse_id_list:     normalises a JSON id array into a set of ints
"""
from datetime import date, datetime


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS (time dropped), DD.MM.YYYY,
    date objects. Empty input returns None.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    value = str(value).strip()
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError(
            f"Invalid date format: '{value}'. Use YYYY-MM-DD or DD.MM.YYYY"
        ) from exc


def parse_id_list(value, field_name="ids"):
    """Convert a JSON array of ids into a set of ints.

    None → empty set. Raises ValueError when the value is not a list or an
    element is not a JSON integer; bools, floats and numeric strings are
    rejected rather than coerced.
    """
    if value is None:
        return set()
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{field_name} must be a list")
    for item in value:
        if isinstance(item, bool) or not isinstance(item, int):
            raise ValueError(f"{field_name} must contain integer ids")
    return set(value)
