from __future__ import annotations

import re
from typing import Optional

from .errors import ValidationError

_HEX_COLOR = re.compile(r"^#?([0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})$")


# PUBLIC_INTERFACE
def clean_text(value: Optional[str]) -> str:
    """Return value with surrounding whitespace and newlines stripped ('' for None)."""
    return (value or "").strip()


# PUBLIC_INTERFACE
def require_text(value: Optional[str], field: str) -> str:
    """
    Return the trimmed value, or raise ValidationError if nothing is left.

    Used for category names and task titles, which may never be persisted blank.
    """
    s = clean_text(value)
    if not s:
        raise ValidationError(field, f"{field} must not be empty")
    return s


# PUBLIC_INTERFACE
def normalize_color(value: Optional[str]) -> str:
    """
    Normalize a hex color to upper-case '#RRGGBB' or '#RRGGBBAA'.

    Raises:
        ValidationError if the value is not a 6 or 8 digit hex color.
    """
    s = clean_text(value)
    match = _HEX_COLOR.match(s)
    if not match:
        raise ValidationError("color", "color must be a hex value like '#FF0000'")
    return "#" + match.group(1).upper()
