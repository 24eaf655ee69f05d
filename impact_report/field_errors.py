"""
Field error lookup.

Resolves a field path to the message recorded for it in a section's
error list. A lookup may be a full path ('team_lead.cnic',
'team_members[2].hours') or a bare field name ('hours'), in which case the
last segment of each error path is compared.
"""

import re
from typing import Iterable, Optional

from impact_report.validation import ValidationError


BRACKET_INDEX = re.compile(r'\[(\d+)\]')


def normalize_path(path: str) -> str:
    """
    Convert bracket indices to dotted form.

    'team_members[2].cnic' becomes 'team_members.2.cnic'.
    """
    if not path:
        return ''
    dotted = BRACKET_INDEX.sub(r'.\1', path)
    return dotted.strip('.')


def last_segment(path: str) -> str:
    """Return the final segment of a dotted path."""
    return normalize_path(path).rsplit('.', 1)[-1]


def find_field_error(errors: Iterable[ValidationError], field: str) -> Optional[str]:
    """
    Find the message for a field.

    An exact path match wins; otherwise the first error whose last path
    segment equals the requested field is used.

    Args:
        errors: Errors of the currently active section
        field: Field path or bare field name

    Returns:
        The error message, or None if the field has no error
    """
    wanted = normalize_path(field)
    if not wanted:
        return None

    errors = list(errors or [])

    for error in errors:
        if normalize_path(error.field) == wanted:
            return error.message

    for error in errors:
        if last_segment(error.field) == wanted:
            return error.message

    return None
