"""
Wizard state for one report editing session.

Holds the document, the active section pointer, the validation errors
accumulated per section and the read-only lock. All mutation goes through
this object.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from impact_report.document import (
    FIRST_SECTION, FINAL_SECTION, default_report, ensure_sections,
    merge_section, section_key, section_number
)
from impact_report.field_errors import find_field_error
from impact_report.validation import ValidationError, ValidationResult, validate_section


logger = logging.getLogger(__name__)


class ReportStatus(str, Enum):
    """Remote report lifecycle states."""
    DRAFT = 'draft'
    SUBMITTED = 'submitted'
    VERIFIED = 'verified'
    REJECTED = 'rejected'


# 'approved' is what older API responses send for a verified report
READ_ONLY_STATUSES = {ReportStatus.SUBMITTED.value, ReportStatus.VERIFIED.value, 'approved'}


def is_read_only_status(status: Optional[str]) -> bool:
    """Check whether a remote status locks the report."""
    if status is None:
        return False
    return str(status).strip().lower() in READ_ONLY_STATUSES


def clamp_section(section: Any) -> int:
    """Clamp a section number into the wizard's range."""
    try:
        number = int(section)
    except (TypeError, ValueError):
        return FIRST_SECTION
    return max(FIRST_SECTION, min(FINAL_SECTION, number))


class WizardState:
    """
    Single source of truth for one editing session.

    Navigation never validates on its own; callers run
    validate_active_section() before advance().
    """

    def __init__(self, document: Optional[Dict[str, Any]] = None,
                 active_section: int = FIRST_SECTION, read_only: bool = False):
        self.document = ensure_sections(document) if document else default_report()
        self.active_section = clamp_section(active_section)
        self.errors_by_section: Dict[str, List[ValidationError]] = {}
        self.read_only = read_only

    def __repr__(self):
        return (f'<WizardState project={self.document.get("project_id")!r} '
                f'section={self.active_section} read_only={self.read_only}>')

    @property
    def project_id(self) -> str:
        return self.document.get('project_id', '')

    @property
    def active_key(self) -> str:
        return section_key(self.active_section)

    def set_project_id(self, project_id: str):
        """Bind the document to a project; the id never changes once set."""
        current = self.document.get('project_id')
        if current and current != project_id:
            raise ValueError(f'Report already belongs to project {current}')
        self.document = {**self.document, 'project_id': project_id}

    def set_report_id(self, report_id: Optional[str]):
        self.document = {**self.document, 'report_id': report_id}

    def load_document(self, document: Dict[str, Any], active_section: Optional[int] = None):
        """
        Replace the whole document during hydration.

        This bypasses the read-only lock: hydration is how a locked report
        gets its content in the first place. Accumulated errors are dropped.
        """
        project_id = self.document.get('project_id')
        loaded = ensure_sections(document)
        if project_id and not loaded.get('project_id'):
            loaded['project_id'] = project_id
        self.document = loaded
        self.errors_by_section = {}
        if active_section is not None:
            self.active_section = clamp_section(active_section)

    def patch_section(self, section: Union[int, str], partial: Dict[str, Any]) -> bool:
        """
        Merge a patch into one section.

        Ignored when the report is read-only. A successful patch clears the
        errors recorded for that section only.

        Returns:
            True if the patch was applied
        """
        key = section_key(section)
        if self.read_only:
            logger.debug('Ignoring patch to %s: report is read-only', key)
            return False

        self.document = merge_section(self.document, key, partial)
        self.errors_by_section.pop(key, None)
        return True

    def validate_active_section(self) -> ValidationResult:
        """
        Validate the active section and record its errors.

        A read-only report always validates so navigation is never blocked.
        """
        if self.read_only:
            return ValidationResult()

        key = self.active_key
        result = validate_section(self.active_section, self.document.get(key))
        self.errors_by_section[key] = list(result.errors)
        return result

    def record_errors(self, result: ValidationResult):
        """Store errors from a multi-section validation, grouped by section."""
        for key, errors in result.get_errors_by_section().items():
            self.errors_by_section[key] = list(errors)

    def advance(self) -> int:
        self.active_section = clamp_section(self.active_section + 1)
        return self.active_section

    def retreat(self) -> int:
        self.active_section = clamp_section(self.active_section - 1)
        return self.active_section

    def go_to(self, section: Union[int, str]) -> int:
        """Jump to a section (used when restoring a saved position)."""
        self.active_section = section_number(section)
        return self.active_section

    def lock_read_only(self):
        self.read_only = True

    def unlock(self):
        self.read_only = False

    def apply_status(self, status: Optional[str]):
        """Lock or unlock according to the remote lifecycle status."""
        if is_read_only_status(status):
            self.lock_read_only()
        else:
            self.unlock()

    def errors_for(self, section: Union[int, str]) -> List[ValidationError]:
        return list(self.errors_by_section.get(section_key(section), []))

    def get_field_error(self, field: str) -> Optional[str]:
        """Message for a field of the active section, if it has one."""
        return find_field_error(self.errors_by_section.get(self.active_key, []), field)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the session state (errors included) for API responses."""
        return {
            'project_id': self.project_id,
            'report_id': self.document.get('report_id'),
            'active_section': self.active_section,
            'read_only': self.read_only,
            'errors': {
                key: [{'field': e.field, 'message': e.message, 'code': e.code} for e in errors]
                for key, errors in self.errors_by_section.items()
            },
        }
