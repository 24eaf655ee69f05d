"""
Audit trail for report sessions.

Each event is one AuditLog row stamped with a SHA-256 hash of its
content. Rows are only ever inserted. Writing an event never fails the
request that caused it.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from flask import current_app, has_request_context, request

from impact_report import db
from impact_report.models import AuditLog
from impact_report.security import get_client_ip


class AuditAction:
    """Event names stored in AuditLog.action."""
    REPORT_HYDRATED = 'report_hydrated'
    DRAFT_SAVED = 'draft_saved'
    VALIDATION_FAILED = 'validation_failed'
    PATCH_REJECTED = 'patch_rejected'
    REPORT_SUBMITTED = 'report_submitted'
    SUBMISSION_FAILED = 'submission_failed'


class AuditCategory:
    READ = 'read'
    UPDATE = 'update'
    SEND = 'send'
    SYSTEM = 'system'


def _request_metadata() -> Tuple[Optional[str], Optional[str]]:
    if not has_request_context():
        return None, None
    return get_client_ip(), request.headers.get('User-Agent')


def record_event(action: str, category: str, project_id: str, student_id: Optional[str],
                 resource_type: str = 'report', resource_id: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None, success: bool = True,
                 error_message: Optional[str] = None) -> Optional[AuditLog]:
    """
    Insert one audit row for a student action on a project's report.

    Args:
        action: One of the AuditAction names
        category: One of the AuditCategory names
        project_id: Project the report belongs to
        student_id: Acting student (None for system events)
        resource_type: 'report', 'draft' or 'section'
        resource_id: Defaults to the project id
        details: JSON-serialisable extras (never field values)

    Returns:
        The stored row, or None if the write failed
    """
    ip_address, user_agent = _request_metadata()

    entry = AuditLog(
        timestamp=datetime.utcnow(),
        actor_type='student' if student_id else 'system',
        actor_id=student_id,
        action=action,
        action_category=category,
        project_id=project_id,
        resource_type=resource_type,
        resource_id=str(resource_id or project_id),
        details_json=json.dumps(details, sort_keys=True) if details else None,
        success=success,
        error_message=error_message,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    entry.integrity_hash = entry.compute_integrity_hash()

    try:
        db.session.add(entry)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Audit write failed for {action} on {project_id}: {e}')
        return None
    return entry


def log_report_hydrated(project_id: str, student_id: str, source: str, status: str,
                        notice: Optional[str] = None) -> Optional[AuditLog]:
    """Session started; records where the document came from."""
    return record_event(AuditAction.REPORT_HYDRATED, AuditCategory.READ, project_id, student_id,
                        details={'source': source, 'status': status, 'notice': notice})


def log_draft_saved(project_id: str, student_id: str, section: int) -> Optional[AuditLog]:
    return record_event(AuditAction.DRAFT_SAVED, AuditCategory.UPDATE, project_id, student_id,
                        resource_type='draft', details={'current_section': section})


def log_validation_failed(project_id: str, student_id: str, section: Any,
                          errors: List[Any]) -> Optional[AuditLog]:
    """Blocked transition. Only field paths are kept, never messages or values."""
    return record_event(
        AuditAction.VALIDATION_FAILED, AuditCategory.SYSTEM, project_id, student_id,
        resource_type='section', resource_id=section, success=False,
        details={'error_count': len(errors), 'fields': [e.field for e in errors]},
    )


def log_patch_rejected(project_id: str, student_id: str, section: Any) -> Optional[AuditLog]:
    return record_event(AuditAction.PATCH_REJECTED, AuditCategory.UPDATE, project_id, student_id,
                        resource_type='section', resource_id=section, success=False,
                        error_message='Report is read-only')


def log_submission(project_id: str, student_id: str, success: bool,
                   message: Optional[str] = None) -> Optional[AuditLog]:
    action = AuditAction.REPORT_SUBMITTED if success else AuditAction.SUBMISSION_FAILED
    return record_event(action, AuditCategory.SEND, project_id, student_id, success=success,
                        error_message=None if success else message)


def verify_audit_integrity() -> Tuple[int, int, List[int]]:
    """
    Recompute every row's hash.

    Returns:
        (valid_count, invalid_count, ids of rows whose hash no longer matches)
    """
    tampered = [entry.id for entry in AuditLog.query.order_by(AuditLog.id).all()
                if not entry.verify_integrity()]
    total = AuditLog.query.count()
    return total - len(tampered), len(tampered), tampered


def get_audit_trail_for_project(project_id: str) -> List[Dict[str, Any]]:
    """A project's events, oldest first."""
    entries = AuditLog.query.filter_by(project_id=project_id) \
                            .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc()) \
                            .all()
    return [entry.to_dict() for entry in entries]
