"""
Tests for the audit trail.
"""

import pytest

from impact_report import db
from impact_report.audit_logger import (
    AuditAction, get_audit_trail_for_project, log_draft_saved, log_submission,
    log_validation_failed, verify_audit_integrity
)
from impact_report.models import AuditLog
from impact_report.validation import ValidationError


@pytest.fixture(autouse=True)
def app_context(app):
    with app.app_context():
        yield
        db.session.remove()


class TestAuditTrail:
    def test_entries_are_ordered_per_project(self):
        log_draft_saved('proj-1', 'stu-7', 2)
        log_submission('proj-1', 'stu-7', True)
        log_draft_saved('proj-2', 'stu-8', 1)

        trail = get_audit_trail_for_project('proj-1')

        assert [e['action'] for e in trail] == [AuditAction.DRAFT_SAVED, AuditAction.REPORT_SUBMITTED]
        assert trail[0]['details'] == {'current_section': 2}

    def test_failed_submission_keeps_message(self):
        entry = log_submission('proj-1', 'stu-7', False, 'Submission failed. Please try again.')
        assert entry.action == AuditAction.SUBMISSION_FAILED
        assert entry.success is False
        assert entry.error_message == 'Submission failed. Please try again.'

    def test_validation_failure_records_fields_only(self):
        errors = [ValidationError('team_lead.cnic', 'Please enter a valid CNIC', 'format', 'section1')]
        entry = log_validation_failed('proj-1', 'stu-7', 'section1', errors)
        assert 'team_lead.cnic' in entry.details_json
        assert 'Please enter' not in entry.details_json

    def test_tampering_is_detected(self):
        log_draft_saved('proj-1', 'stu-7', 2)
        entry = log_draft_saved('proj-1', 'stu-7', 3)
        assert verify_audit_integrity() == (2, 0, [])

        entry.details_json = '{"current_section": 9}'
        db.session.commit()

        assert verify_audit_integrity() == (1, 1, [entry.id])

    def test_entries_written_outside_requests(self):
        entry = log_draft_saved('proj-1', 'stu-7', 2)
        assert entry.ip_address is None
        assert AuditLog.query.count() == 1
