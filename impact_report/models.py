"""
Database models for the impact report service.

- Local draft cache mirror (one row per owner and project)
- Append-only audit trail with integrity hashes
"""

import json
from datetime import datetime

from impact_report import db
from impact_report.utils import calculate_sha256


class ReportDraftCache(db.Model):
    """
    Local mirror of a report draft.

    Holds the serialised document (attachments stripped) and the section
    the student was on. Each write overwrites the previous snapshot.
    """
    __tablename__ = 'report_draft_cache'
    __table_args__ = (
        db.UniqueConstraint('owner_id', 'project_id', name='uq_draft_owner_project'),
    )

    id = db.Column(db.Integer, primary_key=True)

    # Whose draft this is
    owner_id = db.Column(db.String(100), nullable=False)
    project_id = db.Column(db.String(100), nullable=False)

    # Serialised snapshot
    payload_json = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<ReportDraftCache {self.owner_id}/{self.project_id}>'

    def touch(self, payload_json):
        """Replace the snapshot and bump the update time."""
        self.payload_json = payload_json
        self.updated_at = datetime.utcnow()


class AuditLog(db.Model):
    """
    Append-only record of what happened to a report.

    Rows are inserted by audit_logger and never updated. The integrity
    hash covers every field a reviewer would rely on, so edits made
    directly in the database show up in verify_integrity().
    """
    __tablename__ = 'audit_logs'

    HASHED_FIELDS = (
        'timestamp', 'actor_type', 'actor_id', 'action', 'action_category', 'project_id',
        'resource_type', 'resource_id', 'details_json', 'success', 'error_message',
    )

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    actor_type = db.Column(db.String(20), nullable=False)  # student or system
    actor_id = db.Column(db.String(100), nullable=True)

    action = db.Column(db.String(50), nullable=False)
    action_category = db.Column(db.String(20), nullable=False)

    project_id = db.Column(db.String(100), nullable=True, index=True)
    resource_type = db.Column(db.String(50), nullable=False)  # report, draft or section
    resource_id = db.Column(db.String(100), nullable=True)

    # Field paths and counts only; never report content
    details_json = db.Column(db.Text, nullable=True)

    success = db.Column(db.Boolean, nullable=False, default=True)
    error_message = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)

    integrity_hash = db.Column(db.String(64), nullable=False)

    def __repr__(self):
        return f'<AuditLog {self.id} {self.action} on {self.project_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'actor': {'type': self.actor_type, 'id': self.actor_id},
            'action': self.action,
            'category': self.action_category,
            'project_id': self.project_id,
            'resource': {'type': self.resource_type, 'id': self.resource_id},
            'details': json.loads(self.details_json) if self.details_json else None,
            'success': self.success,
            'error_message': self.error_message,
        }

    def compute_integrity_hash(self):
        content = '|'.join(str(getattr(self, name)) for name in self.HASHED_FIELDS)
        return calculate_sha256(content.encode())

    def verify_integrity(self):
        return self.integrity_hash == self.compute_integrity_hash()
