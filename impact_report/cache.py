"""
Local cache mirror for report drafts.

The cache is keyed by project id and holds one serialised snapshot per
project. Writes are synchronous and overwrite the previous entry.
"""

import logging
from typing import Dict, Optional

from impact_report import db
from impact_report.models import ReportDraftCache


logger = logging.getLogger(__name__)


class LocalCache:
    """Interface for draft cache backends."""

    def read(self, project_id: str) -> Optional[str]:
        raise NotImplementedError

    def write(self, project_id: str, serialized: str):
        raise NotImplementedError


class MemoryCache(LocalCache):
    """Process-local cache, used in tests and when no database is bound."""

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self.entries: Dict[str, str] = dict(entries or {})

    def read(self, project_id):
        return self.entries.get(project_id)

    def write(self, project_id, serialized):
        self.entries[project_id] = serialized


class DatabaseCache(LocalCache):
    """
    Cache stored in the report_draft_cache table.

    Entries are scoped to an owner so two students working on the same
    project never read each other's drafts. Must be used inside an
    application context.
    """

    def __init__(self, owner_id: str):
        self.owner_id = owner_id

    def _entry(self, project_id: str) -> Optional[ReportDraftCache]:
        return ReportDraftCache.query.filter_by(
            owner_id=self.owner_id, project_id=project_id
        ).first()

    def read(self, project_id):
        entry = self._entry(project_id)
        return entry.payload_json if entry else None

    def write(self, project_id, serialized):
        entry = self._entry(project_id)
        if entry is None:
            entry = ReportDraftCache(
                owner_id=self.owner_id,
                project_id=project_id,
                payload_json=serialized
            )
            db.session.add(entry)
        else:
            entry.touch(serialized)

        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.debug('Cached draft for %s/%s', self.owner_id, project_id)
