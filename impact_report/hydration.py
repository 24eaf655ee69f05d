"""
Persistence and hydration coordinator.

Decides which document a session starts from and keeps the two draft
stores in step while the student works through the wizard.

Start-up precedence:
    1. A remote report whose record is in the structured section shape
    2. The local cache mirror (also used when the remote record is legacy)
    3. An empty report

Every section transition writes the local cache synchronously and pushes
a draft snapshot to the remote API in the background. Push failures are
logged and dropped; the cache write is what a session can rely on.
"""

import json
import logging
import re
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import requests

from impact_report.api_client import ReportApiClient, ReportApiError, ReportStatus, unwrap
from impact_report.cache import LocalCache
from impact_report.document import (
    FINAL_SECTION, ROW_TEMPLATES, is_participation_empty, section_key
)
from impact_report.packager import flatten_document, strip_attachments
from impact_report.validation import (
    MAX_TEAM_MEMBERS, ValidationError, is_valid_mobile, validate_all_sections
)
from impact_report.wizard import WizardState, clamp_section


logger = logging.getLogger(__name__)

SECTION_FIELD = re.compile(r'^section\d+$')

# Shared by every coordinator that is not handed its own executor
_draft_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='draft-push')


class HydrationSource:
    """Where a session's starting document came from."""
    REMOTE = 'remote'
    CACHE = 'cache'
    EMPTY = 'empty'


@dataclass
class StructuredRecord:
    """Remote record holding one mapping per section."""
    report_id: Optional[str]
    status: str
    sections: Dict[str, Dict[str, Any]]
    current_section: Optional[int] = None


@dataclass
class LegacyRecord:
    """Remote record in the old flat shape; kept only for its status."""
    report_id: Optional[str]
    status: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HydrationOutcome:
    source: str
    status: str = 'draft'
    notice: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'source': self.source, 'status': self.status, 'notice': self.notice}


@dataclass
class SubmissionOutcome:
    success: bool
    message: Optional[str] = None
    errors: List[ValidationError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ok': self.success,
            'message': self.message,
            'errors': [e.to_dict() for e in self.errors],
        }


def _current_section(raw: Dict[str, Any]) -> Optional[int]:
    value = raw.get('current_section', raw.get('currentSection'))
    if value in (None, ''):
        return None
    return clamp_section(value)


def parse_record(raw: Any) -> Union[StructuredRecord, LegacyRecord]:
    """
    Classify a remote report record.

    A record is structured when at least one 'sectionN' field holds a
    mapping. Anything else is treated as the legacy flat shape.

    Raises:
        ValueError: If the record is not a JSON object
    """
    body = unwrap(raw)
    if not isinstance(body, dict):
        raise ValueError('Report record is not an object')

    report_id = body.get('report_id') or body.get('id')
    status = str(body.get('status') or 'draft').lower()

    sections = {
        key: value for key, value in body.items()
        if SECTION_FIELD.match(key) and isinstance(value, dict)
    }
    if not sections:
        return LegacyRecord(report_id=report_id, status=status, raw=body)

    return StructuredRecord(
        report_id=report_id,
        status=status,
        sections=sections,
        current_section=_current_section(body),
    )


def roster_to_members(roster: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """
    Map an application roster into team member rows.

    Members without a name or without a valid mobile number are dropped.
    At most MAX_TEAM_MEMBERS rows are returned.
    """
    members = []
    for entry in roster or []:
        if not isinstance(entry, dict):
            continue

        name = str(entry.get('name') or entry.get('full_name') or '').strip()
        mobile = str(entry.get('mobile') or entry.get('phone') or '').strip()
        if not name or not is_valid_mobile(mobile):
            continue

        row = dict(ROW_TEMPLATES['team_members'])
        row.update({
            'name': name,
            'mobile': mobile,
            'cnic': str(entry.get('cnic') or ''),
            'university': str(entry.get('university') or ''),
            'program': str(entry.get('program') or entry.get('degree') or ''),
            'role': str(entry.get('role') or ''),
        })
        if entry.get('hours') not in (None, ''):
            row['hours'] = str(entry['hours'])
        members.append(row)

        if len(members) == MAX_TEAM_MEMBERS:
            break
    return members


class ReportCoordinator:
    """
    Drives one editing session for a (student, project) pair.

    Usage:
        coordinator = ReportCoordinator(api, MemoryCache(), 'student-1', 'project-9')
        coordinator.hydrate()
        coordinator.state.patch_section(1, {...})
        coordinator.next_section()
    """

    def __init__(self, api: ReportApiClient, cache: LocalCache, student_id: str,
                 project_id: str, executor: Optional[Executor] = None):
        self.api = api
        self.cache = cache
        self.student_id = student_id
        self.project_id = project_id
        self.executor = executor or _draft_executor
        self.state = WizardState()
        self.state.set_project_id(project_id)
        self.status = 'draft'

    def __repr__(self):
        return f'<ReportCoordinator {self.student_id}/{self.project_id} {self.state!r}>'

    # Hydration

    def hydrate(self) -> HydrationOutcome:
        """Load the starting document and apply the remote lock state."""
        notice = None
        remote_status = None

        try:
            report = self.api.fetch_report_status(self.student_id, self.project_id)
            if report is not None:
                remote_status = report.status
                record = parse_record(self.api.fetch_report_by_id(report.report_id))
                if isinstance(record, StructuredRecord):
                    outcome = self._load_structured(record, report)
                    self._seed_roster()
                    return outcome
                logger.info('Report %s is in the legacy shape; using local cache', report.report_id)
                self.state.set_report_id(report.report_id)
        except (ReportApiError, requests.RequestException, ValueError) as e:
            logger.warning(f'Remote hydration failed for {self.project_id}: {e}')
            notice = 'Could not load your saved report from the server; showing your local copy.'

        self.status = remote_status or 'draft'
        self.state.apply_status(self.status)

        source = HydrationSource.CACHE if self._load_cache() else HydrationSource.EMPTY
        if source == HydrationSource.EMPTY and notice:
            notice = 'Could not load your saved report; starting a new one.'

        self._seed_roster()
        return HydrationOutcome(source=source, status=self.status, notice=notice)

    def _load_structured(self, record: StructuredRecord, report: ReportStatus) -> HydrationOutcome:
        # The status lookup is authoritative; the record may lag behind it
        status = report.status or record.status
        document = {
            'project_id': self.project_id,
            'report_id': record.report_id or report.report_id,
            **record.sections,
        }
        self.state.load_document(document, active_section=record.current_section)
        self.status = status
        self.state.apply_status(status)
        logger.info(f'Hydrated report {document["report_id"]} from remote ({status})')
        return HydrationOutcome(source=HydrationSource.REMOTE, status=status)

    def _load_cache(self) -> bool:
        serialized = self.cache.read(self.project_id)
        if not serialized:
            return False

        try:
            snapshot = json.loads(serialized)
        except ValueError:
            logger.warning(f'Discarding unreadable cached draft for {self.project_id}')
            return False
        if not isinstance(snapshot, dict):
            return False

        document = snapshot.get('document', snapshot)
        if not isinstance(document, dict):
            return False

        report_id = self.state.document.get('report_id')
        self.state.load_document(
            {**document, 'project_id': self.project_id},
            active_section=_current_section(snapshot),
        )
        if report_id and not self.state.document.get('report_id'):
            self.state.set_report_id(report_id)
        return True

    def _seed_roster(self):
        """Fill the team from the project's application, once, if still empty."""
        if self.state.read_only:
            return
        if not is_participation_empty(self.state.document.get('section1')):
            return

        try:
            roster = self.api.fetch_project_roster(self.project_id)
        except (ReportApiError, requests.RequestException) as e:
            logger.warning(f'Could not fetch roster for {self.project_id}: {e}')
            return

        members = roster_to_members(roster)
        if not members:
            return

        self.state.patch_section(1, {'participation_type': 'team', 'team_members': members})
        logger.info(f'Seeded {len(members)} team members for {self.project_id}')

    # Persistence

    def snapshot(self) -> Dict[str, Any]:
        """Cache snapshot: the attachment-free document and the active section."""
        return {
            'document': strip_attachments(self.state.document),
            'current_section': self.state.active_section,
        }

    def draft_payload(self) -> Dict[str, Any]:
        document = strip_attachments(self.state.document)
        sections = {key: value for key, value in document.items() if SECTION_FIELD.match(key)}
        return {
            'student_id': self.student_id,
            'project_id': self.project_id,
            'report_id': document.get('report_id'),
            'current_section': self.state.active_section,
            'status': 'draft',
            **sections,
        }

    def persist(self) -> bool:
        """
        Write the local cache, then push a draft without waiting for it.

        Returns:
            False if the report is read-only and nothing was written
        """
        if self.state.read_only:
            return False

        self.cache.write(self.project_id, json.dumps(self.snapshot()))
        self.executor.submit(self._push_draft, self.draft_payload())
        return True

    def _push_draft(self, payload: Dict[str, Any]):
        try:
            self.api.push_draft(payload)
        except Exception as e:
            logger.warning(f'Draft push failed for {self.project_id}: {e}')

    def save(self) -> bool:
        return self.persist()

    # Navigation

    def next_section(self) -> Union[bool, SubmissionOutcome]:
        """
        Validate the active section and move on.

        At the final section this submits instead and returns the
        SubmissionOutcome. Otherwise returns whether the pointer moved.
        """
        result = self.state.validate_active_section()
        if not result.is_valid:
            return False

        if self.state.active_section == FINAL_SECTION:
            return self.submit()

        self._move_and_persist(self.state.advance)
        return True

    def previous_section(self) -> int:
        return self._move_and_persist(self.state.retreat)

    def _move_and_persist(self, move: Callable[[], int]) -> int:
        """Move the pointer; it goes back if the snapshot cannot be written."""
        origin = self.state.active_section
        section = move()
        try:
            self.persist()
        except Exception as e:
            self.state.go_to(origin)
            logger.error(f'Could not save {self.project_id}, staying on section {origin}: {e}')
            raise
        return section

    # Submission

    def submit(self) -> SubmissionOutcome:
        """Validate every section and send the final multipart submission."""
        if self.state.read_only:
            return SubmissionOutcome(False, 'This report has already been submitted')

        result = validate_all_sections(self.state.document)
        if not result.is_valid:
            self.state.record_errors(result)
            sections = list(dict.fromkeys(e.section for e in result.errors))
            return SubmissionOutcome(
                False,
                f'Please fix the errors in {", ".join(sections)} before submitting',
                list(result.errors),
            )

        payload = flatten_document({'student_id': self.student_id, **self.state.document})

        try:
            response = self.api.submit_report(payload)
        except (ReportApiError, requests.RequestException) as e:
            logger.error(f'Submission failed for {self.project_id}: {e}')
            return SubmissionOutcome(False, 'Submission failed. Please try again.')

        if not response.success:
            return SubmissionOutcome(False, response.message or 'Submission was rejected')

        self.status = 'submitted'
        self.state.lock_read_only()
        logger.info(f'Report for {self.project_id} submitted by {self.student_id}')
        return SubmissionOutcome(True, response.message or 'Report submitted')

    def section_errors(self, section: Union[int, str, None] = None) -> List[ValidationError]:
        return self.state.errors_for(section_key(section or self.state.active_section))
