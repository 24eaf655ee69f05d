"""
Flask routes for the impact report API.

One editing session per (student, project) lives in an in-process
registry, bounded by MAX_REPORT_SESSIONS and emptied by DELETE /session
and by a successful submission. Every endpoint answers JSON with an 'ok' flag.
"""

import io
import threading
from collections import OrderedDict
from typing import Any, List, Optional, Tuple

from flask import Blueprint, request, jsonify, current_app
from flask_wtf.csrf import generate_csrf
from werkzeug.datastructures import FileStorage

from impact_report.audit_logger import (
    log_report_hydrated, log_draft_saved, log_validation_failed,
    log_patch_rejected, log_submission
)
from impact_report.cache import DatabaseCache
from impact_report.document import SUMMARY_SECTION, gate_patch, section_key
from impact_report.field_errors import normalize_path
from impact_report.hydration import HydrationOutcome, ReportCoordinator, SubmissionOutcome
from impact_report.packager import strip_attachments
from impact_report.security import (
    get_student_id, rate_limit_edit, rate_limit_session,
    rate_limit_submit, rate_limit_upload, sanitize_payload
)
from impact_report.summary import build_report_summary


report_bp = Blueprint('reports', __name__, url_prefix='/api/reports')


class SessionRegistry:
    """
    Active coordinators keyed by (student_id, project_id).

    At most max_sessions are held. Adding one more hands back the least
    recently used sessions, which the caller saves before dropping them.
    """

    def __init__(self, max_sessions: int = 500):
        self.max_sessions = max_sessions
        self._sessions: 'OrderedDict[Tuple[str, str], ReportCoordinator]' = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._sessions)

    def get(self, student_id: str, project_id: str) -> Optional[ReportCoordinator]:
        key = (student_id, project_id)
        with self._lock:
            coordinator = self._sessions.get(key)
            if coordinator is not None:
                self._sessions.move_to_end(key)
            return coordinator

    def put(self, coordinator: ReportCoordinator) -> List[ReportCoordinator]:
        """Register a session; returns the sessions evicted to make room."""
        key = (coordinator.student_id, coordinator.project_id)
        evicted = []
        with self._lock:
            self._sessions[key] = coordinator
            self._sessions.move_to_end(key)
            while len(self._sessions) > self.max_sessions:
                _, oldest = self._sessions.popitem(last=False)
                evicted.append(oldest)
        return evicted

    def discard(self, student_id: str, project_id: str) -> bool:
        with self._lock:
            return self._sessions.pop((student_id, project_id), None) is not None


def _registry() -> SessionRegistry:
    return current_app.extensions['report_sessions']


def _error(message: str, status: int, code: str = 'error', **extra):
    body = {'ok': False, 'error': message, 'code': code}
    body.update(extra)
    return jsonify(body), status


def _state_response(coordinator: ReportCoordinator, status: int = 200, **extra):
    body = {
        'ok': True,
        'status': coordinator.status,
        'state': coordinator.state.to_dict(),
        'document': strip_attachments(coordinator.state.document),
    }
    body.update(extra)
    return jsonify(body), status


def _start_session(student_id: str, project_id: str) -> Tuple[ReportCoordinator, HydrationOutcome]:
    coordinator = ReportCoordinator(
        api=current_app.extensions['report_api'],
        cache=DatabaseCache(student_id),
        student_id=student_id,
        project_id=project_id,
        executor=current_app.extensions['draft_executor'],
    )
    outcome = coordinator.hydrate()
    for evicted in _registry().put(coordinator):
        _close_evicted(evicted)

    current_app.logger.info(
        f'Report session {student_id}/{project_id} started from {outcome.source} ({outcome.status})'
    )
    log_report_hydrated(project_id, student_id, outcome.source, outcome.status, outcome.notice)
    return coordinator, outcome


def _close_evicted(coordinator: ReportCoordinator):
    try:
        coordinator.save()
    except Exception as e:
        current_app.logger.warning(
            f'Could not save evicted session {coordinator.student_id}/{coordinator.project_id}: {e}'
        )
    else:
        current_app.logger.info(f'Evicted report session {coordinator.student_id}/{coordinator.project_id}')


def _session(project_id: str) -> Tuple[Optional[ReportCoordinator], Optional[str]]:
    """Resolve the caller's session, starting one if none is active."""
    student_id = get_student_id()
    if not student_id:
        return None, None
    coordinator = _registry().get(student_id, project_id)
    if coordinator is None:
        coordinator, _ = _start_session(student_id, project_id)
    return coordinator, student_id


def _submission_response(coordinator: ReportCoordinator, outcome: SubmissionOutcome,
                         student_id: str):
    log_submission(coordinator.project_id, student_id, outcome.success, outcome.message)

    if outcome.success:
        # Later requests rehydrate from the server, which now reports the submission
        _registry().discard(student_id, coordinator.project_id)
        return _state_response(coordinator, submission=outcome.to_dict())

    if outcome.errors:
        return _error(outcome.message, 422, 'validation_failed',
                      errors=[e.to_dict() for e in outcome.errors],
                      state=coordinator.state.to_dict())
    if coordinator.state.read_only:
        return _error(outcome.message, 409, 'read_only')
    return _error(outcome.message, 502, 'submission_failed')


def _copy_upload(upload: FileStorage) -> FileStorage:
    """Buffer an upload in memory so it outlives the request."""
    return FileStorage(
        stream=io.BytesIO(upload.read()),
        filename=upload.filename,
        name=upload.name,
        content_type=upload.content_type,
    )


def _append_files(container: Any, segments: List[str], files: List[FileStorage]) -> Any:
    """Copy the path down to a file list and return it with files appended."""
    if not segments:
        if not isinstance(container, list):
            raise ValueError('Target is not a file list')
        return list(container) + files

    head, rest = segments[0], segments[1:]
    if isinstance(container, list):
        if not head.isdigit() or int(head) >= len(container):
            raise ValueError(f'No row {head}')
        copied = list(container)
        copied[int(head)] = _append_files(copied[int(head)], rest, files)
        return copied

    if isinstance(container, dict):
        if head not in container:
            raise ValueError(f'Unknown field {head}')
        copied = dict(container)
        copied[head] = _append_files(container[head], rest, files)
        return copied

    raise ValueError('Target is not a file list')


@report_bp.route('/csrf-token', methods=['GET'])
def csrf_token():
    """Issue a CSRF token for the mutating endpoints."""
    return jsonify({'ok': True, 'csrf_token': generate_csrf()}), 200


@report_bp.route('/<project_id>/session', methods=['POST'])
@rate_limit_session()
def start_session(project_id):
    """
    Start (or restart) an editing session.

    Returns:
        JSON with the hydrated state and where it came from
    """
    student_id = get_student_id()
    if not student_id:
        return _error('Student identity is required', 401, 'unauthenticated')

    try:
        coordinator, outcome = _start_session(student_id, project_id)
        return _state_response(coordinator, 201, hydration=outcome.to_dict())
    except Exception as e:
        current_app.logger.error(f'Session start error for {project_id}: {str(e)}')
        return _error('Failed to start report session', 500, 'internal_error')


@report_bp.route('/<project_id>/session', methods=['DELETE'])
@rate_limit_edit()
def end_session(project_id):
    """
    Close the caller's editing session.

    The draft is saved first, so the next request resumes from the cache.
    """
    student_id = get_student_id()
    if not student_id:
        return _error('Student identity is required', 401, 'unauthenticated')

    coordinator = _registry().get(student_id, project_id)
    if coordinator is None:
        return jsonify({'ok': True, 'ended': False}), 200

    try:
        if coordinator.save():
            log_draft_saved(project_id, student_id, coordinator.state.active_section)
    except Exception as e:
        current_app.logger.error(f'Save error for {project_id} on session end: {str(e)}')
        return _error('Failed to save draft', 500, 'internal_error')

    _registry().discard(student_id, project_id)
    current_app.logger.info(f'Report session {student_id}/{project_id} ended')
    return jsonify({'ok': True, 'ended': True}), 200


@report_bp.route('/<project_id>', methods=['GET'])
def get_report(project_id):
    coordinator, _ = _session(project_id)
    if coordinator is None:
        return _error('Student identity is required', 401, 'unauthenticated')
    return _state_response(coordinator)


@report_bp.route('/<project_id>/sections/<int:section>', methods=['PATCH'])
@rate_limit_edit()
def patch_section(project_id, section):
    """
    Merge a partial update into one section.

    Closing a gate ('has_partners': 'no' and the like) clears the
    collections behind it in the same patch.
    """
    try:
        key = section_key(section)
    except ValueError:
        return _error(f'Unknown section {section}', 404, 'unknown_section')
    if section == SUMMARY_SECTION:
        return _error('The summary section is derived and cannot be edited', 400, 'derived_section')

    coordinator, student_id = _session(project_id)
    if coordinator is None:
        return _error('Student identity is required', 401, 'unauthenticated')

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _error('Section patch must be a JSON object', 400, 'missing_payload')

    if coordinator.state.read_only:
        log_patch_rejected(project_id, student_id, key)
        return _error('This report is read-only', 409, 'read_only')

    try:
        coordinator.state.patch_section(key, gate_patch(key, sanitize_payload(payload)))
        return _state_response(coordinator)
    except Exception as e:
        current_app.logger.error(f'Patch error for {project_id}/{key}: {str(e)}')
        return _error('Failed to update section', 500, 'internal_error')


@report_bp.route('/<project_id>/sections/<int:section>/files/<path:field>', methods=['POST'])
@rate_limit_upload()
def upload_files(project_id, section, field):
    """
    Attach uploaded files to a file list in a section.

    The field may point into a row, e.g. 'secondary_sdgs[0].evidence_files'.
    Attachments live in the session only; they are not written to the
    draft stores and must be present when the report is submitted.
    """
    try:
        key = section_key(section)
    except ValueError:
        return _error(f'Unknown section {section}', 404, 'unknown_section')
    if section == SUMMARY_SECTION:
        return _error('The summary section is derived and cannot be edited', 400, 'derived_section')

    coordinator, _ = _session(project_id)
    if coordinator is None:
        return _error('Student identity is required', 401, 'unauthenticated')
    if coordinator.state.read_only:
        return _error('This report is read-only', 409, 'read_only')

    uploads = [f for f in request.files.getlist('files') if f and f.filename]
    if not uploads:
        return _error('No files uploaded', 400, 'missing_files')

    segments = normalize_path(field).split('.')
    if not segments[-1].endswith('_files'):
        return _error(f'{field} is not a file field', 400, 'invalid_field')

    try:
        files = [_copy_upload(f) for f in uploads]
        top = segments[0]
        section_data = coordinator.state.document[key]
        if top not in section_data:
            raise ValueError(f'Unknown field {top}')
        updated = _append_files(section_data[top], segments[1:], files)
    except ValueError as e:
        return _error(str(e), 400, 'invalid_field')

    coordinator.state.patch_section(key, {top: updated})
    current_app.logger.info(f'Attached {len(files)} file(s) to {project_id}/{key}.{field}')
    return _state_response(coordinator, attached=len(files))


@report_bp.route('/<project_id>/next', methods=['POST'])
@rate_limit_edit()
def next_section(project_id):
    """Validate the active section and advance (or submit at the end)."""
    coordinator, student_id = _session(project_id)
    if coordinator is None:
        return _error('Student identity is required', 401, 'unauthenticated')

    try:
        section = coordinator.state.active_section
        outcome = coordinator.next_section()

        if isinstance(outcome, SubmissionOutcome):
            return _submission_response(coordinator, outcome, student_id)

        if not outcome:
            errors = coordinator.section_errors(section)
            log_validation_failed(project_id, student_id, section_key(section), errors)
            return _error('Please fix the highlighted fields', 422, 'validation_failed',
                          errors=[e.to_dict() for e in errors], state=coordinator.state.to_dict())

        if not coordinator.state.read_only:
            log_draft_saved(project_id, student_id, coordinator.state.active_section)
        return _state_response(coordinator)
    except Exception as e:
        current_app.logger.error(f'Navigation error for {project_id}: {str(e)}')
        return _error('Failed to move to the next section', 500, 'internal_error')


@report_bp.route('/<project_id>/previous', methods=['POST'])
@rate_limit_edit()
def previous_section(project_id):
    coordinator, student_id = _session(project_id)
    if coordinator is None:
        return _error('Student identity is required', 401, 'unauthenticated')

    try:
        coordinator.previous_section()
        if not coordinator.state.read_only:
            log_draft_saved(project_id, student_id, coordinator.state.active_section)
        return _state_response(coordinator)
    except Exception as e:
        current_app.logger.error(f'Navigation error for {project_id}: {str(e)}')
        return _error('Failed to move to the previous section', 500, 'internal_error')


@report_bp.route('/<project_id>/save', methods=['POST'])
@rate_limit_edit()
def save_draft(project_id):
    """Explicit save: write the local cache and push a draft."""
    coordinator, student_id = _session(project_id)
    if coordinator is None:
        return _error('Student identity is required', 401, 'unauthenticated')

    if coordinator.state.read_only:
        return _error('This report is read-only', 409, 'read_only')

    try:
        coordinator.save()
        log_draft_saved(project_id, student_id, coordinator.state.active_section)
        return _state_response(coordinator, saved=True)
    except Exception as e:
        current_app.logger.error(f'Save error for {project_id}: {str(e)}')
        return _error('Failed to save draft', 500, 'internal_error')


@report_bp.route('/<project_id>/submit', methods=['POST'])
@rate_limit_submit()
def submit_report(project_id):
    """Validate every section and send the final submission."""
    coordinator, student_id = _session(project_id)
    if coordinator is None:
        return _error('Student identity is required', 401, 'unauthenticated')

    try:
        outcome = coordinator.submit()
        return _submission_response(coordinator, outcome, student_id)
    except Exception as e:
        current_app.logger.error(f'Submission error for {project_id}: {str(e)}')
        return _error('Failed to submit report', 500, 'internal_error')


@report_bp.route('/<project_id>/field-error', methods=['GET'])
def field_error(project_id):
    """Look up the error message for a field of the active section."""
    coordinator, _ = _session(project_id)
    if coordinator is None:
        return _error('Student identity is required', 401, 'unauthenticated')

    field = request.args.get('field', '')
    return jsonify({
        'ok': True,
        'section': coordinator.state.active_section,
        'field': field,
        'message': coordinator.state.get_field_error(field),
    }), 200


@report_bp.route('/<project_id>/summary', methods=['GET'])
def report_summary(project_id):
    """Derived summary (section 11) of the current document."""
    coordinator, _ = _session(project_id)
    if coordinator is None:
        return _error('Student identity is required', 401, 'unauthenticated')

    summary = build_report_summary(coordinator.state.document)
    return jsonify({'ok': True, 'summary': summary.to_dict()}), 200
