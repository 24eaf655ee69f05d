"""
Remote report API client.

All outbound HTTP calls to the student report API go through this class.
Pass a custom `session` in tests to intercept HTTP calls without making
real network requests.

Endpoints used:
    GET  /student/reports/status?student_id=&project_id=   report status
    GET  /student/reports/<report_id>                      full record
    POST /student/reports                                  draft snapshot
    POST /student/reports/<project_id>/submit              final multipart
    GET  /student/projects/<project_id>                    project roster
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from impact_report.packager import MultipartPayload


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class ReportApiError(Exception):
    """Raised when the report API answers with a non-2xx status or bad JSON."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ReportStatus:
    """Existence and lifecycle status of a student's report."""
    report_id: Optional[str]
    status: str

    @property
    def exists(self) -> bool:
        return bool(self.status) and self.status != 'none'


@dataclass
class SubmitResponse:
    """Outcome of a final submission."""
    success: bool
    message: Optional[str] = None


def unwrap(body: Any) -> Any:
    """Strip the {'data': ...} wrapper some endpoints put around payloads."""
    if isinstance(body, dict) and 'data' in body and isinstance(body['data'], (dict, list)):
        return body['data']
    return body


class ReportApiClient:
    """
    Student report API gateway.

    Usage:
        client = ReportApiClient('https://api.example.com/v1', token='...')
        status = client.fetch_report_status('student-1', 'project-9')
    """

    def __init__(self, base_url: str, token: Optional[str] = None,
                 timeout: int = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = (base_url or '').rstrip('/')
        self.token = token
        self.timeout = timeout
        # Inject custom session for testing; create real one lazily otherwise.
        self._session = session

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _url(self, path: str) -> str:
        return f'{self.base_url}/{path.lstrip("/")}'

    def _headers(self) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def _request(self, method: str, path: str, allow_404: bool = False, **kwargs) -> Any:
        response = self.session.request(
            method, self._url(path), headers=self._headers(), timeout=self.timeout, **kwargs
        )

        if allow_404 and response.status_code == 404:
            return None

        if not 200 <= response.status_code < 300:
            raise ReportApiError(
                f'{method} {path} failed with HTTP {response.status_code}',
                status_code=response.status_code
            )

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError:
            raise ReportApiError(f'{method} {path} returned invalid JSON',
                                 status_code=response.status_code)

    def fetch_report_status(self, student_id: str, project_id: str) -> Optional[ReportStatus]:
        """
        Look up whether a report exists for (student, project).

        Returns:
            ReportStatus, or None if the API has no record
        """
        body = self._request(
            'GET', 'student/reports/status', allow_404=True,
            params={'student_id': student_id, 'project_id': project_id}
        )
        body = unwrap(body)
        if not body:
            return None

        status = ReportStatus(
            report_id=body.get('report_id') or body.get('id'),
            status=str(body.get('status') or 'none').lower()
        )
        return status if status.exists else None

    def fetch_report_by_id(self, report_id: str) -> Dict[str, Any]:
        """Fetch a full report record (structured or legacy shape)."""
        return self._request('GET', f'student/reports/{report_id}') or {}

    def push_draft(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a draft snapshot. Callers treat failures as non-fatal."""
        return self._request('POST', 'student/reports', json=payload) or {}

    def submit_report(self, payload: MultipartPayload) -> SubmitResponse:
        """
        Send the final multipart submission.

        The target project is read from the payload's project_id field.

        Raises:
            ReportApiError: If the API rejects the submission
        """
        project_id = payload.get('project_id')
        if not project_id:
            raise ReportApiError('Submission payload has no project_id')

        data, files = payload.to_requests()
        body = self._request('POST', f'student/reports/{project_id}/submit',
                             data=data, files=files or None)
        body = body if isinstance(body, dict) else {}
        return SubmitResponse(
            success=bool(body.get('success', True)),
            message=body.get('message')
        )

    def fetch_project_roster(self, project_id: str) -> Optional[List[Dict[str, Any]]]:
        """Team members attached to the project's application, if any."""
        body = unwrap(self._request('GET', f'student/projects/{project_id}', allow_404=True))
        if not isinstance(body, dict):
            return None

        roster = body.get('team_members')
        if roster is None:
            roster = body.get('team')
        if not isinstance(roster, list):
            return None
        return roster
