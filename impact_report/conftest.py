"""
Shared pytest fixtures.

Provides:
    - valid_report: a report that passes every section validator
    - fake_api: in-memory stand-in for the remote report API
    - sync_executor: runs draft pushes inline
    - app / client: Flask application on an in-memory database
"""

import copy
import io

import pytest
from werkzeug.datastructures import FileStorage

from impact_report import create_app
from impact_report.api_client import ReportApiError, ReportStatus, SubmitResponse
from impact_report.document import default_report, merge_section
from impact_report.packager import restore_document


def _words(count):
    return ' '.join(f'word{i}' for i in range(count))


def make_evidence_file(filename='photo.jpg', content=b'\xff\xd8evidence'):
    return FileStorage(stream=io.BytesIO(content), filename=filename, content_type='image/jpeg')


VALID_SECTIONS = {
    'section1': {
        'participation_type': 'individual',
        'team_lead': {
            'name': 'Ayesha Khan',
            'cnic': '35202-1234567-1',
            'mobile': '0300-1234567',
            'email': 'ayesha.khan@example.edu',
            'university': 'Punjab University',
            'degree': 'BS Economics',
            'year': '3',
            'role': 'Coordinator',
            'hours': '40',
        },
        'team_members': [],
        'privacy_consent': True,
    },
    'section2': {
        'problem_statement': _words(120),
        'discipline': 'Education',
        'baseline_evidence': 'Observation',
    },
    'section3': {
        'primary_sdg_explanation': 'Weekly literacy sessions for children who had dropped out of school.',
        'secondary_sdgs': [{
            'sdg_id': '10',
            'target_id': '10.2',
            'indicator_id': '',
            'justification': 'Sessions were open to children from every background.',
            'evidence_files': [],
        }],
    },
    'section4': {
        'activity_description': 'Ran twelve reading circles in the community centre over six weeks.',
        'has_financial_resources': 'no',
        'personal_funds': '',
        'personal_funds_purpose': [],
        'raised_funds': '',
        'raised_funds_source': [],
        'evidence_files': [],
    },
    'section5': {
        'observed_change': ('Children who attended at least eight sessions could read a short story aloud '
                            'and answer questions about it, which none of them could do at the start.'),
        'outcome_area': 'Skill Development',
        'metrics': [{'metric': 'Children reading fluently', 'baseline': '0', 'endline': '14', 'unit': '#'}],
        'confidence_level': 'Medium - Observation',
        'challenges': '',
    },
    'section6': {
        'use_resources': 'no',
        'resources': [],
        'evidence_files': [],
    },
    'section7': {
        'has_partners': 'no',
        'partners': [],
        'formalization': [],
        'formalization_files': [],
    },
    'section8': {
        'evidence_types': ['Photos', 'Attendance'],
        'description': 'Attendance sheets and photos of each session.',
        'media_usage': 'limited',
        'consent_authentic': True,
        'consent_informed': True,
        'consent_no_harm': True,
        'partner_verified': False,
        'partner_verification_files': [],
    },
    'section9': {
        'academic_application': 'Applied development economics ideas about human capital to plan the sessions.',
        'competency_scores': {'cognitive': 7, 'practical': 8, 'social': 9, 'transformative': 6},
        'strongest_competency': 'Social Competence',
        'personal_learning': _words(80),
    },
    'section10': {
        'continuation_status': 'yes',
        'continuation_details': 'Two parents now run the reading circle every Saturday morning.',
        'mechanisms': ['Community Ownership'],
        'scaling_potential': '',
        'policy_influence': '',
    },
    'section12': {
        'student_declaration': True,
        'partner_verification': True,
        'partner_verification_files': [],
    },
}


def build_valid_report(project_id='proj-1', with_evidence=True):
    document = default_report(project_id)
    for key, section in VALID_SECTIONS.items():
        document = merge_section(document, key, copy.deepcopy(section))
    evidence = [make_evidence_file()] if with_evidence else []
    return merge_section(document, 'section8', {'evidence_files': evidence})


class FakeReportApi:
    """Records calls and answers from preset values."""

    def __init__(self):
        self.status = None
        self.records = {}
        self.roster = None
        self.fail_status = None
        self.fail_push = None
        self.fail_submit = None
        self.submit_response = SubmitResponse(success=True, message='Received')
        self.drafts = []
        self.submissions = []
        self.roster_calls = 0

    def fetch_report_status(self, student_id, project_id):
        if self.fail_status:
            raise self.fail_status
        return self.status

    def fetch_report_by_id(self, report_id):
        if report_id not in self.records:
            raise ReportApiError(f'No report {report_id}', status_code=404)
        return self.records[report_id]

    def push_draft(self, payload):
        if self.fail_push:
            raise self.fail_push
        self.drafts.append(payload)
        return {'ok': True}

    def submit_report(self, payload):
        if self.fail_submit:
            raise self.fail_submit
        self.submissions.append(payload)
        if self.submit_response.success:
            # From now on the server reports the report as submitted
            document = restore_document(payload.fields)
            sections = {key: value for key, value in document.items() if key.startswith('section')}
            self.set_remote('r-submitted', 'submitted', {'id': 'r-submitted', 'status': 'submitted', **sections})
        return self.submit_response

    def fetch_project_roster(self, project_id):
        self.roster_calls += 1
        return self.roster

    def set_remote(self, report_id, status, record):
        self.status = ReportStatus(report_id=report_id, status=status)
        self.records[report_id] = record


class SyncExecutor:
    """Executor stand-in that runs submitted work immediately."""

    def __init__(self):
        self.calls = 0

    def submit(self, fn, *args, **kwargs):
        self.calls += 1
        fn(*args, **kwargs)


@pytest.fixture
def valid_report():
    return build_valid_report()


@pytest.fixture
def valid_sections():
    return copy.deepcopy(VALID_SECTIONS)


@pytest.fixture
def evidence_file():
    return make_evidence_file()


@pytest.fixture
def fake_api():
    return FakeReportApi()


@pytest.fixture
def sync_executor():
    return SyncExecutor()


@pytest.fixture
def app(fake_api, sync_executor):
    application = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'WTF_CSRF_ENABLED': False,
        'RATELIMIT_ENABLED': False,
    })
    application.extensions['report_api'] = fake_api
    application.extensions['draft_executor'] = sync_executor
    return application


@pytest.fixture
def client(app):
    return app.test_client()
