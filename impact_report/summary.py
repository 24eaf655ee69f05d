"""
Report Summary Module

Builds the read-only section 11 summary from the other sections. The
summary owns no data: it is recomputed from the document whenever it is
requested.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from impact_report.document import DATA_SECTIONS, SECTION_TITLES, section_key
from impact_report.packager import NodeKind, classify
from impact_report.utils import parse_amount
from impact_report.validation import validate_section


MAX_ENGAGEMENT_SCORE = 100


@dataclass
class SectionStatus:
    """Completion state of one section."""
    number: int
    title: str
    complete: bool
    error_count: int = 0


@dataclass
class ReportSummary:
    """Key facts of a report."""
    project_id: str = ''
    participation_type: str = 'individual'
    total_students: int = 1
    total_hours: float = 0.0
    average_hours: float = 0.0
    engagement_score: int = 0
    secondary_sdg_count: int = 0
    metric_count: int = 0
    partner_count: int = 0
    resource_count: int = 0
    evidence_file_count: int = 0
    total_funds: float = 0.0
    sections: List[SectionStatus] = field(default_factory=list)

    @property
    def completed_sections(self) -> int:
        return len([s for s in self.sections if s.complete])

    @property
    def ready_to_submit(self) -> bool:
        return bool(self.sections) and all(s.complete for s in self.sections)

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to dictionary for API response."""
        return {
            'project_id': self.project_id,
            'participation': {
                'type': self.participation_type,
                'total_students': self.total_students,
                'total_hours': self.total_hours,
                'average_hours': self.average_hours,
                'engagement_score': self.engagement_score,
            },
            'key_facts': {
                'secondary_sdg_count': self.secondary_sdg_count,
                'metric_count': self.metric_count,
                'partner_count': self.partner_count,
                'resource_count': self.resource_count,
                'evidence_file_count': self.evidence_file_count,
                'total_funds': self.total_funds,
            },
            'sections': [
                {
                    'number': s.number,
                    'title': s.title,
                    'complete': s.complete,
                    'error_count': s.error_count,
                }
                for s in self.sections
            ],
            'completed_sections': self.completed_sections,
            'ready_to_submit': self.ready_to_submit,
        }


def _positive(value: Any) -> float:
    amount = parse_amount(value)
    return amount if amount and amount > 0 else 0.0


def _count_files(value: Any) -> int:
    kind = classify(value)
    if kind is NodeKind.FILE:
        return 1
    if kind is NodeKind.ARRAY:
        return sum(_count_files(item) for item in value)
    if kind is NodeKind.RECORD:
        return sum(_count_files(item) for item in value.values())
    return 0


def build_report_summary(document: Dict[str, Any]) -> ReportSummary:
    """
    Build the section 11 summary.

    Engagement score is the average hours per student doubled, capped
    at 100.
    """
    summary = ReportSummary(project_id=document.get('project_id', ''))

    participation = document.get('section1') or {}
    summary.participation_type = participation.get('participation_type', 'individual')
    members = []
    if summary.participation_type == 'team':
        members = participation.get('team_members') or []
    summary.total_students = 1 + len(members)

    lead_hours = _positive((participation.get('team_lead') or {}).get('hours'))
    member_hours = sum(_positive(m.get('hours')) for m in members if isinstance(m, dict))
    summary.total_hours = lead_hours + member_hours
    summary.average_hours = round(summary.total_hours / summary.total_students, 1)
    # Capped before rounding; a sum of huge hours can reach infinity
    summary.engagement_score = int(round(min(
        float(MAX_ENGAGEMENT_SCORE),
        summary.total_hours / summary.total_students * 2
    )))

    summary.secondary_sdg_count = len((document.get('section3') or {}).get('secondary_sdgs') or [])
    summary.metric_count = len((document.get('section5') or {}).get('metrics') or [])
    summary.resource_count = len((document.get('section6') or {}).get('resources') or [])
    summary.partner_count = len((document.get('section7') or {}).get('partners') or [])

    activities = document.get('section4') or {}
    summary.total_funds = _positive(activities.get('personal_funds')) + _positive(activities.get('raised_funds'))

    summary.evidence_file_count = sum(
        _count_files(document.get(section_key(number))) for number in DATA_SECTIONS
    )

    for number in DATA_SECTIONS:
        result = validate_section(number, document.get(section_key(number)))
        summary.sections.append(SectionStatus(
            number=number,
            title=SECTION_TITLES[number],
            complete=result.is_valid,
            error_count=len(result.errors),
        ))

    return summary
