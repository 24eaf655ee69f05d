"""
Report document model.

A report is a plain nested dictionary holding one entry per data section.
The same shape travels through the validators, the local cache mirror, the
remote draft endpoint and the submission packager.

Section layout:
    1  Participation      7  Partnerships
    2  Project context    8  Evidence
    3  SDG mapping        9  Reflection
    4  Activities        10  Sustainability
    5  Outcomes          11  Summary (derived, no data)
    6  Resources         12  Declaration
"""

import copy
from typing import Any, Dict, Optional, Union


FIRST_SECTION = 1
FINAL_SECTION = 12
SUMMARY_SECTION = 11
SECTION_NUMBERS = list(range(FIRST_SECTION, FINAL_SECTION + 1))
DATA_SECTIONS = [n for n in SECTION_NUMBERS if n != SUMMARY_SECTION]

SECTION_TITLES = {
    1: 'Participation',
    2: 'Project Context',
    3: 'SDG Mapping',
    4: 'Activities',
    5: 'Outcomes',
    6: 'Resources',
    7: 'Partnerships',
    8: 'Evidence',
    9: 'Reflection',
    10: 'Sustainability',
    11: 'Summary',
    12: 'Declaration',
}


# Row templates for repeatable collections
TEAM_LEAD_TEMPLATE = {
    'name': '',
    'cnic': '',
    'mobile': '',
    'email': '',
    'university': '',
    'degree': '',
    'year': '',
    'role': '',
    'hours': '',
}

MEMBER_TEMPLATE = {
    'name': '',
    'cnic': '',
    'mobile': '',
    'university': '',
    'program': '',
    'year': '',
    'role': '',
    'hours': '',
}

SECONDARY_SDG_TEMPLATE = {
    'sdg_id': '',
    'target_id': '',
    'indicator_id': '',
    'justification': '',
    'evidence_files': [],
}

METRIC_TEMPLATE = {'metric': '', 'baseline': '', 'endline': '', 'unit': '#'}

RESOURCE_TEMPLATE = {
    'type': '',
    'amount': '',
    'unit': '',
    'source': '',
    'purpose': '',
    'verification': '',
}

PARTNER_TEMPLATE = {'name': '', 'type': '', 'role': '', 'contribution': ''}

ROW_TEMPLATES = {
    'team_members': MEMBER_TEMPLATE,
    'secondary_sdgs': SECONDARY_SDG_TEMPLATE,
    'metrics': METRIC_TEMPLATE,
    'resources': RESOURCE_TEMPLATE,
    'partners': PARTNER_TEMPLATE,
}

COMPETENCIES = ['cognitive', 'practical', 'social', 'transformative']

_DEFAULT_SECTIONS = {
    'section1': {
        'participation_type': 'individual',
        'team_lead': TEAM_LEAD_TEMPLATE,
        'team_members': [],
        'privacy_consent': False,
    },
    'section2': {
        'problem_statement': '',
        'discipline': '',
        'baseline_evidence': '',
    },
    'section3': {
        'primary_sdg_explanation': '',
        'secondary_sdgs': [],
    },
    'section4': {
        'activity_description': '',
        'has_financial_resources': 'no',
        'personal_funds': '',
        'personal_funds_purpose': [],
        'raised_funds': '',
        'raised_funds_source': [],
        'evidence_files': [],
    },
    'section5': {
        'observed_change': '',
        'outcome_area': '',
        'metrics': [METRIC_TEMPLATE],
        'confidence_level': '',
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
        'evidence_types': [],
        'evidence_files': [],
        'description': '',
        'media_usage': 'public',
        'consent_authentic': False,
        'consent_informed': False,
        'consent_no_harm': False,
        'partner_verified': False,
        'partner_verification_files': [],
    },
    'section9': {
        'academic_application': '',
        'competency_scores': {name: 0 for name in COMPETENCIES},
        'strongest_competency': '',
        'personal_learning': '',
    },
    'section10': {
        'continuation_status': 'yes',
        'continuation_details': '',
        'mechanisms': [],
        'scaling_potential': '',
        'policy_influence': '',
    },
    'section12': {
        'student_declaration': False,
        'partner_verification': False,
        'partner_verification_files': [],
    },
}

# Gate field -> (closed value, {collection: cleared value})
GATED_FIELDS = {
    'section1': {'participation_type': ('individual', {'team_members': []})},
    'section4': {
        'has_financial_resources': ('no', {
            'personal_funds': '',
            'personal_funds_purpose': [],
            'raised_funds': '',
            'raised_funds_source': [],
        }),
    },
    'section6': {'use_resources': ('no', {'resources': []})},
    'section7': {'has_partners': ('no', {'partners': [], 'formalization': []})},
    'section10': {'continuation_status': ('no', {'mechanisms': []})},
}


# Marks a key the default document does not define
_NO_TEMPLATE = object()


def scalar_to_string(value: Any) -> str:
    """Render a scalar the way form fields carry it."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def normalize_value(template: Any, value: Any, key: Optional[str] = None) -> Any:
    """
    Bring a value into the shape the default document gives it.

    Records are laid over their template and rows over their collection's
    row template. Scalars follow the template's type: text fields hold
    form text, number fields hold ints where the text parses, checkboxes
    hold booleans where the text is 'true' or 'false', and a None default
    turns blank text back into None. Anything that does not fit is kept as
    form text, and file attachments are kept as they are.
    """
    if isinstance(value, dict):
        base = template if isinstance(template, dict) else {}
        normalized = copy.deepcopy(base)
        for item_key, item in value.items():
            normalized[item_key] = normalize_value(base.get(item_key, _NO_TEMPLATE), item, item_key)
        return normalized

    if isinstance(value, (list, tuple)):
        row_template = ROW_TEMPLATES.get(key, _NO_TEMPLATE)
        return [normalize_value(row_template, item) for item in value]

    if value is not None and not isinstance(value, (str, int, float)):
        return value

    if isinstance(template, bool):
        if isinstance(value, bool):
            return value
        if value in ('true', 'false'):
            return value == 'true'
    elif isinstance(template, int):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        try:
            return int(scalar_to_string(value))
        except ValueError:
            pass
    elif template is None:
        return scalar_to_string(value) or None

    return scalar_to_string(value)


def section_key(section: Union[int, str]) -> str:
    """
    Normalise a section identifier to its document key.

    Args:
        section: Section number (3) or key ('section3')

    Returns:
        The document key, e.g. 'section3'

    Raises:
        ValueError: If the identifier is not one of the twelve sections
    """
    number = section_number(section)
    return f'section{number}'


def section_number(section: Union[int, str]) -> int:
    """Normalise a section identifier to its number (1-12)."""
    if isinstance(section, bool):
        raise ValueError(f'Unknown section: {section!r}')

    if isinstance(section, str):
        raw = section[len('section'):] if section.startswith('section') else section
        try:
            number = int(raw)
        except ValueError:
            raise ValueError(f'Unknown section: {section!r}')
    elif isinstance(section, int):
        number = section
    else:
        raise ValueError(f'Unknown section: {section!r}')

    if number not in SECTION_NUMBERS:
        raise ValueError(f'Unknown section: {section!r}')
    return number


def default_section(section: Union[int, str]) -> Dict[str, Any]:
    """Return a fresh default-valued copy of one data section."""
    key = section_key(section)
    if key not in _DEFAULT_SECTIONS:
        raise ValueError(f'Section {key} is derived and holds no data')
    return copy.deepcopy(_DEFAULT_SECTIONS[key])


def default_report(project_id: str = '', report_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Build an empty report document.

    Every call returns independent containers, so mutating one document
    never leaks into another.
    """
    document = {'project_id': project_id or '', 'report_id': report_id}
    for key, value in _DEFAULT_SECTIONS.items():
        document[key] = copy.deepcopy(value)
    return document


def new_row(collection: str) -> Dict[str, Any]:
    """Return a blank row for a repeatable collection."""
    if collection not in ROW_TEMPLATES:
        raise ValueError(f'Unknown collection: {collection}')
    return copy.deepcopy(ROW_TEMPLATES[collection])


def merge_section(document: Dict[str, Any], section: Union[int, str],
                  partial: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow-merge a patch into one section.

    Only the top-level fields named in the patch are replaced. Lists and
    nested records are taken from the patch as whole values; callers pass
    full replacement lists when editing a collection. Patched values are
    normalised against the section defaults (see normalize_value).

    Args:
        document: Current report document (not modified)
        section: Section number or key
        partial: Fields to replace

    Returns:
        A new document with the merged section
    """
    key = section_key(section)
    if key not in _DEFAULT_SECTIONS:
        raise ValueError(f'Section {key} is derived and cannot be patched')
    if not isinstance(partial, dict):
        raise ValueError('Section patch must be a mapping')

    merged = dict(document)
    current = document.get(key)
    if not isinstance(current, dict):
        current = default_section(key)
    template = _DEFAULT_SECTIONS[key]
    patch = {
        field_name: normalize_value(template.get(field_name, _NO_TEMPLATE), value, field_name)
        for field_name, value in partial.items()
    }
    merged[key] = {**current, **patch}
    return merged


def gate_patch(section: Union[int, str], partial: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extend a patch so that closing a gate also clears its collections.

    Switching 'has_partners' to 'no', for example, empties 'partners' and
    'formalization' in the same patch. Patches that do not touch a gate are
    returned unchanged.
    """
    gates = GATED_FIELDS.get(section_key(section), {})
    patch = dict(partial)
    for gate_field, (closed_value, cleared) in gates.items():
        if patch.get(gate_field) == closed_value:
            for field_name, empty in cleared.items():
                patch[field_name] = copy.deepcopy(empty)
    return patch


def is_participation_empty(section: Dict[str, Any]) -> bool:
    """Check whether the participation section has never been filled in."""
    if not section:
        return True
    if section.get('team_members'):
        return False
    if section.get('participation_type', 'individual') != 'individual':
        return False
    lead = section.get('team_lead') or {}
    return not any(str(value).strip() for value in lead.values() if value is not None)


def ensure_sections(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fill in any data section missing from a stored document.

    Stored drafts written before a section existed still load; present
    sections are merged over their defaults so new fields get default values.
    """
    complete = dict(document)
    complete.setdefault('project_id', '')
    complete.setdefault('report_id', None)
    for key, value in _DEFAULT_SECTIONS.items():
        stored = complete.get(key)
        if isinstance(stored, dict):
            complete[key] = normalize_value(value, stored, key)
        else:
            complete[key] = copy.deepcopy(value)
    return complete
