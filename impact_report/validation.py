"""
Section validation for impact report documents.

Validation Rules Documentation:
===============================

1. PARTICIPATION (section1)
   - participation_type: required enum (individual, team)
   - Team lead: name (3+ chars), CNIC, mobile, email, university, degree
     and a positive hours value are required
   - Team: at least 1 and at most 19 members besides the lead
   - Each member: name (3+ chars) and positive hours required;
     CNIC and mobile validated only if provided
   - Individual: team_members must be empty
   - privacy_consent must be true

2. PROJECT CONTEXT (section2)
   - problem_statement: 100-150 words (too short and too long both block)
   - discipline, baseline_evidence: required enum values

3. SDG MAPPING (section3)
   - primary_sdg_explanation: 50-1000 characters
   - secondary_sdgs: at most 2; each needs sdg_id 1-17 and a 30+ char
     justification

4. ACTIVITIES (section4)
   - activity_description: 50+ characters
   - has_financial_resources: required yes/no
   - If yes: personal OR raised funds amount; purposes required for personal
     funds, sources required for raised funds
   - If no: all financial fields must be empty

5. OUTCOMES (section5)
   - observed_change: 100+ characters
   - outcome_area, confidence_level: required enum values
   - At least 1 metric; each needs metric name, baseline and endline

6. RESOURCES (section6)
   - use_resources: required yes/no
   - If yes: at least 1 resource row with type, positive amount and source
   - If no: resources must be empty

7. PARTNERSHIPS (section7)
   - has_partners: required yes/no
   - If yes: at least 1 partner with name, type and role; at least one
     formalization option
   - If no: partners must be empty

8. EVIDENCE (section8)
   - At least 1 evidence type and 1 evidence file
   - description: 20-1000 characters
   - media_usage: public, limited or internal
   - Ethical attestations (authentic, informed, no harm) must all be true;
     reported as one aggregate error

9. REFLECTION (section9)
   - academic_application: 50+ characters
   - competency_scores: integers 0-10
   - strongest_competency: required enum value
   - personal_learning: 50-250 words

10. SUSTAINABILITY (section10)
   - continuation_status: yes, partially or no
   - continuation_details: 50+ characters
   - mechanisms: at least 1 when status is yes/partially, empty when no

11. SUMMARY - derived, never validated

12. DECLARATION (section12)
   - student_declaration and partner_verification must both be true;
     reported as one aggregate error

Validators are pure: they never touch the network, the cache or the
wizard state. Every error is addressed by a dotted field path relative to
its section, e.g. 'team_members.3.hours'.
"""

import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
from dataclasses import dataclass, field

from impact_report.document import DATA_SECTIONS, section_key, section_number
from impact_report.utils import count_words, is_blank, parse_amount, strip_dashes


@dataclass
class ValidationError:
    """Represents a single validation error with precise field path."""
    field: str
    message: str
    code: str = 'invalid'
    section: str = ''  # For grouping errors by section

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary for JSON response."""
        return {'field': self.field, 'message': self.message, 'code': self.code, 'section': self.section}


@dataclass
class ValidationResult:
    """Container for validation results."""
    errors: List[ValidationError] = field(default_factory=list)
    is_valid: bool = True

    def add_error(self, field: str, message: str, code: str = 'invalid', section: str = ''):
        """Add a validation error."""
        self.errors.append(ValidationError(field, message, code, section))
        self.is_valid = False

    def extend(self, other: 'ValidationResult'):
        """Merge errors from another result."""
        for error in other.errors:
            self.errors.append(error)
        if not other.is_valid:
            self.is_valid = False

    def get_errors_by_section(self) -> Dict[str, List[ValidationError]]:
        """Group errors by section for UI display."""
        by_section = {}
        for error in self.errors:
            section = error.section or 'general'
            if section not in by_section:
                by_section[section] = []
            by_section[section].append(error)
        return by_section


# Constants for validation
MAX_TEAM_MEMBERS = 19
MAX_SECONDARY_SDGS = 2
MIN_NAME_LENGTH = 3
MAX_TEXT_LENGTH = 1000
PROBLEM_STATEMENT_WORDS = (100, 150)
PERSONAL_LEARNING_WORDS = (50, 250)
MIN_SDG_EXPLANATION = 50
MIN_SDG_JUSTIFICATION = 30
MIN_ACTIVITY_DESCRIPTION = 50
MIN_OBSERVED_CHANGE = 100
MIN_EVIDENCE_DESCRIPTION = 20
MIN_ACADEMIC_APPLICATION = 50
MIN_CONTINUATION_DETAILS = 50
MAX_COMPETENCY_SCORE = 10
SDG_RANGE = (1, 17)

# Regex patterns
EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
CNIC_SHAPE_PATTERN = re.compile(r'^(\d{13}|\d{5}-\d{7}-\d)$')
CNIC_DIGITS_PATTERN = re.compile(r'^\d{13}$')
MOBILE_PATTERN = re.compile(r'^03\d{9}$')
HTML_TAG_PATTERN = re.compile(r'<[^>]+>')

# Enums - strictly enforced
YES_NO = ['yes', 'no']
PARTICIPATION_TYPES = ['individual', 'team']
DISCIPLINES = [
    'Business & Economics',
    'Computing & Technology',
    'Engineering & Built Environment',
    'Health Sciences',
    'Natural & Environmental Sciences',
    'Social Sciences & Development',
    'Arts & Humanities',
    'Media & Creative Industries',
    'Education',
    'Law',
    'Agriculture & Food Sciences',
    'Hospitality & Services',
    'Interdisciplinary Studies',
]
BASELINE_EVIDENCE_TYPES = [
    'Observation',
    'Survey Data',
    'Partner-Provided Data',
    'Government Data',
    'Academic Research',
    'Community Interviews',
    'Previous Project Data',
    'Other',
]
FUND_PURPOSES = ['Transport', 'Printing', 'Food', 'Equipment', 'Other']
OUTCOME_AREAS = [
    'Skill Development',
    'Behavior Change',
    'Access to Resources',
    'Policy Change',
    'Community Infrastructure',
    'Environmental Impact',
    'Health Improvement',
    'Awareness / Knowledge',
]
METRIC_UNITS = ['#', '%', 'Scale', 'Yes/No']
CONFIDENCE_LEVELS = ['High - Verified Data', 'Medium - Observation', 'Low - Estimate']
FORMALIZATION_OPTIONS = ['MOU', 'Official Letter', 'Email Confirmation', 'No formal document']
EVIDENCE_TYPES = ['Photos', 'Videos', 'Attendance', 'Materials', 'Partner Letter', 'Survey Data', 'Media']
MEDIA_USAGE_TIERS = ['public', 'limited', 'internal']
COMPETENCY_LABELS = [
    'Cognitive Competence',
    'Practical Competence',
    'Social Competence',
    'Transformative Competence',
]
CONTINUATION_STATUSES = ['yes', 'partially', 'no']
MECHANISM_OPTIONS = [
    'Community Ownership',
    'Partner Adoption',
    'Commercialization',
    'Policy Integration',
    'Institutionalization',
    'Volunteer Network',
]
ETHICAL_ATTESTATIONS = ['consent_authentic', 'consent_informed', 'consent_no_harm']
DECLARATION_ATTESTATIONS = ['student_declaration', 'partner_verification']


# A rule inspects section data and appends to the result
Rule = Callable[[Dict[str, Any], ValidationResult, str], None]
RowRule = Callable[[Dict[str, Any], int, str, ValidationResult, str], None]


def coerce_to_int(value: Any) -> Optional[int]:
    """Coerce various inputs to integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def is_valid_cnic(value: Any) -> bool:
    """
    Check a CNIC number.

    Accepts 13 digits, either bare or in the 5-7-1 dashed form
    (12345-1234567-1). Dashes are stripped before the digit check.
    """
    if is_blank(value):
        return False
    raw = str(value).strip()
    if not CNIC_SHAPE_PATTERN.match(raw):
        return False
    return CNIC_DIGITS_PATTERN.match(strip_dashes(raw)) is not None


def is_valid_mobile(value: Any) -> bool:
    """Check a mobile number: 11 digits starting 03, dashes ignored."""
    if is_blank(value):
        return False
    return MOBILE_PATTERN.match(strip_dashes(value)) is not None


def validate_string(value: Any, field_name: str, result: ValidationResult,
                    required: bool = True, max_length: int = MAX_TEXT_LENGTH,
                    allow_html: bool = False, section: str = '',
                    message: str = 'This field is required') -> bool:
    """Validate a string field."""
    if is_blank(value):
        if required:
            result.add_error(field_name, message, 'required', section)
        return False

    str_value = str(value).strip()

    if len(str_value) > max_length:
        result.add_error(field_name, f'Maximum {max_length} characters allowed', 'max_length', section)
        return False

    if not allow_html and HTML_TAG_PATTERN.search(str_value):
        result.add_error(field_name, 'HTML tags are not allowed', 'invalid_chars', section)
        return False

    return True


def validate_min_length(value: Any, field_name: str, min_length: int,
                        result: ValidationResult, message: str,
                        max_length: int = MAX_TEXT_LENGTH, section: str = '') -> bool:
    """Validate a free-text field against a character range."""
    str_value = '' if value is None else str(value).strip()

    if len(str_value) < min_length:
        result.add_error(field_name, message, 'min_length', section)
        return False

    if len(str_value) > max_length:
        result.add_error(field_name, f'Maximum {max_length} characters allowed', 'max_length', section)
        return False

    return True


def validate_word_count(value: Any, field_name: str, min_words: int, max_words: int,
                        result: ValidationResult, label: str, section: str = '') -> bool:
    """
    Validate a narrative field against a word range.

    Falling short and running over are equally blocking.
    """
    words = count_words(value)

    if words < min_words:
        result.add_error(
            field_name,
            f'{label} must be at least {min_words} words (currently {words})',
            'min_words', section
        )
        return False

    if words > max_words:
        result.add_error(
            field_name,
            f'{label} must not exceed {max_words} words (currently {words})',
            'max_words', section
        )
        return False

    return True


def validate_email(value: Any, field_name: str, result: ValidationResult,
                   required: bool = True, section: str = '') -> bool:
    """Validate an email address."""
    if is_blank(value):
        if required:
            result.add_error(field_name, 'Please enter a valid email address', 'required', section)
        return False

    str_value = str(value).strip()

    if len(str_value) > 254:
        result.add_error(field_name, 'Email address is too long', 'max_length', section)
        return False

    if not EMAIL_PATTERN.match(str_value):
        result.add_error(field_name, 'Please enter a valid email address', 'format', section)
        return False

    return True


def validate_cnic(value: Any, field_name: str, result: ValidationResult,
                  required: bool = True, section: str = '',
                  message: str = 'CNIC must be 13 digits (format: 12345-1234567-1)') -> bool:
    """Validate a CNIC; optional CNICs are only checked when provided."""
    if is_blank(value):
        if required:
            result.add_error(field_name, message, 'required', section)
        return False

    if not is_valid_cnic(value):
        result.add_error(field_name, message, 'format', section)
        return False

    return True


def validate_mobile(value: Any, field_name: str, result: ValidationResult,
                    required: bool = True, section: str = '',
                    message: str = 'Mobile number must start with 03 and be 11 digits') -> bool:
    """Validate a mobile number; optional numbers are only checked when provided."""
    if is_blank(value):
        if required:
            result.add_error(field_name, message, 'required', section)
        return False

    if not is_valid_mobile(value):
        result.add_error(field_name, message, 'format', section)
        return False

    return True


def validate_enum(value: Any, field_name: str, allowed: List[str],
                  result: ValidationResult, required: bool = True, section: str = '',
                  message: str = 'This field is required') -> bool:
    """Validate an enum field with strict matching."""
    if is_blank(value):
        if required:
            result.add_error(field_name, message, 'required', section)
        return False

    str_value = str(value).strip()

    if str_value not in allowed:
        result.add_error(field_name, f'Must be one of: {", ".join(allowed)}', 'enum', section)
        return False

    return True


def validate_multi_select(values: Any, field_name: str, allowed: Optional[List[str]],
                          result: ValidationResult, message: str,
                          section: str = '') -> bool:
    """Validate a multi-select list: at least one entry, all from the allowed set."""
    if not isinstance(values, list) or not [v for v in values if not is_blank(v)]:
        result.add_error(field_name, message, 'required', section)
        return False

    if allowed is not None:
        unknown = [v for v in values if v not in allowed]
        if unknown:
            result.add_error(field_name, f'Must be chosen from: {", ".join(allowed)}', 'enum', section)
            return False

    return True


def validate_positive_number(value: Any, field_name: str, result: ValidationResult,
                             required: bool = True, max_value: Optional[float] = None,
                             allow_zero: bool = True, section: str = '',
                             message: str = 'This field is required') -> bool:
    """Validate a positive number."""
    if is_blank(value):
        if required:
            result.add_error(field_name, message, 'required', section)
        return False

    num = parse_amount(value)
    if num is None:
        result.add_error(field_name, 'Must be a valid number', 'type', section)
        return False
    if num < 0 or (num == 0 and not allow_zero):
        result.add_error(field_name, 'Must be a positive number', 'min_value', section)
        return False
    if max_value is not None and num > max_value:
        result.add_error(field_name, f'Must not exceed {max_value}', 'max_value', section)
        return False
    return True


# Combinators
def require_if_equal(gate_field: str, value: Any, rule: Rule) -> Rule:
    """Apply a rule only while the gate field holds the given value."""
    def conditional(data: Dict[str, Any], result: ValidationResult, section: str):
        if data.get(gate_field) == value:
            rule(data, result, section)
    return conditional


def require_empty(fields: Iterable[str], field_name: str, message: str) -> Rule:
    """Require that every named field is blank or an empty list."""
    fields = list(fields)

    def empty(data: Dict[str, Any], result: ValidationResult, section: str):
        for name in fields:
            current = data.get(name)
            if isinstance(current, (list, dict)):
                if current:
                    result.add_error(field_name, message, 'not_allowed', section)
                    return
            elif not is_blank(current):
                result.add_error(field_name, message, 'not_allowed', section)
                return
    return empty


def require_all_true(fields: Iterable[str], field_name: str, message: str) -> Rule:
    """Require a group of attestations; one aggregate error if any is not true."""
    fields = list(fields)

    def attestations(data: Dict[str, Any], result: ValidationResult, section: str):
        if any(data.get(name) is not True for name in fields):
            result.add_error(field_name, message, 'consent', section)
    return attestations


def is_row_populated(row: Any) -> bool:
    """A row counts as populated when any scalar field holds a value."""
    if not isinstance(row, dict):
        return False
    for value in row.values():
        if isinstance(value, (list, dict)):
            continue
        if isinstance(value, bool):
            if value:
                return True
            continue
        if not is_blank(value):
            return True
    return False


def validate_rows(collection_field: str, row_rule: RowRule,
                  required_message: str, max_rows: Optional[int] = None) -> Rule:
    """Require at least one populated row and validate every row."""
    def rows(data: Dict[str, Any], result: ValidationResult, section: str):
        items = data.get(collection_field)
        if not isinstance(items, list) or not any(is_row_populated(r) for r in items):
            result.add_error(collection_field, required_message, 'required', section)
            return

        if max_rows is not None and len(items) > max_rows:
            result.add_error(collection_field, f'Maximum {max_rows} entries allowed', 'max_items', section)

        for index, row in enumerate(items):
            prefix = f'{collection_field}.{index}'
            if not isinstance(row, dict):
                result.add_error(prefix, f'Entry {index + 1} is invalid', 'type', section)
                continue
            row_rule(row, index, prefix, result, section)
    return rows


def gated_collection(gate_field: str, collection_field: str, row_rule: RowRule,
                     required_message: str, closed_message: str,
                     open_value: str = 'yes', closed_value: str = 'no',
                     max_rows: Optional[int] = None) -> List[Rule]:
    """
    Rules for a yes/no gate guarding a repeatable collection.

    When open the collection needs at least one populated row and every row
    is validated; when closed the collection must be empty and no row-level
    errors are raised.
    """
    return [
        require_if_equal(gate_field, open_value,
                         validate_rows(collection_field, row_rule, required_message, max_rows)),
        require_if_equal(gate_field, closed_value,
                         require_empty([collection_field], collection_field, closed_message)),
    ]


def _apply(rules: Iterable[Rule], data: Dict[str, Any], result: ValidationResult, section: str):
    for rule in rules:
        rule(data, result, section)


# Row rules
def _validate_member(row: Dict[str, Any], index: int, prefix: str,
                     result: ValidationResult, section: str):
    number = index + 1
    validate_min_length(row.get('name'), f'{prefix}.name', MIN_NAME_LENGTH, result,
                        f'Team member {number} name must be at least {MIN_NAME_LENGTH} characters',
                        section=section)
    validate_positive_number(row.get('hours'), f'{prefix}.hours', result, allow_zero=False,
                             section=section,
                             message=f'Team member {number} hours are required')
    validate_cnic(row.get('cnic'), f'{prefix}.cnic', result, required=False, section=section,
                  message=f'Team member {number} CNIC is invalid')
    validate_mobile(row.get('mobile'), f'{prefix}.mobile', result, required=False, section=section,
                    message=f'Team member {number} mobile number is invalid')


def _validate_secondary_sdg(row: Dict[str, Any], index: int, prefix: str,
                            result: ValidationResult, section: str):
    number = index + 1
    sdg_id = coerce_to_int(row.get('sdg_id'))
    if sdg_id is None or not SDG_RANGE[0] <= sdg_id <= SDG_RANGE[1]:
        result.add_error(f'{prefix}.sdg_id', f'SDG {number} must be between 1 and 17', 'range', section)
    validate_min_length(row.get('justification'), f'{prefix}.justification', MIN_SDG_JUSTIFICATION,
                        result, f'SDG {number} justification must be at least '
                        f'{MIN_SDG_JUSTIFICATION} characters', section=section)


def _validate_metric(row: Dict[str, Any], index: int, prefix: str,
                     result: ValidationResult, section: str):
    number = index + 1
    validate_string(row.get('metric'), f'{prefix}.metric', result, section=section,
                    message=f'Metric {number} name is required')
    validate_string(row.get('baseline'), f'{prefix}.baseline', result, section=section,
                    message=f'Metric {number} baseline value is required')
    validate_string(row.get('endline'), f'{prefix}.endline', result, section=section,
                    message=f'Metric {number} endline value is required')
    validate_enum(row.get('unit'), f'{prefix}.unit', METRIC_UNITS, result, required=False,
                  section=section)


def _validate_resource(row: Dict[str, Any], index: int, prefix: str,
                       result: ValidationResult, section: str):
    number = index + 1
    validate_string(row.get('type'), f'{prefix}.type', result, section=section,
                    message=f'Resource {number} type is required')
    validate_positive_number(row.get('amount'), f'{prefix}.amount', result, allow_zero=False,
                             section=section, message=f'Resource {number} amount is required')
    validate_string(row.get('source'), f'{prefix}.source', result, section=section,
                    message=f'Resource {number} source is required')


def _validate_partner(row: Dict[str, Any], index: int, prefix: str,
                      result: ValidationResult, section: str):
    number = index + 1
    validate_string(row.get('name'), f'{prefix}.name', result, section=section,
                    message=f'Partner {number} name is required')
    validate_string(row.get('type'), f'{prefix}.type', result, section=section,
                    message=f'Partner {number} type is required')
    validate_string(row.get('role'), f'{prefix}.role', result, section=section,
                    message=f'Partner {number} role is required')


def _validate_financial_resources(data: Dict[str, Any], result: ValidationResult, section: str):
    personal_ok = validate_positive_number(data.get('personal_funds'), 'personal_funds', result,
                                           required=False, section=section)
    raised_ok = validate_positive_number(data.get('raised_funds'), 'raised_funds', result,
                                         required=False, section=section)
    personal = parse_amount(data.get('personal_funds')) if personal_ok else 0
    raised = parse_amount(data.get('raised_funds')) if raised_ok else 0

    if not personal and not raised:
        result.add_error('financial_resources',
                         'Please specify personal funds OR raised funds amount', 'required', section)

    if personal and personal > 0:
        validate_multi_select(data.get('personal_funds_purpose'), 'personal_funds_purpose',
                              FUND_PURPOSES, result,
                              'Please specify how personal funds were used', section=section)

    if raised and raised > 0:
        validate_multi_select(data.get('raised_funds_source'), 'raised_funds_source', None, result,
                              'Please specify the source of raised funds', section=section)


def _validate_formalization(data: Dict[str, Any], result: ValidationResult, section: str):
    validate_multi_select(data.get('formalization'), 'formalization', FORMALIZATION_OPTIONS, result,
                          'Please specify how the partnership was formalized', section=section)


def _validate_mechanisms(data: Dict[str, Any], result: ValidationResult, section: str):
    validate_multi_select(data.get('mechanisms'), 'mechanisms', MECHANISM_OPTIONS, result,
                          'Select at least one sustainability mechanism', section=section)


TEAM_RULES = gated_collection(
    'participation_type', 'team_members', _validate_member,
    required_message='Add at least one team member for team participation',
    closed_message='Individual participation cannot list team members',
    open_value='team', closed_value='individual', max_rows=MAX_TEAM_MEMBERS
)

FINANCIAL_RULES = [
    require_if_equal('has_financial_resources', 'yes', _validate_financial_resources),
    require_if_equal('has_financial_resources', 'no', require_empty(
        ['personal_funds', 'personal_funds_purpose', 'raised_funds', 'raised_funds_source'],
        'financial_resources',
        'Remove financial details or select Yes for financial resources'
    )),
]

RESOURCE_RULES = gated_collection(
    'use_resources', 'resources', _validate_resource,
    required_message='Add at least one resource',
    closed_message='Remove listed resources or select Yes for resources used'
)

PARTNER_RULES = gated_collection(
    'has_partners', 'partners', _validate_partner,
    required_message='Add at least one partner',
    closed_message='Remove listed partners or select Yes for partnerships'
) + [require_if_equal('has_partners', 'yes', _validate_formalization)]

MECHANISM_RULES = [
    require_if_equal('continuation_status', 'yes', _validate_mechanisms),
    require_if_equal('continuation_status', 'partially', _validate_mechanisms),
    require_if_equal('continuation_status', 'no', require_empty(
        ['mechanisms'], 'mechanisms', 'One-off initiatives cannot list sustainability mechanisms'
    )),
]

ETHICAL_RULE = require_all_true(
    ETHICAL_ATTESTATIONS, 'ethical_compliance',
    'You must confirm the evidence is authentic, consented and causes no harm'
)

DECLARATION_RULE = require_all_true(
    DECLARATION_ATTESTATIONS, 'declaration',
    'You must accept the student declaration and confirm partner verification to submit'
)


# Section validators
def validate_participation(data: Dict[str, Any]) -> ValidationResult:
    """Validate section 1: participation and team composition."""
    section = 'section1'
    result = ValidationResult()

    validate_enum(data.get('participation_type'), 'participation_type', PARTICIPATION_TYPES,
                  result, section=section, message='Participation type is required')

    lead = data.get('team_lead')
    if not isinstance(lead, dict):
        lead = {}

    validate_min_length(lead.get('name'), 'team_lead.name', MIN_NAME_LENGTH, result,
                        'Full name must be at least 3 characters', section=section)
    validate_cnic(lead.get('cnic'), 'team_lead.cnic', result, section=section)
    validate_mobile(lead.get('mobile'), 'team_lead.mobile', result, section=section)
    validate_email(lead.get('email'), 'team_lead.email', result, section=section)
    validate_string(lead.get('university'), 'team_lead.university', result, section=section,
                    message='University is required')
    validate_string(lead.get('degree'), 'team_lead.degree', result, section=section,
                    message='Degree program is required')
    validate_positive_number(lead.get('hours'), 'team_lead.hours', result, allow_zero=False,
                             section=section, message='Hours contributed are required')

    _apply(TEAM_RULES, data, result, section)

    if data.get('privacy_consent') is not True:
        result.add_error('privacy_consent', 'You must consent to privacy terms to continue',
                         'consent', section)

    return result


def validate_project_context(data: Dict[str, Any]) -> ValidationResult:
    """Validate section 2: problem statement and project context."""
    section = 'section2'
    result = ValidationResult()

    validate_word_count(data.get('problem_statement'), 'problem_statement',
                        PROBLEM_STATEMENT_WORDS[0], PROBLEM_STATEMENT_WORDS[1], result,
                        'Problem statement', section=section)
    validate_enum(data.get('discipline'), 'discipline', DISCIPLINES, result, section=section,
                  message='Discipline is required')
    validate_enum(data.get('baseline_evidence'), 'baseline_evidence', BASELINE_EVIDENCE_TYPES,
                  result, section=section, message='Baseline evidence source is required')

    return result


def validate_sdg_mapping(data: Dict[str, Any]) -> ValidationResult:
    """Validate section 3: SDG mapping."""
    section = 'section3'
    result = ValidationResult()

    validate_min_length(data.get('primary_sdg_explanation'), 'primary_sdg_explanation',
                        MIN_SDG_EXPLANATION, result,
                        'Primary SDG explanation must be at least 50 characters',
                        section=section)

    # Secondary SDGs are optional, but validated if present
    secondary = data.get('secondary_sdgs') or []
    if not isinstance(secondary, list):
        result.add_error('secondary_sdgs', 'Secondary SDGs must be a list', 'type', section)
        return result

    if len(secondary) > MAX_SECONDARY_SDGS:
        result.add_error('secondary_sdgs', f'No more than {MAX_SECONDARY_SDGS} secondary SDGs allowed',
                         'max_items', section)

    for index, row in enumerate(secondary):
        prefix = f'secondary_sdgs.{index}'
        if not isinstance(row, dict):
            result.add_error(prefix, f'SDG {index + 1} is invalid', 'type', section)
            continue
        _validate_secondary_sdg(row, index, prefix, result, section)

    return result


def validate_activities(data: Dict[str, Any]) -> ValidationResult:
    """Validate section 4: activities and financial resources."""
    section = 'section4'
    result = ValidationResult()

    validate_min_length(data.get('activity_description'), 'activity_description',
                        MIN_ACTIVITY_DESCRIPTION, result,
                        'Activity description must be at least 50 characters', section=section)

    if validate_enum(data.get('has_financial_resources'), 'has_financial_resources', YES_NO,
                     result, section=section):
        _apply(FINANCIAL_RULES, data, result, section)

    return result


def validate_outcomes(data: Dict[str, Any]) -> ValidationResult:
    """Validate section 5: outcomes and metrics."""
    section = 'section5'
    result = ValidationResult()

    validate_min_length(data.get('observed_change'), 'observed_change', MIN_OBSERVED_CHANGE, result,
                        'Observed change description must be at least 100 characters',
                        max_length=2 * MAX_TEXT_LENGTH, section=section)
    validate_enum(data.get('outcome_area'), 'outcome_area', OUTCOME_AREAS, result,
                  section=section, message='Outcome area is required')

    metric_rule = validate_rows('metrics', _validate_metric, 'At least one metric is required')
    metric_rule(data, result, section)

    validate_enum(data.get('confidence_level'), 'confidence_level', CONFIDENCE_LEVELS, result,
                  section=section, message='Confidence level is required')

    return result


def validate_resources(data: Dict[str, Any]) -> ValidationResult:
    """Validate section 6: resource inventory."""
    section = 'section6'
    result = ValidationResult()

    if validate_enum(data.get('use_resources'), 'use_resources', YES_NO, result, section=section):
        _apply(RESOURCE_RULES, data, result, section)

    return result


def validate_partnerships(data: Dict[str, Any]) -> ValidationResult:
    """Validate section 7: partnerships."""
    section = 'section7'
    result = ValidationResult()

    if validate_enum(data.get('has_partners'), 'has_partners', YES_NO, result, section=section):
        _apply(PARTNER_RULES, data, result, section)

    return result


def validate_evidence(data: Dict[str, Any]) -> ValidationResult:
    """Validate section 8: evidence and ethical compliance."""
    section = 'section8'
    result = ValidationResult()

    validate_multi_select(data.get('evidence_types'), 'evidence_types', EVIDENCE_TYPES, result,
                          'Select at least one evidence type', section=section)

    files = data.get('evidence_files')
    if not isinstance(files, list) or len(files) == 0:
        result.add_error('evidence_files', 'At least one evidence file is required',
                         'required', section)

    validate_min_length(data.get('description'), 'description', MIN_EVIDENCE_DESCRIPTION, result,
                        'Evidence description must be at least 20 characters', section=section)
    validate_enum(data.get('media_usage'), 'media_usage', MEDIA_USAGE_TIERS, result,
                  section=section, message='Media usage tier is required')

    ETHICAL_RULE(data, result, section)

    return result


def validate_reflection(data: Dict[str, Any]) -> ValidationResult:
    """Validate section 9: academic integration and reflection."""
    section = 'section9'
    result = ValidationResult()

    validate_min_length(data.get('academic_application'), 'academic_application',
                        MIN_ACADEMIC_APPLICATION, result,
                        'Academic application must be at least 50 characters', section=section)

    scores = data.get('competency_scores')
    if not isinstance(scores, dict):
        result.add_error('competency_scores', 'Competency scores are required', 'required', section)
    else:
        for name, value in scores.items():
            score = coerce_to_int(value)
            if score is None or not 0 <= score <= MAX_COMPETENCY_SCORE:
                result.add_error(f'competency_scores.{name}',
                                 f'Score must be between 0 and {MAX_COMPETENCY_SCORE}', 'range', section)

    validate_enum(data.get('strongest_competency'), 'strongest_competency', COMPETENCY_LABELS,
                  result, section=section, message='Select your strongest competency')
    validate_word_count(data.get('personal_learning'), 'personal_learning',
                        PERSONAL_LEARNING_WORDS[0], PERSONAL_LEARNING_WORDS[1], result,
                        'Personal learning', section=section)

    return result


def validate_sustainability(data: Dict[str, Any]) -> ValidationResult:
    """Validate section 10: sustainability."""
    section = 'section10'
    result = ValidationResult()

    if validate_enum(data.get('continuation_status'), 'continuation_status', CONTINUATION_STATUSES,
                     result, section=section, message='Continuation status is required'):
        _apply(MECHANISM_RULES, data, result, section)

    validate_min_length(data.get('continuation_details'), 'continuation_details',
                        MIN_CONTINUATION_DETAILS, result,
                        'Continuation details must be at least 50 characters', section=section)

    return result


def validate_declaration(data: Dict[str, Any]) -> ValidationResult:
    """Validate section 12: declarations."""
    section = 'section12'
    result = ValidationResult()
    DECLARATION_RULE(data, result, section)
    return result


SECTION_VALIDATORS = {
    1: validate_participation,
    2: validate_project_context,
    3: validate_sdg_mapping,
    4: validate_activities,
    5: validate_outcomes,
    6: validate_resources,
    7: validate_partnerships,
    8: validate_evidence,
    9: validate_reflection,
    10: validate_sustainability,
    12: validate_declaration,
}


def validate_section(section: Union[int, str], data: Any) -> ValidationResult:
    """
    Validate one section's data.

    Sections without a registered validator (the derived summary) always
    pass.

    Args:
        section: Section number or key
        data: The section's data mapping

    Returns:
        ValidationResult with errors addressed relative to the section
    """
    validator = SECTION_VALIDATORS.get(section_number(section))
    if validator is None:
        return ValidationResult()

    if not isinstance(data, dict):
        result = ValidationResult()
        result.add_error('', 'Section data is missing', 'required', section_key(section))
        return result

    return validator(data)


def validate_all_sections(document: Dict[str, Any]) -> ValidationResult:
    """
    Validate every data section of a report.

    Used as the final check before submission.
    """
    result = ValidationResult()

    if not isinstance(document, dict):
        result.add_error('', 'Report must be a JSON object', 'type', 'general')
        return result

    for number in DATA_SECTIONS:
        result.extend(validate_section(number, document.get(section_key(number))))

    return result
