"""
Unit tests for validation module.
"""

import pytest
from impact_report.document import default_report, gate_patch, merge_section
from impact_report.validation import (
    ValidationResult, validate_section, validate_all_sections,
    validate_participation, validate_project_context, validate_activities,
    validate_partnerships, validate_evidence, validate_reflection,
    validate_sustainability, validate_declaration,
    validate_positive_number, validate_email, validate_word_count,
    is_valid_cnic, is_valid_mobile, MAX_TEAM_MEMBERS
)
from impact_report.wizard import WizardState


def fields(result):
    return [e.field for e in result.errors]


class TestValidationResult:
    def test_initially_valid(self):
        result = ValidationResult()
        assert result.is_valid is True
        assert len(result.errors) == 0

    def test_add_error(self):
        result = ValidationResult()
        result.add_error('field', 'message', 'code', 'section2')
        assert result.is_valid is False
        assert result.errors[0].field == 'field'
        assert result.errors[0].message == 'message'
        assert result.errors[0].code == 'code'
        assert result.errors[0].section == 'section2'

    def test_error_to_dict(self):
        result = ValidationResult()
        result.add_error('team_lead.cnic', 'message', 'code', 'section1')
        assert result.errors[0].to_dict() == {
            'field': 'team_lead.cnic', 'message': 'message', 'code': 'code', 'section': 'section1'
        }

    def test_extend_carries_invalid_state(self):
        result = ValidationResult()
        other = ValidationResult()
        other.add_error('a', 'b')
        result.extend(other)
        assert result.is_valid is False
        assert fields(result) == ['a']

    def test_errors_grouped_by_section(self):
        result = ValidationResult()
        result.add_error('a', 'm', section='section1')
        result.add_error('b', 'm', section='section2')
        result.add_error('c', 'm', section='section1')
        grouped = result.get_errors_by_section()
        assert [e.field for e in grouped['section1']] == ['a', 'c']
        assert [e.field for e in grouped['section2']] == ['b']


class TestCnic:
    @pytest.mark.parametrize('value', ['3520212345671', '35202-1234567-1', ' 35202-1234567-1 '])
    def test_valid(self, value):
        assert is_valid_cnic(value) is True

    @pytest.mark.parametrize('value', [
        '', None, '123', '35202123456712', '35202-12345671', '3520-21234567-1',
        '35202-1234567-12', 'abcde-fghijkl-m',
    ])
    def test_invalid(self, value):
        assert is_valid_cnic(value) is False


class TestMobile:
    @pytest.mark.parametrize('value', ['03001234567', '0300-1234567', '0321-123-4567'])
    def test_valid(self, value):
        assert is_valid_mobile(value) is True

    @pytest.mark.parametrize('value', ['', None, '04001234567', '0300123456', '030012345678', '+923001234567'])
    def test_invalid(self, value):
        assert is_valid_mobile(value) is False


class TestEmailValidation:
    def test_valid_email(self):
        result = ValidationResult()
        assert validate_email('test@example.com', 'email', result) is True

    def test_invalid_email(self):
        result = ValidationResult()
        assert validate_email('not-an-email', 'email', result) is False
        assert result.errors[0].code == 'format'

    def test_whitespace_in_email(self):
        result = ValidationResult()
        assert validate_email('a b@example.com', 'email', result) is False

    def test_optional_empty_email(self):
        result = ValidationResult()
        assert validate_email('', 'email', result, required=False) is False
        assert result.is_valid is True


class TestPositiveNumberValidation:
    def test_valid_positive(self):
        result = ValidationResult()
        assert validate_positive_number('12.5', 'field', result) is True

    def test_zero_allowed_by_default(self):
        result = ValidationResult()
        assert validate_positive_number(0, 'field', result) is True

    def test_zero_rejected_when_strict(self):
        result = ValidationResult()
        assert validate_positive_number('0', 'field', result, allow_zero=False) is False
        assert result.errors[0].code == 'min_value'

    def test_negative(self):
        result = ValidationResult()
        assert validate_positive_number(-100, 'field', result) is False

    def test_not_a_number(self):
        result = ValidationResult()
        assert validate_positive_number('ten', 'field', result) is False
        assert result.errors[0].code == 'type'


class TestWordCount:
    def words(self, count):
        return ' '.join(['word'] * count)

    def test_within_range(self):
        result = ValidationResult()
        assert validate_word_count(self.words(100), 'f', 100, 150, result, 'Text') is True
        assert validate_word_count(self.words(150), 'f', 100, 150, result, 'Text') is True
        assert result.is_valid is True

    def test_too_short(self):
        result = ValidationResult()
        assert validate_word_count(self.words(99), 'f', 100, 150, result, 'Text') is False
        assert result.errors[0].code == 'min_words'
        assert '(currently 99)' in result.errors[0].message

    def test_too_long_is_blocking(self):
        result = ValidationResult()
        assert validate_word_count(self.words(151), 'f', 100, 150, result, 'Text') is False
        assert result.errors[0].code == 'max_words'

    def test_whitespace_runs_count_once(self):
        result = ValidationResult()
        text = '  ' + '\n\n  '.join(['word'] * 100) + '   '
        assert validate_word_count(text, 'f', 100, 150, result, 'Text') is True


class TestCompleteReport:
    def test_every_section_passes(self, valid_report):
        for number in [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 12]:
            result = validate_section(number, valid_report[f'section{number}'])
            assert result.is_valid, (number, fields(result))

    def test_all_sections_pass(self, valid_report):
        assert validate_all_sections(valid_report).is_valid is True

    def test_empty_report_fails_in_many_sections(self):
        result = validate_all_sections(default_report('p1'))
        assert result.is_valid is False
        grouped = result.get_errors_by_section()
        assert 'section1' in grouped
        assert 'section12' in grouped
        assert 'section11' not in grouped

    def test_summary_section_always_passes(self):
        assert validate_section(11, None).is_valid is True
        assert validate_section('section11', {'anything': 1}).is_valid is True

    def test_missing_section_data(self):
        result = validate_section(2, None)
        assert result.is_valid is False
        assert fields(result) == ['']

    def test_unknown_section(self):
        with pytest.raises(ValueError):
            validate_section(13, {})


class TestParticipation:
    def section(self, valid_report, **changes):
        return {**valid_report['section1'], **changes}

    def test_team_member_missing_hours_is_addressed_by_path(self, valid_report):
        data = self.section(valid_report, participation_type='team', team_members=[
            {'name': 'Bilal Ahmed', 'cnic': '', 'mobile': '', 'hours': '12'},
            {'name': 'Sara Ali', 'cnic': '', 'mobile': '', 'hours': ''},
        ])
        result = validate_participation(data)
        assert fields(result) == ['team_members.1.hours']
        assert result.errors[0].message == 'Team member 2 hours are required'

    def test_member_cnic_validated_only_if_present(self, valid_report):
        data = self.section(valid_report, participation_type='team', team_members=[
            {'name': 'Bilal Ahmed', 'cnic': '', 'hours': '12'},
            {'name': 'Sara Ali', 'cnic': '12345', 'hours': '5'},
        ])
        assert fields(validate_participation(data)) == ['team_members.1.cnic']

    def test_member_name_too_short(self, valid_report):
        data = self.section(valid_report, participation_type='team',
                            team_members=[{'name': 'Al', 'hours': '3'}])
        assert fields(validate_participation(data)) == ['team_members.0.name']

    def test_team_requires_members(self, valid_report):
        data = self.section(valid_report, participation_type='team', team_members=[])
        assert fields(validate_participation(data)) == ['team_members']

    def test_team_size_capped(self, valid_report):
        members = [{'name': f'Member {i}', 'hours': '4'} for i in range(MAX_TEAM_MEMBERS + 1)]
        data = self.section(valid_report, participation_type='team', team_members=members)
        result = validate_participation(data)
        assert fields(result) == ['team_members']
        assert result.errors[0].code == 'max_items'

    def test_individual_cannot_list_members(self, valid_report):
        data = self.section(valid_report, team_members=[{'name': 'Bilal Ahmed', 'hours': '2'}])
        result = validate_participation(data)
        assert fields(result) == ['team_members']
        assert result.errors[0].code == 'not_allowed'

    def test_lead_requirements(self, valid_report):
        lead = {**valid_report['section1']['team_lead'], 'cnic': '35202-12345671', 'hours': '0'}
        result = validate_participation(self.section(valid_report, team_lead=lead))
        assert sorted(fields(result)) == ['team_lead.cnic', 'team_lead.hours']

    def test_privacy_consent_required(self, valid_report):
        result = validate_participation(self.section(valid_report, privacy_consent=False))
        assert fields(result) == ['privacy_consent']


class TestProjectContext:
    def test_problem_statement_word_limits(self, valid_report):
        data = {**valid_report['section2'], 'problem_statement': 'too short'}
        result = validate_project_context(data)
        assert fields(result) == ['problem_statement']
        assert result.errors[0].code == 'min_words'

    def test_discipline_must_be_listed(self, valid_report):
        data = {**valid_report['section2'], 'discipline': 'Astrology'}
        result = validate_project_context(data)
        assert fields(result) == ['discipline']
        assert result.errors[0].code == 'enum'


class TestFinancialGate:
    def test_yes_without_amounts(self, valid_report):
        data = {**valid_report['section4'], 'has_financial_resources': 'yes'}
        assert fields(validate_activities(data)) == ['financial_resources']

    def test_yes_with_personal_funds_needs_purpose(self, valid_report):
        data = {**valid_report['section4'], 'has_financial_resources': 'yes', 'personal_funds': '500'}
        assert fields(validate_activities(data)) == ['personal_funds_purpose']

    def test_yes_complete(self, valid_report):
        data = {**valid_report['section4'], 'has_financial_resources': 'yes',
                'personal_funds': '500', 'personal_funds_purpose': ['Transport'],
                'raised_funds': '1200', 'raised_funds_source': ['Local donors']}
        assert validate_activities(data).is_valid is True

    def test_no_with_leftover_amounts(self, valid_report):
        data = {**valid_report['section4'], 'personal_funds': '500'}
        result = validate_activities(data)
        assert fields(result) == ['financial_resources']
        assert result.errors[0].code == 'not_allowed'


class TestPartnershipGate:
    def test_yes_requires_partner_and_formalization(self):
        result = validate_partnerships({'has_partners': 'yes', 'partners': [], 'formalization': []})
        assert fields(result) == ['partners', 'formalization']

    def test_yes_validates_rows(self):
        data = {
            'has_partners': 'yes',
            'partners': [{'name': 'City Library', 'type': 'NGO', 'role': '', 'contribution': ''}],
            'formalization': ['MOU'],
        }
        assert fields(validate_partnerships(data)) == ['partners.0.role']

    def test_no_with_partners_listed(self):
        data = {'has_partners': 'no', 'partners': [{'name': 'City Library'}], 'formalization': []}
        result = validate_partnerships(data)
        assert fields(result) == ['partners']

    def test_no_and_empty_passes_without_row_errors(self):
        assert validate_partnerships({'has_partners': 'no', 'partners': []}).is_valid is True


class TestAttestations:
    @pytest.mark.parametrize('flag', ['consent_authentic', 'consent_informed', 'consent_no_harm'])
    def test_any_missing_ethical_flag_gives_one_error(self, valid_report, flag):
        data = {**valid_report['section8'], flag: False}
        result = validate_evidence(data)
        assert fields(result) == ['ethical_compliance']

    def test_all_ethical_flags_missing_still_one_error(self, valid_report):
        data = {**valid_report['section8'], 'consent_authentic': False,
                'consent_informed': False, 'consent_no_harm': False}
        assert fields(validate_evidence(data)) == ['ethical_compliance']

    def test_evidence_file_required(self, valid_report):
        data = {**valid_report['section8'], 'evidence_files': []}
        assert fields(validate_evidence(data)) == ['evidence_files']

    @pytest.mark.parametrize('flag', ['student_declaration', 'partner_verification'])
    def test_declaration_needs_both(self, flag):
        data = {'student_declaration': True, 'partner_verification': True, flag: False}
        assert fields(validate_declaration(data)) == ['declaration']

    def test_truthy_strings_are_not_attestations(self):
        data = {'student_declaration': 'true', 'partner_verification': True}
        assert validate_declaration(data).is_valid is False


class TestReflection:
    def test_competency_score_range(self, valid_report):
        scores = {**valid_report['section9']['competency_scores'], 'social': 11}
        data = {**valid_report['section9'], 'competency_scores': scores}
        assert fields(validate_reflection(data)) == ['competency_scores.social']

    def test_strongest_competency_required(self, valid_report):
        data = {**valid_report['section9'], 'strongest_competency': ''}
        assert fields(validate_reflection(data)) == ['strongest_competency']


class TestSustainability:
    def test_partial_continuation_needs_mechanism(self, valid_report):
        data = {**valid_report['section10'], 'continuation_status': 'partially', 'mechanisms': []}
        assert fields(validate_sustainability(data)) == ['mechanisms']

    def test_one_off_cannot_list_mechanisms(self, valid_report):
        data = {**valid_report['section10'], 'continuation_status': 'no'}
        result = validate_sustainability(data)
        assert fields(result) == ['mechanisms']
        assert result.errors[0].code == 'not_allowed'

    def test_one_off_without_mechanisms(self, valid_report):
        data = {**valid_report['section10'], 'continuation_status': 'no', 'mechanisms': []}
        assert validate_sustainability(data).is_valid is True


def test_patched_section_is_revalidated(valid_report):
    document = merge_section(valid_report, 2, {'discipline': ''})
    assert fields(validate_section(2, document['section2'])) == ['discipline']


NON_FINITE = ['nan', 'NaN', 'inf', '-inf', 'Infinity', '1e400']


class TestNonFiniteAmounts:
    @pytest.mark.parametrize('value', NON_FINITE)
    def test_helper_rejects(self, value):
        result = ValidationResult()
        assert validate_positive_number(value, 'field', result) is False
        assert result.errors[0].code == 'type'

    @pytest.mark.parametrize('value', NON_FINITE)
    def test_member_hours(self, valid_report, value):
        data = {**valid_report['section1'], 'participation_type': 'team',
                'team_members': [{'name': 'Bilal Ahmed', 'hours': value}]}
        assert fields(validate_participation(data)) == ['team_members.0.hours']

    @pytest.mark.parametrize('value', NON_FINITE)
    def test_lead_hours(self, valid_report, value):
        lead = {**valid_report['section1']['team_lead'], 'hours': value}
        data = {**valid_report['section1'], 'team_lead': lead}
        assert fields(validate_participation(data)) == ['team_lead.hours']

    @pytest.mark.parametrize('value', NON_FINITE)
    def test_resource_amount(self, value):
        data = {'use_resources': 'yes',
                'resources': [{'type': 'Books', 'amount': value, 'source': 'Library'}]}
        assert fields(validate_section(6, data)) == ['resources.0.amount']

    @pytest.mark.parametrize('value', NON_FINITE)
    @pytest.mark.parametrize('amount_field', ['personal_funds', 'raised_funds'])
    def test_fund_amounts(self, valid_report, amount_field, value):
        data = {**valid_report['section4'], 'has_financial_resources': 'yes', amount_field: value}
        assert fields(validate_activities(data)) == [amount_field, 'financial_resources']


class TestClosingGates:
    """Filled collections, then the gate closed through gate_patch."""

    def open_then_close(self, valid_report, section, opened, gate_field):
        state = WizardState(valid_report)
        assert state.patch_section(section, opened)
        assert validate_section(section, state.document[f'section{section}']).is_valid is True
        state.patch_section(section, gate_patch(section, {gate_field: 'no'}))
        return validate_section(section, state.document[f'section{section}'])

    def test_financial_resources(self, valid_report):
        opened = {'has_financial_resources': 'yes',
                  'personal_funds': '500', 'personal_funds_purpose': ['Transport'],
                  'raised_funds': 1200, 'raised_funds_source': ['Local donors']}
        result = self.open_then_close(valid_report, 4, opened, 'has_financial_resources')
        assert result.is_valid is True

    def test_resources(self, valid_report):
        opened = {'use_resources': 'yes', 'resources': [
            {'type': 'Books', 'amount': '40', 'unit': 'pcs', 'source': 'City Library'},
            {'type': 'Room', 'amount': 6, 'unit': 'days', 'source': 'Community centre'},
        ]}
        assert self.open_then_close(valid_report, 6, opened, 'use_resources').is_valid is True

    def test_partners(self, valid_report):
        opened = {'has_partners': 'yes', 'formalization': ['MOU'], 'partners': [
            {'name': 'City Library', 'type': 'NGO', 'role': 'Venue', 'contribution': 'Books'},
        ]}
        assert self.open_then_close(valid_report, 7, opened, 'has_partners').is_valid is True

    def test_mechanisms(self, valid_report):
        opened = {'continuation_status': 'yes', 'mechanisms': ['Community Ownership']}
        assert self.open_then_close(valid_report, 10, opened, 'continuation_status').is_valid is True

    def test_without_gate_patch_leftovers_block(self, valid_report):
        state = WizardState(valid_report)
        state.patch_section(6, {'use_resources': 'yes', 'resources': [
            {'type': 'Books', 'amount': '40', 'source': 'City Library'},
        ]})
        state.patch_section(6, {'use_resources': 'no'})
        result = validate_section(6, state.document['section6'])
        assert fields(result) == ['resources']
        assert result.errors[0].code == 'not_allowed'
