"""
Unit tests for gigcrm/models: payload parsing, status normalisation,
ContractRef and BulkResult.
No mocking required, pure Python.
"""

from datetime import date, datetime, timezone

import pytest

from gigcrm.errors import MissingContractIdError, PartialBulkFailureError, TotalBulkFailureError
from gigcrm.models import (
    Assignment, BulkResult, ContractDate, ContractRef, ContractStatus, DateStatus,
    MonthlyContract, MusicianContract, normalize_date_status, normalize_status,
    parse_date, parse_datetime, parse_int, status_value,
)


# ---------------------------------------------------------------------------
# normalize_status
# ---------------------------------------------------------------------------

class TestNormalizeStatus:

    @pytest.mark.parametrize('raw', ['signed', 'SIGNED', 'contract-signed', 'accepted', ' Accepted '])
    def test_signed_and_accepted_are_one_state(self, raw):
        assert normalize_status(raw) == ContractStatus.ACCEPTED

    def test_canceled_spelling(self):
        assert normalize_status('canceled') == ContractStatus.CANCELLED

    def test_underscore_variants(self):
        assert normalize_status('in_progress') == ContractStatus.IN_PROGRESS
        assert normalize_status('partially_accepted') == ContractStatus.PARTIALLY_ACCEPTED

    def test_unknown_gives_none(self):
        assert normalize_status('on-hold') is None

    def test_none_gives_none(self):
        assert normalize_status(None) is None

    def test_enum_passes_through(self):
        assert normalize_status(ContractStatus.SENT) is ContractStatus.SENT

    def test_date_status_maps_to_contract_status(self):
        assert normalize_status(DateStatus.REJECTED) == ContractStatus.REJECTED

    def test_date_status_from_signed(self):
        assert normalize_date_status('signed') == DateStatus.ACCEPTED

    def test_date_status_rejects_contract_only_values(self):
        assert normalize_date_status('sent') is None


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def test_parse_int_accepts_digit_strings():
    assert parse_int('5') == 5
    assert parse_int(7) == 7


@pytest.mark.parametrize('value', ['abc', '', None, True, 3.5, '5a'])
def test_parse_int_rejects_non_numeric(value):
    assert parse_int(value) is None


def test_parse_date_from_timestamp():
    assert parse_date('2025-03-10T00:00:00.000Z') == date(2025, 3, 10)


def test_parse_date_bad_input():
    assert parse_date('not a date') is None


def test_parse_datetime_zulu_suffix():
    assert parse_datetime('2025-03-01T10:00:00Z') == datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)


def test_status_value():
    assert status_value(ContractStatus.IN_PROGRESS) == 'in-progress'
    assert status_value('on-hold') == 'on-hold'
    assert status_value(None) == ''


# ---------------------------------------------------------------------------
# from_api
# ---------------------------------------------------------------------------

class TestFromApi:

    def test_assignment(self):
        a = Assignment.from_api({
            'id': 10, 'date': '2025-03-10', 'venueName': 'Blue Note', 'fee': 150,
            'actualFee': None, 'startTime': '20:00', 'endTime': '23:00',
            'contractId': 3, 'contractStatus': 'signed',
        }, musician_id='5')
        assert a.id == 10
        assert a.musician_id == 5
        assert a.date == date(2025, 3, 10)
        assert a.venue_name == 'Blue Note'
        assert a.fee == 150
        assert a.actual_fee is None
        assert a.contract_id == 3
        assert a.contract_status == ContractStatus.ACCEPTED

    def test_assignment_unknown_contract_status_kept_raw(self):
        a = Assignment.from_api({'id': 1, 'contractStatus': 'on-hold'})
        assert a.contract_status == 'on-hold'

    def test_monthly_contract(self):
        c = MonthlyContract.from_api({
            'id': 4, 'plannerId': 2, 'name': 'March', 'month': 3, 'year': 2025,
            'status': 'contract-sent', 'sentAt': '2025-03-01T10:00:00Z',
        })
        assert c.id == 4
        assert c.planner_id == 2
        assert c.status == ContractStatus.SENT
        assert c.sent_at.tzinfo is not None

    def test_contract_date_defaults_to_pending(self):
        d = ContractDate.from_api({'id': 1, 'date': '2025-03-10', 'fee': '120.5'})
        assert d.status == DateStatus.PENDING
        assert d.fee == 120.5

    def test_musician_contract_nested_shapes(self):
        mc = MusicianContract.from_api({
            'id': 7,
            'status': 'sent',
            'musician': {'id': 5, 'name': 'Ana', 'email': 'ana@example.com'},
            'contract': {'id': 4, 'sentAt': '2025-03-01T10:00:00Z'},
            'dates': [{'id': 1, 'status': 'signed'}, {'id': 2}],
        })
        assert mc.musician_id == 5
        assert mc.musician_name == 'Ana'
        assert mc.email == 'ana@example.com'
        assert mc.contract_id == 4
        assert mc.sent_at is not None
        assert [d.status for d in mc.dates] == [DateStatus.ACCEPTED, DateStatus.PENDING]


# ---------------------------------------------------------------------------
# ContractRef
# ---------------------------------------------------------------------------

class TestContractRef:

    def test_id_field(self):
        assert ContractRef.from_generate_response({'id': 12}) == ContractRef(id=12)

    def test_contract_id_field(self):
        assert ContractRef.from_generate_response({'contractId': 12}).id == 12

    def test_id_preferred_over_contract_id(self):
        assert ContractRef.from_generate_response({'id': 1, 'contractId': 2}).id == 1

    def test_empty_object_raises(self):
        with pytest.raises(MissingContractIdError):
            ContractRef.from_generate_response({})

    def test_non_object_raises(self):
        with pytest.raises(MissingContractIdError):
            ContractRef.from_generate_response(None)

    def test_zero_id_raises(self):
        with pytest.raises(MissingContractIdError):
            ContractRef.from_generate_response({'id': 0})


# ---------------------------------------------------------------------------
# BulkResult
# ---------------------------------------------------------------------------

class TestBulkResult:

    def test_noop(self):
        result = BulkResult()
        assert result.outcome == 'noop'
        result.raise_for_failures()

    def test_complete(self):
        result = BulkResult(succeeded=[1, 2])
        assert result.outcome == 'complete'
        result.raise_for_failures()

    def test_partial(self):
        result = BulkResult(succeeded=[1, 3], failed={2: '500: boom'})
        assert result.outcome == 'partial'
        with pytest.raises(PartialBulkFailureError) as exc:
            result.raise_for_failures()
        assert exc.value.result is result
        assert '[2]' in str(exc.value)

    def test_total_failure(self):
        result = BulkResult(failed={1: 'x', 2: 'y'})
        assert result.outcome == 'failed'
        with pytest.raises(TotalBulkFailureError):
            result.raise_for_failures()
