"""
Contract Engine - Data fetch and mutation orchestration
Reads go through the query cache; every successful mutation invalidates the
cache entries derived from the planner or contract it touched and emits a bus
event. Nothing here renders output.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from gigcrm.api.client import (
    api_get, api_post,
    assignments_by_musician_path, assignments_path, contracts_path, generate_path,
    contract_path, send_path, contract_musicians_path, token_path, resend_path, cancel_path,
)
from gigcrm.cache.query_cache import (
    cache, QueryKey, QueryPattern, planner_patterns, contract_patterns,
    RESOURCE_ASSIGNMENTS_BY_MUSICIAN, RESOURCE_ASSIGNMENTS, RESOURCE_CONTRACT,
    RESOURCE_CONTRACT_MUSICIANS, RESOURCE_CONTRACTS, RESOURCE_MUSICIAN_CONTRACT_TOKEN,
)
from gigcrm.bus.events import (
    bus, EVENT_CONTRACT_CREATED, EVENT_CONTRACT_GENERATED, EVENT_CONTRACT_SENT,
    EVENT_CONTRACT_RESENT, EVENT_CONTRACT_CANCELLED, EVENT_CACHE_INVALIDATED,
)
from gigcrm.engine.aggregation import group_by_musician
from gigcrm.errors import ApiError, InvalidTransitionError, ValidationError
from gigcrm.models import (
    Assignment, ContractRef, ContractStatus, MonthlyContract, MusicianContract, MusicianGroup,
    Status, normalize_status, status_value,
)

logger = logging.getLogger(__name__)

# Allowed moves along draft/pending -> sent -> {accepted|rejected|cancelled}
_TERMINAL = frozenset()
_CONTRACT_TRANSITIONS = {
    ContractStatus.DRAFT: {ContractStatus.PENDING, ContractStatus.SENT, ContractStatus.CANCELLED},
    ContractStatus.PENDING: {ContractStatus.SENT, ContractStatus.CANCELLED},
    ContractStatus.SENT: {
        ContractStatus.IN_PROGRESS, ContractStatus.COMPLETED, ContractStatus.ACCEPTED,
        ContractStatus.PARTIALLY_ACCEPTED, ContractStatus.NEEDS_ATTENTION,
        ContractStatus.NEEDS_REVISION, ContractStatus.REJECTED, ContractStatus.CANCELLED,
    },
    ContractStatus.IN_PROGRESS: {
        ContractStatus.COMPLETED, ContractStatus.ACCEPTED, ContractStatus.PARTIALLY_ACCEPTED,
        ContractStatus.NEEDS_ATTENTION, ContractStatus.REJECTED, ContractStatus.CANCELLED,
    },
    ContractStatus.PARTIALLY_ACCEPTED: {ContractStatus.ACCEPTED, ContractStatus.REJECTED, ContractStatus.CANCELLED},
    ContractStatus.NEEDS_ATTENTION: {
        ContractStatus.ACCEPTED, ContractStatus.REJECTED, ContractStatus.PARTIALLY_ACCEPTED,
        ContractStatus.CANCELLED,
    },
    ContractStatus.NEEDS_REVISION: {ContractStatus.PENDING, ContractStatus.SENT, ContractStatus.CANCELLED},
    ContractStatus.ACCEPTED: _TERMINAL,
    ContractStatus.REJECTED: _TERMINAL,
    ContractStatus.CANCELLED: _TERMINAL,
    ContractStatus.COMPLETED: _TERMINAL,
}


def can_transition(current: Optional[Status], target: Status) -> bool:
    """
    Whether a monthly contract may move from current to target.
    An unknown current status is left for the backend to judge.
    """
    current_status = normalize_status(current)
    target_status = normalize_status(target)
    if target_status is None:
        return False
    if current_status is None:
        return True
    return target_status in _CONTRACT_TRANSITIONS.get(current_status, _TERMINAL)


def _require_transition(contract_id: int, current: Optional[Status], target: ContractStatus) -> None:
    if current is not None and not can_transition(current, target):
        raise InvalidTransitionError(f"contract #{contract_id}", status_value(current), target.value)


def _require_positive_id(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{label} must be a positive integer, got {value!r}")
    return value


def _invalidate(patterns: Sequence[QueryPattern], reason: str) -> int:
    dropped = cache.invalidate(*patterns)
    bus.emit(EVENT_CACHE_INVALIDATED, {'patterns': list(patterns), 'dropped': dropped, 'reason': reason})
    return dropped


# =============================================================================
# DATA FETCH
# =============================================================================

def _load_assignments_by_musician(planner_id: int) -> Any:
    """
    Fetch the by-musician payload. The backend can answer 200 with a
    {'_status': 'error'|'empty', '_message': ...} envelope instead of data.
    """
    raw = api_get(assignments_by_musician_path(planner_id))
    if isinstance(raw, dict):
        status = raw.get('_status')
        if status == 'error':
            raise ApiError(None, raw.get('_message') or 'Failed to load assignments')
        if status == 'empty':
            logger.debug(f"Planner #{planner_id} has no assignments: {raw.get('_message') or 'empty'}")
            return {}
    return raw


def get_assignments_by_musician(planner_id: int) -> Dict[int, MusicianGroup]:
    """
    Planner assignments grouped by musician. The raw payload is cached; the
    grouping is recomputed on every call. An error envelope raises ApiError
    and is not cached.
    """
    _require_positive_id(planner_id, 'planner id')
    key = QueryKey(RESOURCE_ASSIGNMENTS_BY_MUSICIAN, planner_id=planner_id)
    raw = cache.fetch(key, lambda: _load_assignments_by_musician(planner_id))
    groups = group_by_musician(raw)
    logger.debug(f"get_assignments_by_musician: planner_id={planner_id} → {len(groups)} musicians")
    return groups


def get_assignments(planner_id: int) -> List[Assignment]:
    """Flat assignment list for a planner."""
    _require_positive_id(planner_id, 'planner id')
    key = QueryKey(RESOURCE_ASSIGNMENTS, planner_id=planner_id)
    raw = cache.fetch(key, lambda: api_get(assignments_path(), params={'plannerId': planner_id}))
    return [Assignment.from_api(row) for row in raw or [] if isinstance(row, dict)]


def get_contract(contract_id: int) -> MonthlyContract:
    _require_positive_id(contract_id, 'contract id')
    key = QueryKey(RESOURCE_CONTRACT, contract_id=contract_id)
    raw = cache.fetch(key, lambda: api_get(contract_path(contract_id)))
    return MonthlyContract.from_api(raw)


def get_contract_musicians(contract_id: int) -> List[MusicianContract]:
    """Per-musician sub-contracts of a monthly contract, with their dates."""
    _require_positive_id(contract_id, 'contract id')
    key = QueryKey(RESOURCE_CONTRACT_MUSICIANS, contract_id=contract_id)
    raw = cache.fetch(key, lambda: api_get(contract_musicians_path(contract_id)))
    return [MusicianContract.from_api(row) for row in raw or [] if isinstance(row, dict)]


def get_musician_contract_by_token(token: str) -> MusicianContract:
    """
    Unauthenticated lookup used by the musician response flow.
    The token is opaque and passed through untouched.
    """
    if not isinstance(token, str) or not token.strip():
        raise ValidationError("A response token is required")
    key = QueryKey(RESOURCE_MUSICIAN_CONTRACT_TOKEN, token=token)
    raw = cache.fetch(key, lambda: api_get(token_path(token)))
    if not isinstance(raw, dict) or not raw.get('id'):
        raise ApiError(404, "The contract link may have expired or is invalid")
    return MusicianContract.from_api(raw)


def list_contracts(month: Optional[int] = None, year: Optional[int] = None) -> List[MonthlyContract]:
    """Monthly contracts, optionally for one month/year. Drafts are left out."""
    raw = cache.fetch(QueryKey(RESOURCE_CONTRACTS), lambda: api_get(contracts_path()))
    contracts = [MonthlyContract.from_api(row) for row in raw or [] if isinstance(row, dict)]
    return [
        c for c in contracts
        if normalize_status(c.status) != ContractStatus.DRAFT
        and (month is None or c.month == month)
        and (year is None or c.year == year)
    ]


# =============================================================================
# MUTATIONS
# =============================================================================

def _validate_scope(planner_id: int, month: int, year: int,
                    musician_id: Optional[int], assignment_ids: Optional[Sequence[int]]) -> None:
    _require_positive_id(planner_id, 'planner id')
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError(f"month must be between 1 and 12, got {month!r}")
    _require_positive_id(year, 'year')
    if musician_id is not None:
        _require_positive_id(musician_id, 'musician id')
    if assignment_ids is not None:
        if musician_id is None:
            raise ValidationError("Please select a musician first.")
        if len(assignment_ids) == 0:
            raise ValidationError("Please select at least one assignment.")
        for assignment_id in assignment_ids:
            _require_positive_id(assignment_id, 'assignment id')


def generate_contract(
    planner_id: int,
    month: int,
    year: int,
    musician_id: Optional[int] = None,
    assignment_ids: Optional[Sequence[int]] = None,
) -> ContractRef:
    """
    Generate a monthly contract without sending it.

    Scope is one musician plus the selected assignment ids, or the whole
    planner month when musician_id is omitted.

    Returns: ContractRef for the new contract
    Raises:
        ValidationError before any request when the scope is invalid
        ApiError when the backend refuses
        MissingContractIdError when the answer carries neither 'id' nor 'contractId'
    """
    _validate_scope(planner_id, month, year, musician_id, assignment_ids)

    payload: Dict[str, Any] = {'plannerId': planner_id, 'month': month, 'year': year}
    if musician_id is not None:
        payload['musicianId'] = musician_id
    if assignment_ids is not None:
        payload['assignmentIds'] = list(assignment_ids)

    response = api_post(generate_path(), payload)
    ref = ContractRef.from_generate_response(response)
    logger.info(f"Generated contract #{ref.id} for planner {planner_id} ({month}/{year}, musician={musician_id})")

    _invalidate(planner_patterns(planner_id), 'contract generated')
    bus.emit(EVENT_CONTRACT_GENERATED, {
        'contract_id': ref.id, 'planner_id': planner_id, 'musician_id': musician_id,
    })
    return ref


def send_contract(
    contract_id: int,
    planner_id: Optional[int] = None,
    current_status: Optional[Status] = None,
) -> Any:
    """
    Dispatch a generated contract to its musician(s).
    Pass planner_id so that the planner's assignment views are refreshed too.
    """
    _require_positive_id(contract_id, 'contract id')
    _require_transition(contract_id, current_status, ContractStatus.SENT)

    response = api_post(send_path(contract_id))
    logger.info(f"Sent contract #{contract_id}")

    _invalidate(_mutation_patterns(contract_id, planner_id), 'contract sent')
    bus.emit(EVENT_CONTRACT_SENT, {'contract_id': contract_id, 'planner_id': planner_id})
    return response


def generate_and_send(
    planner_id: int,
    month: int,
    year: int,
    musician_id: Optional[int] = None,
    assignment_ids: Optional[Sequence[int]] = None,
) -> ContractRef:
    """
    Generate a contract, then send it.

    Two sequential calls so that "generate only" stays available as its own
    action. A generate answer without a usable id stops here with
    MissingContractIdError and the send endpoint is never called. A failed
    send leaves the generate step's invalidation in place and nothing else.
    """
    ref = generate_contract(planner_id, month, year, musician_id=musician_id, assignment_ids=assignment_ids)
    send_contract(ref.id, planner_id=planner_id)
    return ref


def create_contract(
    planner_id: int,
    musician_id: Optional[int],
    assignment_ids: Sequence[int],
    notes: str = '',
) -> ContractRef:
    """Create a pending contract from hand-picked assignments of one musician."""
    _require_positive_id(planner_id, 'planner id')
    if not musician_id:
        raise ValidationError("Please select a musician first.")
    _require_positive_id(musician_id, 'musician id')
    if not assignment_ids:
        raise ValidationError("Please select at least one assignment.")

    response = api_post(contracts_path(), {
        'plannerId': planner_id,
        'musicianId': musician_id,
        'assignmentIds': list(assignment_ids),
        'notes': notes or '',
    })
    ref = ContractRef.from_generate_response(response)
    logger.info(f"Created contract #{ref.id} for musician {musician_id} ({len(assignment_ids)} assignments)")

    _invalidate(planner_patterns(planner_id), 'contract created')
    bus.emit(EVENT_CONTRACT_CREATED, {'contract_id': ref.id, 'planner_id': planner_id, 'musician_id': musician_id})
    return ref


def _mutation_patterns(contract_id: int, planner_id: Optional[int]) -> List[QueryPattern]:
    patterns = contract_patterns(contract_id)
    if planner_id is not None:
        patterns += planner_patterns(planner_id)
    return patterns


def resend_contract(contract_id: int, planner_id: Optional[int] = None) -> Any:
    """Send the contract email again. Status is unchanged."""
    _require_positive_id(contract_id, 'contract id')
    response = api_post(resend_path(contract_id))
    logger.info(f"Resent contract #{contract_id}")
    _invalidate(_mutation_patterns(contract_id, planner_id), 'contract resent')
    bus.emit(EVENT_CONTRACT_RESENT, {'contract_id': contract_id, 'planner_id': planner_id})
    return response


def cancel_contract(
    contract_id: int,
    current_status: Optional[Status] = None,
    reason: Optional[str] = None,
    planner_id: Optional[int] = None,
) -> Any:
    """
    Cancel a contract. Refused locally when current_status is already terminal
    (accepted, rejected, cancelled, completed). Pass planner_id so that the
    planner's assignments show the released dates again.
    """
    _require_positive_id(contract_id, 'contract id')
    _require_transition(contract_id, current_status, ContractStatus.CANCELLED)

    payload = {'reason': reason} if reason else {}
    response = api_post(cancel_path(contract_id), payload)
    logger.info(f"Cancelled contract #{contract_id}")
    _invalidate(_mutation_patterns(contract_id, planner_id), 'contract cancelled')
    bus.emit(EVENT_CONTRACT_CANCELLED, {'contract_id': contract_id, 'reason': reason, 'planner_id': planner_id})
    return response
