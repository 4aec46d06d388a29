"""
Aggregation Engine - Musician and Contract groupings
Pure functions over already-fetched planner assignments. No network access.

The backend answers /planner-assignments/by-musician with a mapping keyed by
musician id; older endpoints return a flat list of assignments. Both shapes
are accepted.
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from gigcrm.config import config
from gigcrm.models import Assignment, ContractStatus, MusicianGroup, normalize_status, parse_int

logger = logging.getLogger(__name__)

# Bucket for assignments that have no contract yet
UNASSIGNED = 'unassigned'

ContractKey = Union[int, str]


def assignment_fee(assignment: Assignment) -> float:
    """Fee actually paid: actual_fee, falling back to fee, falling back to 0."""
    if assignment.actual_fee:
        return assignment.actual_fee
    if assignment.fee:
        return assignment.fee
    return 0


def _sort_by_date(assignments: List[Assignment]) -> List[Assignment]:
    # Stable; undated rows go last in their original order
    return sorted(assignments, key=lambda a: (a.date is None, a.date or date.min))


def _rows_from_payload(payload: Any):
    """
    Yield (raw_musician_key, musician_name, assignment_dict) triples from either
    the by-musician mapping or a flat list.
    """
    if isinstance(payload, Mapping):
        for key, entry in payload.items():
            if str(key).startswith('_'):
                # '_status' and friends are response metadata, not musicians
                continue
            if not isinstance(entry, Mapping):
                logger.debug(f"group_by_musician: skipping non-object entry for key {key!r}")
                continue
            name = entry.get('musicianName') or ''
            for row in entry.get('assignments') or []:
                if isinstance(row, Mapping):
                    yield key, name, row
    elif isinstance(payload, list):
        for row in payload:
            if isinstance(row, Mapping):
                yield row.get('musicianId'), row.get('musicianName') or '', row


def group_by_musician(
    payload: Any,
    placeholder_id: Optional[int] = None,
) -> Dict[int, MusicianGroup]:
    """
    Group planner assignments by musician.

    Args:
        payload: by-musician mapping or flat list of assignment dicts
        placeholder_id: reserved "no assignments yet" musician id to exclude
                        (defaults to GIGCRM_PLACEHOLDER_MUSICIAN_ID)

    Returns: {musician_id: MusicianGroup}, ordered by musician id, each group's
             assignments sorted by date ascending.

    Rows whose musician id is not numeric are skipped silently.
    """
    if placeholder_id is None:
        placeholder_id = config.PLACEHOLDER_MUSICIAN_ID

    groups: Dict[int, MusicianGroup] = {}
    skipped = 0

    for raw_key, name, row in _rows_from_payload(payload):
        musician_id = parse_int(row.get('musicianId', raw_key))
        if musician_id is None:
            skipped += 1
            continue
        if musician_id == placeholder_id:
            continue

        group = groups.get(musician_id)
        if group is None:
            group = groups[musician_id] = MusicianGroup(musician_id=musician_id, musician_name=name)
        elif not group.musician_name and name:
            group.musician_name = name
        group.assignments.append(Assignment.from_api(row, musician_id=musician_id))

    for group in groups.values():
        group.assignments = _sort_by_date(group.assignments)
        group.total_fee = sum(assignment_fee(a) for a in group.assignments)

    if skipped:
        logger.debug(f"group_by_musician: skipped {skipped} rows with malformed musician id")

    return {mid: groups[mid] for mid in sorted(groups)}


def group_by_contract(assignments: Iterable[Assignment]) -> Dict[ContractKey, List[Assignment]]:
    """
    Secondary grouping by contract id, keeping the incoming order inside each
    bucket. Assignments without a contract land in the UNASSIGNED bucket.
    """
    buckets: Dict[ContractKey, List[Assignment]] = {}
    for a in assignments:
        key = a.contract_id if a.contract_id else UNASSIGNED
        buckets.setdefault(key, []).append(a)
    return buckets


def contracted_groups(groups: Mapping[int, MusicianGroup]) -> Dict[int, Dict[int, List[Assignment]]]:
    """
    Contract view: per musician, only the real contract buckets.
    Musicians with no contract at all are left out.
    """
    view = {}
    for musician_id, group in groups.items():
        buckets = group_by_contract(group.assignments)
        buckets.pop(UNASSIGNED, None)
        if buckets:
            view[musician_id] = buckets
    return view


def has_any_contracts(groups: Mapping[int, MusicianGroup]) -> bool:
    return any(a.contract_id for g in groups.values() for a in g.assignments)


# =============================================================================
# SELECTION
# =============================================================================

def is_contract_eligible(assignment: Assignment) -> bool:
    """
    True when the assignment can still go into a new contract: it has none yet,
    or its contract is still exactly 'pending'.
    """
    if not assignment.contract_id:
        return True
    return normalize_status(assignment.contract_status) == ContractStatus.PENDING


def eligible_count(assignments: Iterable[Assignment]) -> int:
    return sum(1 for a in assignments if is_contract_eligible(a))


def select_all_state(assignments: Iterable[Assignment], selected_ids: Set[int]) -> bool:
    """
    State of a musician's "select all" checkbox: True when every eligible
    assignment is selected. Locked rows are ignored, so a fully contracted
    musician shows as checked.
    """
    return all(a.id in selected_ids for a in assignments if is_contract_eligible(a))


def toggle_select_all(assignments: Iterable[Assignment], selected_ids: Set[int], checked: bool) -> Set[int]:
    """Return a new selection with every eligible assignment set to `checked`."""
    result = set(selected_ids)
    for a in assignments:
        if not is_contract_eligible(a):
            continue
        if checked:
            result.add(a.id)
        else:
            result.discard(a.id)
    return result


def selected_assignment_ids(selection: Mapping[Any, bool]) -> List[int]:
    """Sorted ids whose checkbox flag is True. Non-numeric keys are ignored."""
    ids = []
    for key, is_selected in selection.items():
        assignment_id = parse_int(key)
        if is_selected and assignment_id is not None:
            ids.append(assignment_id)
    return sorted(ids)
