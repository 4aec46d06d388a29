"""
Response Engine - Musician answers to contract dates, and status roll-ups
Per-date transitions: pending -> accepted, pending -> rejected, and the staff
override * -> cancelled. Preconditions are checked locally before any request.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from tqdm import tqdm

from gigcrm.api.client import api_put, date_status_path
from gigcrm.cache.query_cache import (
    cache, QueryPattern, RESOURCE_ASSIGNMENTS_BY_MUSICIAN, RESOURCE_CONTRACT, RESOURCE_CONTRACTS,
    RESOURCE_CONTRACT_MUSICIANS, RESOURCE_MUSICIAN_CONTRACT_TOKEN,
)
from gigcrm.bus.events import bus, EVENT_DATE_RESPONDED, EVENT_BULK_RESPONSE_COMPLETE
from gigcrm.config import config
from gigcrm.errors import GigCrmError, InvalidTransitionError, ValidationError
from gigcrm.models import (
    BulkResult, ContractDate, ContractStats, ContractStatus, DateStatus, MusicianContract,
    ResponseSummary, Status, normalize_date_status, normalize_status, status_value,
)

logger = logging.getLogger(__name__)

UNKNOWN_IP = 'Unknown'

# Reads that show date or contract statuses and must be refetched after an answer
_RESPONSE_PATTERNS = (
    QueryPattern(resource=RESOURCE_MUSICIAN_CONTRACT_TOKEN),
    QueryPattern(resource=RESOURCE_CONTRACT_MUSICIANS),
    QueryPattern(resource=RESOURCE_CONTRACT),
    QueryPattern(resource=RESOURCE_CONTRACTS),
    QueryPattern(resource=RESOURCE_ASSIGNMENTS_BY_MUSICIAN),
)


# =============================================================================
# SINGLE-DATE TRANSITIONS
# =============================================================================

def _require_signature(signature: Optional[str]) -> str:
    if not signature or not signature.strip():
        raise ValidationError("Signature required: enter your initials to confirm acceptance")
    return signature.strip()


def _require_reason(reason: Optional[str]) -> str:
    if not reason or not reason.strip():
        raise ValidationError("A reason is required to reject a date")
    return reason.strip()


def _require_pending(date_id: int, current_status: Optional[str], target: DateStatus) -> None:
    """A known, non-pending date is immutable apart from staff cancellation."""
    if current_status is None:
        return
    if normalize_date_status(current_status) != DateStatus.PENDING:
        raise InvalidTransitionError(f"date #{date_id}", status_value(current_status), target.value)


def _put_status(
    date_id: int,
    status: DateStatus,
    notes: Optional[str] = None,
    ip_address: Optional[str] = None,
    musician_signature: Optional[str] = None,
) -> Any:
    body: Dict[str, Any] = {'status': status.value}
    if notes is not None:
        body['notes'] = notes
    if ip_address is not None:
        body['ipAddress'] = ip_address
    if musician_signature is not None:
        body['musicianSignature'] = musician_signature

    response = api_put(date_status_path(date_id), body)
    logger.info(f"Date #{date_id} marked {status.value}")
    cache.invalidate(*_RESPONSE_PATTERNS)
    bus.emit(EVENT_DATE_RESPONDED, {'date_id': date_id, 'status': status.value})
    return response


def accept_date(
    date_id: int,
    signature: str,
    ip_address: Optional[str],
    current_status: Optional[str] = None,
) -> Any:
    """
    Accept one date. Requires the musician's initials; the responder's IP is
    recorded, 'Unknown' when it could not be determined.
    """
    initials = _require_signature(signature)
    _require_pending(date_id, current_status, DateStatus.ACCEPTED)
    return _put_status(
        date_id, DateStatus.ACCEPTED,
        ip_address=(ip_address or '').strip() or UNKNOWN_IP,
        musician_signature=initials,
    )


def reject_date(date_id: int, reason: str, current_status: Optional[str] = None) -> Any:
    """Reject one date. The reason is stored as the date's notes."""
    notes = _require_reason(reason)
    _require_pending(date_id, current_status, DateStatus.REJECTED)
    return _put_status(date_id, DateStatus.REJECTED, notes=notes)


def cancel_date(date_id: int, notes: Optional[str] = None) -> Any:
    """Staff override: cancel a date whatever its current status."""
    return _put_status(date_id, DateStatus.CANCELLED, notes=notes or 'Cancelled by staff')


# =============================================================================
# BULK TRANSITIONS
# =============================================================================

def pending_dates(dates: Iterable[ContractDate]) -> List[ContractDate]:
    return [d for d in dates if normalize_date_status(d.status) == DateStatus.PENDING]


def _run_bulk(date_ids: Sequence[int], action: Callable[[int], Any], max_workers: Optional[int] = None) -> BulkResult:
    """
    Run action(date_id) for every id concurrently and wait for all of them.
    Backend failures are collected per id; no call is cancelled or retried.
    """
    result = BulkResult()
    if not date_ids:
        return result

    workers = max(1, min(max_workers or config.BULK_MAX_WORKERS, len(date_ids)))
    errors: Dict[int, Optional[str]] = {}
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(action, date_id): date_id for date_id in date_ids}
        for future in tqdm(as_completed(futures), total=len(futures), desc="Updating dates",
                           unit="date", leave=False, disable=len(futures) < 2):
            date_id = futures[future]
            try:
                future.result()
                errors[date_id] = None
            except GigCrmError as e:
                logger.warning(f"Bulk response failed for date #{date_id}: {e}")
                errors[date_id] = str(e)

    # Report in input order, not completion order
    for date_id in date_ids:
        if errors[date_id] is None:
            result.succeeded.append(date_id)
        else:
            result.failed[date_id] = errors[date_id]

    return result


def accept_all(
    musician_contract: MusicianContract,
    signature: str,
    ip_address: Optional[str],
    max_workers: Optional[int] = None,
) -> BulkResult:
    """
    Accept every pending date of a musician contract with one signature.

    Returns: BulkResult; check .outcome ('complete', 'partial', 'failed', 'noop')
             or call .raise_for_failures()
    """
    initials = _require_signature(signature)
    ip = (ip_address or '').strip() or UNKNOWN_IP
    date_ids = [d.id for d in pending_dates(musician_contract.dates)]

    result = _run_bulk(
        date_ids,
        lambda date_id: _put_status(date_id, DateStatus.ACCEPTED, ip_address=ip, musician_signature=initials),
        max_workers=max_workers,
    )
    _log_bulk('accept_all', musician_contract, result)
    return result


def reject_all(
    musician_contract: MusicianContract,
    reason: str,
    max_workers: Optional[int] = None,
) -> BulkResult:
    """Reject every pending date of a musician contract with one reason."""
    notes = _require_reason(reason)
    date_ids = [d.id for d in pending_dates(musician_contract.dates)]

    result = _run_bulk(
        date_ids,
        lambda date_id: _put_status(date_id, DateStatus.REJECTED, notes=notes),
        max_workers=max_workers,
    )
    _log_bulk('reject_all', musician_contract, result)
    return result


def _log_bulk(name: str, musician_contract: MusicianContract, result: BulkResult) -> None:
    msg = (f"{name}: musician contract #{musician_contract.id} → {result.outcome} "
           f"({len(result.succeeded)} ok, {len(result.failed)} failed)")
    if result.failed:
        logger.warning(msg)
    else:
        logger.info(msg)
    bus.emit(EVENT_BULK_RESPONSE_COMPLETE, {
        'action': name,
        'musician_contract_id': musician_contract.id,
        'outcome': result.outcome,
        'succeeded': list(result.succeeded),
        'failed': dict(result.failed),
    })


# =============================================================================
# ROLL-UPS
# =============================================================================

def is_fully_responded(dates: Iterable[ContractDate]) -> bool:
    """True when no date is still pending."""
    return not pending_dates(dates)


def summarize_responses(dates: Iterable[ContractDate]) -> ResponseSummary:
    """
    Counts per status, total fee over dates that are neither rejected nor
    cancelled, and the share of dates already answered.
    """
    summary = ResponseSummary()
    for d in dates:
        status = normalize_date_status(d.status)
        summary.total += 1
        if status == DateStatus.ACCEPTED:
            summary.accepted += 1
        elif status == DateStatus.REJECTED:
            summary.rejected += 1
        elif status == DateStatus.CANCELLED:
            summary.cancelled += 1
        else:
            summary.pending += 1
        if status not in (DateStatus.REJECTED, DateStatus.CANCELLED):
            summary.total_fee += d.fee or 0

    if summary.total:
        summary.completion = (summary.total - summary.pending) / summary.total * 100
    return summary


def derive_musician_status(dates: Iterable[ContractDate]) -> ContractStatus:
    """
    Status of a musician's contract from its date answers. Cancelled dates
    are not answerable and do not count.
    """
    summary = summarize_responses(dates)
    answerable = summary.total - summary.cancelled

    if answerable == 0:
        return ContractStatus.PENDING
    if summary.accepted == answerable:
        return ContractStatus.ACCEPTED
    if summary.rejected == answerable:
        return ContractStatus.REJECTED
    if summary.accepted > 0 and summary.rejected > 0:
        return ContractStatus.PARTIALLY_ACCEPTED
    if summary.rejected > 0:
        return ContractStatus.NEEDS_ATTENTION
    return ContractStatus.PENDING


def contract_stats(musician_contracts: Sequence[MusicianContract]) -> ContractStats:
    """
    Response progress across the musicians of a monthly contract.
    Completion counts accepted, rejected and cancelled musicians as done.
    """
    stats = ContractStats(total=len(musician_contracts))
    for mc in musician_contracts:
        status = normalize_status(mc.status)
        if status in (ContractStatus.SENT, ContractStatus.PENDING):
            stats.pending += 1
        elif status == ContractStatus.ACCEPTED:
            stats.accepted += 1
        elif status == ContractStatus.REJECTED:
            stats.rejected += 1
        elif status == ContractStatus.CANCELLED:
            stats.cancelled += 1

    if stats.total:
        stats.completion = (stats.accepted + stats.rejected + stats.cancelled) / stats.total * 100
    return stats


def derive_contract_status(current: Optional[Status], musician_contracts: Sequence[MusicianContract]) -> Optional[Status]:
    """
    Monthly contract status from its musicians' answers. Only a sent or
    in-progress contract moves: to 'completed' once nobody is pending, to
    'in-progress' once anybody has answered.
    """
    current_status = normalize_status(current)
    if current_status not in (ContractStatus.SENT, ContractStatus.IN_PROGRESS):
        return current

    stats = contract_stats(musician_contracts)
    if stats.total > 0 and stats.pending == 0:
        return ContractStatus.COMPLETED
    if stats.total - stats.pending > 0:
        return ContractStatus.IN_PROGRESS
    return current


def is_response_overdue(
    musician_contract: MusicianContract,
    sent_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    True when the musician still has not answered GIGCRM_RESPONSE_OVERDUE_DAYS
    after the contract was sent. sent_at falls back to the musician contract's own.
    """
    if normalize_status(musician_contract.status) not in (ContractStatus.SENT, ContractStatus.PENDING):
        return False
    sent = sent_at or musician_contract.sent_at
    if sent is None:
        return False
    if now is None:
        now = datetime.now(timezone.utc) if sent.tzinfo else datetime.now()
    elif (now.tzinfo is None) != (sent.tzinfo is None):
        # Mixed naive/aware values: compare both as UTC
        now = now.replace(tzinfo=timezone.utc) if now.tzinfo is None else now
        sent = sent.replace(tzinfo=timezone.utc) if sent.tzinfo is None else sent
    return sent < now - timedelta(days=config.RESPONSE_OVERDUE_DAYS)


def overdue_musicians(
    musician_contracts: Iterable[MusicianContract],
    sent_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> List[MusicianContract]:
    """Musicians who need a reminder."""
    return [mc for mc in musician_contracts if is_response_overdue(mc, sent_at=sent_at, now=now)]
