"""
Data Models
Dataclasses for all entities. Pure Python objects, no network logic.

Backend payloads are camelCase JSON; each entity's from_api() converts them,
parses ISO dates and normalises status values so legacy spellings never leak
past ingestion.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from gigcrm.errors import MissingContractIdError, PartialBulkFailureError, TotalBulkFailureError


class ContractStatus(str, Enum):
    """Canonical status of a monthly contract or a musician's sub-contract."""
    DRAFT = 'draft'
    PENDING = 'pending'
    SENT = 'sent'
    IN_PROGRESS = 'in-progress'
    COMPLETED = 'completed'
    ACCEPTED = 'accepted'
    PARTIALLY_ACCEPTED = 'partially-accepted'
    NEEDS_ATTENTION = 'needs-attention'
    NEEDS_REVISION = 'needs-revision'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'


class DateStatus(str, Enum):
    """Status of a single date inside a musician's contract."""
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'


# Legacy and alternate spellings seen in stored data
_STATUS_SYNONYMS = {
    'signed': 'accepted',
    'contract-signed': 'accepted',
    'contractsigned': 'accepted',
    'canceled': 'cancelled',
    'contract-sent': 'sent',
    'contractsent': 'sent',
    'in_progress': 'in-progress',
    'partially_accepted': 'partially-accepted',
    'needs_attention': 'needs-attention',
    'needs_revision': 'needs-revision',
}

Status = Union[ContractStatus, str]


def normalize_status(raw: Optional[str]) -> Optional[ContractStatus]:
    """Map a raw backend status to the canonical enum. Unknown values give None."""
    if raw is None:
        return None
    if isinstance(raw, ContractStatus):
        return raw
    if isinstance(raw, DateStatus):
        return ContractStatus(raw.value)
    key = str(raw).strip().lower()
    key = _STATUS_SYNONYMS.get(key, key)
    try:
        return ContractStatus(key)
    except ValueError:
        return None


def normalize_date_status(raw: Optional[str]) -> Optional[DateStatus]:
    status = normalize_status(raw)
    if status is None:
        return None
    try:
        return DateStatus(status.value)
    except ValueError:
        return None


def _status_or_raw(raw: Optional[str]) -> Optional[Status]:
    """Canonical enum when known, otherwise the raw string kept for display."""
    if raw is None:
        return None
    return normalize_status(raw) or str(raw)


def parse_int(value: Any) -> Optional[int]:
    """Integer from an int or a digit string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def parse_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_date(value: Any) -> Optional[date]:
    """Calendar date from 'YYYY-MM-DD' or an ISO timestamp. Bad input gives None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


@dataclass
class Assignment:
    """One musician booked for one performance slot on one date at one venue."""
    id: Optional[int] = None
    musician_id: Optional[int] = None
    date: Optional[date] = None
    venue_name: Optional[str] = None
    fee: Optional[float] = None
    actual_fee: Optional[float] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    status: Optional[str] = None
    contract_id: Optional[int] = None
    contract_status: Optional[Status] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any], musician_id: Any = None) -> 'Assignment':
        return cls(
            id=parse_int(payload.get('id')),
            musician_id=parse_int(payload.get('musicianId', musician_id)),
            date=parse_date(payload.get('date')),
            venue_name=payload.get('venueName'),
            fee=parse_number(payload.get('fee')),
            actual_fee=parse_number(payload.get('actualFee')),
            start_time=payload.get('startTime'),
            end_time=payload.get('endTime'),
            status=payload.get('status'),
            contract_id=parse_int(payload.get('contractId')),
            contract_status=_status_or_raw(payload.get('contractStatus')),
        )


@dataclass
class MusicianGroup:
    """Assignments of one musician for a planner month. Derived, never persisted."""
    musician_id: int = 0
    musician_name: str = ''
    assignments: List[Assignment] = field(default_factory=list)
    total_fee: float = 0


@dataclass
class MonthlyContract:
    """Generated contract bundling a planner month's assignments."""
    id: Optional[int] = None
    planner_id: Optional[int] = None
    musician_id: Optional[int] = None
    name: Optional[str] = None
    month: Optional[int] = None
    year: Optional[int] = None
    status: Optional[Status] = None
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    token: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> 'MonthlyContract':
        return cls(
            id=parse_int(payload.get('id')),
            planner_id=parse_int(payload.get('plannerId')),
            musician_id=parse_int(payload.get('musicianId')),
            name=payload.get('name'),
            month=parse_int(payload.get('month')),
            year=parse_int(payload.get('year')),
            status=_status_or_raw(payload.get('status')),
            created_at=parse_datetime(payload.get('createdAt')),
            sent_at=parse_datetime(payload.get('sentAt')),
            token=payload.get('token'),
        )


@dataclass
class ContractDate:
    """Per-date line item of a musician contract, answered individually."""
    id: Optional[int] = None
    contract_id: Optional[int] = None
    date: Optional[date] = None
    venue_name: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    fee: Optional[float] = None
    status: Union[DateStatus, str] = DateStatus.PENDING
    notes: Optional[str] = None
    ip_address: Optional[str] = None
    musician_signature: Optional[str] = None
    responded_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> 'ContractDate':
        raw_status = payload.get('status') or 'pending'
        return cls(
            id=parse_int(payload.get('id')),
            contract_id=parse_int(payload.get('musicianContractId', payload.get('contractId'))),
            date=parse_date(payload.get('date')),
            venue_name=payload.get('venueName'),
            start_time=payload.get('startTime'),
            end_time=payload.get('endTime'),
            fee=parse_number(payload.get('fee')),
            status=normalize_date_status(raw_status) or str(raw_status),
            notes=payload.get('notes'),
            ip_address=payload.get('ipAddress'),
            musician_signature=payload.get('musicianSignature'),
            responded_at=parse_datetime(payload.get('respondedAt')),
        )


@dataclass
class MusicianContract:
    """One musician's part of a monthly contract, with the dates they answer."""
    id: Optional[int] = None
    contract_id: Optional[int] = None
    musician_id: Optional[int] = None
    musician_name: Optional[str] = None
    email: Optional[str] = None
    status: Optional[Status] = None
    token: Optional[str] = None
    sent_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    dates: List[ContractDate] = field(default_factory=list)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> 'MusicianContract':
        musician = payload.get('musician') or {}
        contract = payload.get('contract') or {}
        return cls(
            id=parse_int(payload.get('id')),
            contract_id=parse_int(payload.get('contractId', contract.get('id'))),
            musician_id=parse_int(payload.get('musicianId', musician.get('id'))),
            musician_name=payload.get('musicianName', musician.get('name')),
            email=payload.get('email', musician.get('email')),
            status=_status_or_raw(payload.get('status')),
            token=payload.get('token'),
            sent_at=parse_datetime(payload.get('sentAt', contract.get('sentAt'))),
            responded_at=parse_datetime(payload.get('respondedAt')),
            dates=[ContractDate.from_api(d) for d in payload.get('dates') or []],
        )


@dataclass(frozen=True)
class ContractRef:
    """Canonical handle on a freshly generated contract."""
    id: int

    @classmethod
    def from_generate_response(cls, payload: Any) -> 'ContractRef':
        """
        Normalise a generate response. Older backends answer with 'contractId',
        newer ones with 'id'. Neither present means the call failed.
        """
        if not isinstance(payload, dict):
            raise MissingContractIdError(payload)
        for key in ('id', 'contractId'):
            contract_id = parse_int(payload.get(key))
            if contract_id:
                return cls(id=contract_id)
        raise MissingContractIdError(payload)


@dataclass(frozen=True)
class Badge:
    label: str
    color_class: str
    icon: str


@dataclass
class BulkResult:
    """Outcome of a concurrent accept-all / reject-all batch."""
    succeeded: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def outcome(self) -> str:
        if not self.succeeded and not self.failed:
            return 'noop'
        if not self.failed:
            return 'complete'
        if not self.succeeded:
            return 'failed'
        return 'partial'

    def raise_for_failures(self) -> None:
        if self.outcome == 'partial':
            raise PartialBulkFailureError(self)
        if self.outcome == 'failed':
            raise TotalBulkFailureError(self)


@dataclass
class ResponseSummary:
    """Counts and totals over one musician's contract dates."""
    pending: int = 0
    accepted: int = 0
    rejected: int = 0
    cancelled: int = 0
    total: int = 0
    total_fee: float = 0
    completion: float = 0.0

    @property
    def fully_responded(self) -> bool:
        return self.pending == 0


@dataclass
class ContractStats:
    """Response progress across all musicians of a monthly contract."""
    pending: int = 0
    accepted: int = 0
    rejected: int = 0
    cancelled: int = 0
    total: int = 0
    completion: float = 0.0


def status_value(status: Optional[Status]) -> str:
    """Plain string form of a status for display and request bodies."""
    if status is None:
        return ''
    if isinstance(status, Enum):
        return status.value
    return str(status)
