"""
Status badges shown next to contracts, musicians and dates.
"""

from typing import Optional

from gigcrm.models import Badge, ContractStatus, Status, normalize_status

_BADGES = {
    ContractStatus.DRAFT: Badge('Draft', 'bg-slate-500', 'file'),
    ContractStatus.PENDING: Badge('Pending', 'bg-gray-500', 'clock'),
    ContractStatus.SENT: Badge('Sent', 'bg-blue-500', 'mail'),
    ContractStatus.IN_PROGRESS: Badge('In Progress', 'bg-amber-500', 'hourglass'),
    ContractStatus.COMPLETED: Badge('Completed', 'bg-emerald-500', 'check-circle'),
    ContractStatus.ACCEPTED: Badge('Accepted', 'bg-green-500', 'check'),
    ContractStatus.PARTIALLY_ACCEPTED: Badge('Partially Accepted', 'bg-lime-500', 'check-square'),
    ContractStatus.NEEDS_ATTENTION: Badge('Needs Attention', 'bg-orange-500', 'alert-triangle'),
    ContractStatus.NEEDS_REVISION: Badge('Needs Revision', 'bg-yellow-500', 'edit'),
    ContractStatus.REJECTED: Badge('Rejected', 'bg-red-500', 'x'),
    ContractStatus.CANCELLED: Badge('Cancelled', 'bg-rose-500', 'ban'),
}

# Unknown statuses look like 'pending' but keep their own label
_NEUTRAL_COLOR = 'bg-gray-500'
_NEUTRAL_ICON = 'clock'


def resolve_badge(status: Optional[Status]) -> Badge:
    """
    Badge for any status value. Legacy 'signed' renders exactly like 'accepted'.
    Never raises: unknown or missing statuses get a neutral badge.
    """
    canonical = normalize_status(status) if status is not None else None
    if canonical is not None:
        return _BADGES[canonical]

    raw = str(status).strip() if status is not None else ''
    label = raw.replace('-', ' ').replace('_', ' ').title() if raw else 'Pending'
    return Badge(label, _NEUTRAL_COLOR, _NEUTRAL_ICON)
