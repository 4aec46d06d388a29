#!/usr/bin/env python3
"""
GigCRM Terminal CLI
Command-line interface for planner assignments, monthly contracts and
musician responses.
"""

import logging
from typing import Optional

import click

from gigcrm.api.client import lookup_public_ip
from gigcrm.engine import contracts, responses
from gigcrm.engine.aggregation import eligible_count
from gigcrm.engine.badges import resolve_badge
from gigcrm.errors import ApiError, BulkResponseError, MissingContractIdError, ValidationError
from gigcrm.logging_config import configure_logging, log_call
from gigcrm.models import MusicianContract, status_value


def _fmt_date(d) -> str:
    return d.strftime('%a, %b %d, %Y') if d else '(no date)'


def _fmt_money(amount) -> str:
    return f"${amount or 0:,.2f}"


def _report(command: str, exc: Exception) -> None:
    """Log a failed command and tell the user what happened."""
    logger = logging.getLogger("gigcrm")
    if isinstance(exc, ValidationError):
        logger.warning(f"{command} rejected: {exc}")
        click.echo(f"Error: {exc}", err=True)
    elif isinstance(exc, BulkResponseError):
        logger.warning(f"{command} incomplete: {exc}")
        click.echo(f"Error: {exc}", err=True)
    elif isinstance(exc, (ApiError, MissingContractIdError)):
        logger.error(f"{command} API error: {exc}", exc_info=True)
        click.echo(f"API Error: {exc}", err=True)
    else:
        logger.error(f"{command} unexpected error: {exc}", exc_info=True)
        click.echo(f"Unexpected error: {exc}", err=True)


@click.group()
def cli():
    """GigCRM - Monthly contracts for venues and musicians"""
    configure_logging()


# =============================================================================
# ASSIGNMENTS
# =============================================================================

@cli.command('assignments')
@click.argument('planner_id', type=int)
@log_call
def assignments(planner_id):
    """Show a planner month's assignments grouped by musician"""
    try:
        groups = contracts.get_assignments_by_musician(planner_id)
    except Exception as e:
        _report('assignments', e)
        return

    if not groups:
        click.echo("No musician assignments for this month.")
        return

    for group in groups.values():
        count = len(group.assignments)
        click.echo(f"\n{'='*80}")
        click.echo(
            f"#{group.musician_id} {group.musician_name or '(unnamed)'} | "
            f"{count} {'assignment' if count == 1 else 'assignments'} | "
            f"Total: {_fmt_money(group.total_fee)}"
        )
        click.echo(f"{'='*80}")
        click.echo(f"{'ID':<6} {'Date':<18} {'Time':<13} {'Venue':<22} {'Fee':>10}  Contract")
        click.echo("-" * 80)
        for a in group.assignments:
            time_str = f"{a.start_time or '?'}-{a.end_time or '?'}"
            if a.contract_id:
                contract_str = f"#{a.contract_id} {resolve_badge(a.contract_status or 'pending').label}"
            else:
                contract_str = "No Contract"
            click.echo(
                f"{a.id or '':<6} {_fmt_date(a.date):<18} {time_str:<13} "
                f"{(a.venue_name or '')[:20]:<22} {_fmt_money(a.fee):>10}  {contract_str}"
            )
        click.echo(f"Open for contracting: {eligible_count(group.assignments)} of {count}")

    click.echo()


# =============================================================================
# CONTRACTS
# =============================================================================

@cli.group('contracts')
def contracts_group():
    """Generate, send and track monthly contracts"""
    pass


@contracts_group.command('list')
@click.option('--month', type=click.IntRange(1, 12), help='Filter by month (1-12)')
@click.option('--year', type=int, help='Filter by year')
@log_call
def contracts_list(month, year):
    """List monthly contracts (drafts hidden)"""
    try:
        results = contracts.list_contracts(month=month, year=year)
    except Exception as e:
        _report('contracts_list', e)
        return

    if not results:
        click.echo("No contracts found.")
        return

    click.echo(f"\nFound {len(results)} contracts:\n")
    click.echo(f"{'ID':<6} {'Name':<35} {'Month':<8} {'Status':<20}")
    click.echo("-" * 72)
    for c in results:
        period = f"{c.month or '?'}/{c.year or '?'}"
        click.echo(f"{c.id or '':<6} {(c.name or 'Monthly Contract')[:33]:<35} {period:<8} {resolve_badge(c.status).label:<20}")


@contracts_group.command('show')
@click.argument('contract_id', type=int)
@log_call
def contracts_show(contract_id):
    """Show a contract with every musician's response status"""
    try:
        contract = contracts.get_contract(contract_id)
        musicians = contracts.get_contract_musicians(contract_id)
    except Exception as e:
        _report('contracts_show', e)
        return

    click.echo(f"\n{'='*80}")
    click.echo(f"CONTRACT #{contract.id}: {contract.name or 'Monthly Contract'}")
    click.echo(f"{'='*80}")
    click.echo(f"Period:   {contract.month or '?'}/{contract.year or '?'}")
    click.echo(f"Status:   {resolve_badge(contract.status).label}")
    click.echo(f"Sent:     {contract.sent_at or '(not sent)'}")

    if not musicians:
        click.echo("\nNo musicians assigned to this contract.")
        click.echo()
        return

    stats = responses.contract_stats(musicians)
    overdue_ids = {mc.id for mc in responses.overdue_musicians(musicians, sent_at=contract.sent_at)}

    click.echo(f"\n{'Musician':<28} {'Status':<20} {'Dates':<16} {'Fee':>10}")
    click.echo("-" * 80)
    for mc in musicians:
        summary = responses.summarize_responses(mc.dates)
        dates_str = f"{summary.accepted}/{summary.rejected}/{summary.pending} a/r/p"
        flag = "  OVERDUE" if mc.id in overdue_ids else ""
        click.echo(
            f"{(mc.musician_name or '')[:26]:<28} {resolve_badge(mc.status).label:<20} "
            f"{dates_str:<16} {_fmt_money(summary.total_fee):>10}{flag}"
        )

    click.echo(
        f"\nResponses: {stats.accepted} accepted, {stats.rejected} rejected, "
        f"{stats.cancelled} cancelled, {stats.pending} pending "
        f"({round(stats.completion)}% complete)"
    )
    if overdue_ids:
        click.echo(f"⚠️  {len(overdue_ids)} musician(s) need a reminder.")
    click.echo()


@contracts_group.command('generate')
@click.argument('planner_id', type=int)
@click.option('--month', type=int, required=True, help='Planner month (1-12)')
@click.option('--year', type=int, required=True, help='Planner year')
@click.option('--musician', 'musician_id', type=int, help='Only this musician')
@click.option('--assignment', 'assignment_ids', type=int, multiple=True,
              help='Assignment id to include (repeatable, requires --musician)')
@click.option('--send', is_flag=True, help='Send the contract right after generating it')
@log_call
def contracts_generate(planner_id, month, year, musician_id, assignment_ids, send):
    """Generate a monthly contract, optionally sending it"""
    selected = list(assignment_ids) if assignment_ids else None
    try:
        if send:
            ref = contracts.generate_and_send(
                planner_id, month, year, musician_id=musician_id, assignment_ids=selected,
            )
        else:
            ref = contracts.generate_contract(
                planner_id, month, year, musician_id=musician_id, assignment_ids=selected,
            )
    except Exception as e:
        _report('contracts_generate', e)
        return

    click.echo(f"✓ Generated contract #{ref.id}")
    if send:
        click.echo(f"✓ Sent contract #{ref.id}")


@contracts_group.command('send')
@click.argument('contract_id', type=int)
@click.option('--planner', 'planner_id', type=int, help='Planner to refresh afterwards')
@log_call
def contracts_send(contract_id, planner_id):
    """Send a generated contract"""
    try:
        current = contracts.get_contract(contract_id)
        contracts.send_contract(contract_id, planner_id=planner_id, current_status=current.status)
    except Exception as e:
        _report('contracts_send', e)
        return
    click.echo(f"✓ Sent contract #{contract_id}")


@contracts_group.command('resend')
@click.argument('contract_id', type=int)
@click.option('--planner', 'planner_id', type=int, help='Planner to refresh afterwards')
@log_call
def contracts_resend(contract_id, planner_id):
    """Send the contract email again"""
    try:
        contracts.resend_contract(contract_id, planner_id=planner_id)
    except Exception as e:
        _report('contracts_resend', e)
        return
    click.echo(f"✓ Resent contract #{contract_id}")


@contracts_group.command('cancel')
@click.argument('contract_id', type=int)
@click.option('--reason', help='Reason recorded with the cancellation')
@click.option('--planner', 'planner_id', type=int, help='Planner to refresh afterwards')
@log_call
def contracts_cancel(contract_id, reason, planner_id):
    """Cancel a contract that has not been answered yet"""
    try:
        current = contracts.get_contract(contract_id)
        contracts.cancel_contract(
            contract_id, current_status=current.status, reason=reason, planner_id=planner_id,
        )
    except Exception as e:
        _report('contracts_cancel', e)
        return
    click.echo(f"✓ Cancelled contract #{contract_id}")


# =============================================================================
# MUSICIAN RESPONSES
# =============================================================================

@cli.group('respond')
def respond_group():
    """Answer a monthly contract with its response token"""
    pass


def _load_by_token(token: str) -> Optional[MusicianContract]:
    try:
        return contracts.get_musician_contract_by_token(token)
    except ApiError as e:
        logging.getLogger("gigcrm").warning(f"token lookup failed: {e}")
        click.echo("Contract not found. The link may have expired or is invalid.", err=True)
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
    return None


def _find_date(mc: MusicianContract, date_id: int):
    for d in mc.dates:
        if d.id == date_id:
            return d
    click.echo(f"Date #{date_id} is not part of this contract.", err=True)
    return None


def _resolve_ip(ip: Optional[str]) -> str:
    return ip if ip else lookup_public_ip()


@respond_group.command('show')
@click.argument('token')
@log_call
def respond_show(token):
    """Show the dates of a musician contract and their answers"""
    mc = _load_by_token(token)
    if mc is None:
        return

    click.echo(f"\n{'='*80}")
    click.echo(f"MONTHLY CONTRACT for {mc.musician_name or 'musician'}")
    click.echo(f"{'='*80}")
    click.echo(f"{'ID':<6} {'Date':<18} {'Venue':<24} {'Fee':>10}  Status")
    click.echo("-" * 80)
    for d in mc.dates:
        click.echo(
            f"{d.id or '':<6} {_fmt_date(d.date):<18} {(d.venue_name or '')[:22]:<24} "
            f"{_fmt_money(d.fee):>10}  {resolve_badge(status_value(d.status)).label}"
        )

    summary = responses.summarize_responses(mc.dates)
    if summary.fully_responded:
        click.echo(
            f"\nAll dates answered: {summary.accepted} accepted, {summary.rejected} rejected, "
            f"{summary.cancelled} cancelled. Total fee: {_fmt_money(summary.total_fee)}"
        )
    else:
        click.echo(f"\n{summary.pending} date(s) awaiting your response.")
    click.echo()


@respond_group.command('accept')
@click.argument('token')
@click.argument('date_id', type=int)
@click.option('--initials', prompt='Your initials', help='Digital signature (your initials)')
@click.option('--ip', help='IP address to record (looked up when omitted)')
@log_call
def respond_accept(token, date_id, initials, ip):
    """Accept one date"""
    mc = _load_by_token(token)
    if mc is None:
        return
    contract_date = _find_date(mc, date_id)
    if contract_date is None:
        return
    try:
        # Checked before the IP lookup so nothing leaves the machine on bad input
        if not initials or not initials.strip():
            raise ValidationError("Signature required: enter your initials to confirm acceptance")
        responses.accept_date(date_id, initials, _resolve_ip(ip), current_status=contract_date.status)
    except Exception as e:
        _report('respond_accept', e)
        return
    click.echo(f"✓ Accepted date #{date_id}")


@respond_group.command('reject')
@click.argument('token')
@click.argument('date_id', type=int)
@click.option('--reason', prompt='Reason for declining', help='Why this date is declined')
@log_call
def respond_reject(token, date_id, reason):
    """Decline one date"""
    mc = _load_by_token(token)
    if mc is None:
        return
    contract_date = _find_date(mc, date_id)
    if contract_date is None:
        return
    try:
        responses.reject_date(date_id, reason, current_status=contract_date.status)
    except Exception as e:
        _report('respond_reject', e)
        return
    click.echo(f"✓ Rejected date #{date_id}")


def _echo_bulk(command: str, verb: str, result) -> None:
    if result.outcome == 'noop':
        click.echo("No pending dates to answer.")
        return
    try:
        result.raise_for_failures()
    except BulkResponseError as e:
        _report(command, e)
        return
    click.echo(f"✓ All {len(result.succeeded)} pending dates {verb}")


@respond_group.command('accept-all')
@click.argument('token')
@click.option('--initials', prompt='Your initials', help='Digital signature (your initials)')
@click.option('--ip', help='IP address to record (looked up when omitted)')
@log_call
def respond_accept_all(token, initials, ip):
    """Accept every pending date"""
    mc = _load_by_token(token)
    if mc is None:
        return
    try:
        if not initials or not initials.strip():
            raise ValidationError("Signature required: enter your initials to confirm acceptance")
        result = responses.accept_all(mc, initials, _resolve_ip(ip))
    except Exception as e:
        _report('respond_accept_all', e)
        return
    _echo_bulk('respond_accept_all', 'accepted', result)


@respond_group.command('reject-all')
@click.argument('token')
@click.option('--reason', prompt='Reason for declining', help='Why the dates are declined')
@log_call
def respond_reject_all(token, reason):
    """Decline every pending date"""
    mc = _load_by_token(token)
    if mc is None:
        return
    try:
        result = responses.reject_all(mc, reason)
    except Exception as e:
        _report('respond_reject_all', e)
        return
    _echo_bulk('respond_reject_all', 'rejected', result)


# =============================================================================
# MAIN
# =============================================================================

if __name__ == '__main__':
    cli()
