# Overview: Service-layer operations for installments; schedule building and status tracking.

"""
Installment Schedule & Status Tracking

SCHEDULE:
    count installments, due one calendar month apart starting one month
    after the sale date. Each due date is computed from the sale date
    (not from the previous due date) so end-of-month clamping never drifts:
    Jan 31 -> Feb 28, Mar 31, Apr 30 ...

    Every installment gets floor(final / count) cents; the LAST one absorbs
    the residual. Sum of amounts == final amount, to the cent.

STATE MACHINE:
    pending -> paid
    pending -> overdue   (due_date strictly before as_of)
    overdue -> paid

    'paid' is terminal. When every installment of a 'pending_installment'
    sale is paid, the sale becomes 'completed'.

OVERDUE DETECTION:
    detect_overdue() handles one sale; sweep_overdue_installments() walks
    every open installment sale and is run by the scheduler through
    `flask installments sweep-overdue` (daily). Nothing is detected on read.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Union

from flask import current_app

from ..extensions import db
from ..errors import AlreadyPaidError, NotFoundError, ValidationError
from ..models import Sale, Installment
from ..models.sales import (
    INSTALLMENT_OVERDUE,
    INSTALLMENT_PAID,
    INSTALLMENT_PENDING,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_PENDING_INSTALLMENT,
)
from ..signals import FINANCIALS_PATH, SALES_PATH, invalidate_views, sale_path
from salesdesk.time_utils import add_months, as_date, utcnow
from .concurrency import lock_for_update, run_in_transaction


@dataclass(frozen=True)
class ScheduledInstallment:
    sequence: int
    due_date: date
    amount_cents: int


def build_installment_schedule(
    final_amount_cents: int,
    installment_count: int,
    sale_date: Union[date, datetime],
) -> list[ScheduledInstallment]:
    """
    Split final_amount_cents into installment_count monthly installments.

    >>> [s.amount_cents for s in build_installment_schedule(10000, 3, date(2026, 1, 15))]
    [3333, 3333, 3334]
    """
    if isinstance(installment_count, bool) or not isinstance(installment_count, int):
        raise ValidationError("installment_count must be an integer")
    if installment_count < 1:
        raise ValidationError("installment_count must be at least 1")
    if final_amount_cents < 0:
        raise ValidationError("final amount cannot be negative")

    base = final_amount_cents // installment_count
    residual = final_amount_cents - base * installment_count

    schedule = []
    for i in range(installment_count):
        amount = base + residual if i == installment_count - 1 else base
        schedule.append(ScheduledInstallment(
            sequence=i + 1,
            due_date=add_months(sale_date, i + 1),
            amount_cents=amount,
        ))
    return schedule


def _session(session):
    return session if session is not None else db.session


def _get_active_sale(session, sale_id: int, *, lock: bool = False) -> Sale:
    query = session.query(Sale).filter(Sale.id == sale_id, Sale.not_deleted())
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def list_installments(sale_id: int, *, session=None) -> list[Installment]:
    session = _session(session)
    _get_active_sale(session, sale_id)
    return session.query(Installment).filter_by(sale_id=sale_id).order_by(Installment.sequence).all()


def mark_installment_paid(installment_id: int, sale_id: int, *, session=None) -> Installment:
    """
    Mark an installment paid and promote the sale when nothing is left unpaid.

    Raises:
        NotFoundError: installment missing, or not part of this (active) sale
        AlreadyPaidError: installment already paid
    """
    session = _session(session)

    def _op():
        sale = _get_active_sale(session, sale_id, lock=True)

        installment = lock_for_update(
            session.query(Installment).filter_by(id=installment_id, sale_id=sale.id)
        ).first()
        if installment is None:
            raise NotFoundError(
                f"Installment {installment_id} not found for sale {sale_id}",
                details={"installment_id": installment_id, "sale_id": sale_id},
            )

        if installment.status == INSTALLMENT_PAID:
            raise AlreadyPaidError(
                f"Installment {installment_id} is already paid",
                details={"installment_id": installment_id, "sale_id": sale_id},
            )

        installment.status = INSTALLMENT_PAID
        installment.paid_at = utcnow()
        session.flush()

        unpaid = session.query(Installment).filter(
            Installment.sale_id == sale.id,
            Installment.status != INSTALLMENT_PAID,
        ).count()
        if unpaid == 0 and sale.status == SALE_STATUS_PENDING_INSTALLMENT:
            sale.status = SALE_STATUS_COMPLETED
            session.flush()

        return installment

    installment = run_in_transaction(session, _op)

    invalidate_views([SALES_PATH, sale_path(sale_id), FINANCIALS_PATH])
    return installment


def _as_of_date(as_of) -> date:
    if as_of is None:
        return as_date(utcnow())
    return as_date(as_of)


def past_due_pending(session, cutoff: date):
    """
    Pending installments of active installment sales due strictly before
    cutoff, whatever the sale status. Shared by the sweep and /health.
    """
    return session.query(Installment).join(Sale, Installment.sale_id == Sale.id).filter(
        Sale.not_deleted(),
        Sale.is_installment.is_(True),
        Installment.status == INSTALLMENT_PENDING,
        Installment.due_date < cutoff,
    )


def _mark_overdue_locked(session, sale_id: int, cutoff: date) -> int:
    pending = lock_for_update(
        session.query(Installment).filter(
            Installment.sale_id == sale_id,
            Installment.status == INSTALLMENT_PENDING,
            Installment.due_date < cutoff,
        )
    ).all()
    for installment in pending:
        installment.status = INSTALLMENT_OVERDUE
    session.flush()
    return len(pending)


def detect_overdue(sale_id: int, as_of: Union[date, datetime, None] = None, *, session=None) -> int:
    """
    Move this sale's pending installments due strictly before as_of to
    'overdue'. Returns how many changed; a repeat with the same as_of
    returns 0.
    """
    session = _session(session)
    cutoff = _as_of_date(as_of)

    def _op():
        sale = _get_active_sale(session, sale_id)
        return _mark_overdue_locked(session, sale.id, cutoff)

    changed = run_in_transaction(session, _op)

    if changed:
        invalidate_views([sale_path(sale_id)])
    return changed


def sweep_overdue_installments(as_of: Union[date, datetime, None] = None, *, session=None) -> dict[int, int]:
    """
    Periodic sweep over every active installment sale with pending
    installments past due, regardless of the sale's own status.

    Each sale is its own transaction; if one fails, sales before it stay
    committed and the error propagates. Returns {sale_id: changed} for
    sales that changed.
    """
    session = _session(session)
    cutoff = _as_of_date(as_of)

    sale_ids = [
        row[0]
        for row in past_due_pending(session, cutoff).with_entities(
            Installment.sale_id
        ).distinct().order_by(Installment.sale_id).all()
    ]

    results: dict[int, int] = {}
    for sale_id in sale_ids:
        changed = run_in_transaction(
            session, lambda sid=sale_id: _mark_overdue_locked(session, sid, cutoff)
        )
        if changed:
            results[sale_id] = changed

    current_app.logger.info(
        "Overdue sweep as of %s: %d sale(s) scanned, %d installment(s) marked overdue",
        cutoff.isoformat(),
        len(sale_ids),
        sum(results.values()),
    )
    if results:
        invalidate_views([SALES_PATH] + [sale_path(sid) for sid in results])
    return results
