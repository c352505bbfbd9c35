"""Overdue derivation and list filtering - pure functions over a loan and a clock reading"""

from datetime import datetime
from typing import Optional

from biblioteca_gateway.domain.models import (
    ALL,
    PRESTADO,
    RETRASADO,
    VENCIDO,
    EnrichedLoanView,
    LoanRecord,
)


def is_overdue(loan: LoanRecord, now: datetime) -> bool:
    """
    True iff the loan is still checked out and `now` is strictly past the due date.

    Returning stops the clock: a `devuelto` loan is never overdue. A stored
    `retrasado` loan is not overdue here either; the `vencido` filter
    includes it separately.
    """
    return loan.estado == PRESTADO and now > loan.fecha_devolucion


def is_late(loan: LoanRecord, now: datetime) -> bool:
    """Matches the `vencido` filter: derived overdue or flagged late"""
    return loan.estado == RETRASADO or is_overdue(loan, now)


def matches_status(view: EnrichedLoanView, estado: Optional[str]) -> bool:
    """Status filter: none/"all", exact stored state, or the synthetic "vencido" """
    if not estado or estado == ALL:
        return True
    if estado == VENCIDO:
        return view.vencido or view.estado == RETRASADO
    return view.estado == estado


def matches_query(view: EnrichedLoanView, query: Optional[str]) -> bool:
    """Case-insensitive substring match on book title, user name or user email"""
    if not query:
        return True
    needle = query.lower()
    return (
        needle in view.libro_titulo.lower()
        or needle in view.usuario.lower()
        or needle in view.user_email.lower()
    )
