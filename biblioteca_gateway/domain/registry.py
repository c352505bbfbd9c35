"""Loan registry - aggregate service owning all loan records"""

import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional

from biblioteca_gateway.domain.exceptions import (
    ForbiddenError,
    NotFoundError,
    NotificationError,
    ValidationError,
)
from biblioteca_gateway.domain.models import (
    ALL,
    DEVUELTO,
    LOAN_STATES,
    PRESTADO,
    RETRASADO,
    STAFF_ROLES,
    UNKNOWN_BOOK,
    UNKNOWN_USER,
    VENCIDO,
    Book,
    EnrichedLoanView,
    LoanRecord,
    LoanSummary,
    PenaltyEntry,
    User,
)
from biblioteca_gateway.domain.overdue import is_late, is_overdue, matches_query, matches_status
from biblioteca_gateway.domain.penalties import PenaltyLedger, validate_penalty
from biblioteca_gateway.domain.policy import PolicyConfig, compute_due_date, validate_policy
from biblioteca_gateway.domain.ports import Authorizer, BookCatalog, LoanStore, Notifier, UserDirectory
from biblioteca_gateway.utils.date_utils import utc_now

STATUS_FILTERS = LOAN_STATES | {ALL, VENCIDO}
ACTIVE_STATES = frozenset({PRESTADO, RETRASADO})


def _returned(loan: LoanRecord) -> LoanRecord:
    # devuelto is terminal
    if loan.estado == DEVUELTO:
        return loan
    return replace(loan, estado=DEVUELTO)


class LoanRegistry:
    """
    Holds the loan set and exposes listing plus the staff-only commands.

    Mutations (create, return, penalize, reconfigure) run under one lock.
    Returns and penalties go through `LoanStore.update`, which reads and
    writes the record in one step and writes only the fields the command
    changes, so registries in other processes cannot undo each other's
    changes. Reads take a snapshot of the store and a single `now`, then
    derive overdue flags and joined display data from that snapshot; nothing
    derived is cached between calls.
    """

    def __init__(
        self,
        store: LoanStore,
        catalog: BookCatalog,
        directory: UserDirectory,
        policy: PolicyConfig,
        clock: Callable[[], datetime] = utc_now,
        ledger: Optional[PenaltyLedger] = None,
        notifier: Optional[Notifier] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.store = store
        self.catalog = catalog
        self.directory = directory
        self.clock = clock
        self.ledger = ledger or PenaltyLedger()
        self.notifier = notifier
        self.id_factory = id_factory
        self._policy = validate_policy(policy)
        self._lock = threading.RLock()

    # Reads

    def list_loans(self, estado: Optional[str] = None, query: Optional[str] = None) -> List[EnrichedLoanView]:
        """
        Enriched loans matching both the status filter and the search query.

        Raises:
            ValidationError: Unknown status filter value
        """
        if estado and estado not in STATUS_FILTERS:
            raise ValidationError(f"Unknown status filter '{estado}'")

        now = self.clock()
        views = self._enrich_all(self.store.all(), now)
        return [v for v in views if matches_status(v, estado) and matches_query(v, query)]

    def get_loan(self, loan_id: str) -> EnrichedLoanView:
        loan = self.store.get(loan_id)
        if loan is None:
            raise NotFoundError(f"Loan {loan_id} not found")
        return self._enrich(loan, self.clock())

    def summarize(self) -> LoanSummary:
        now = self.clock()
        loans = self.store.all()
        return LoanSummary(
            total=len(loans),
            prestado=sum(1 for loan in loans if loan.estado == PRESTADO),
            devuelto=sum(1 for loan in loans if loan.estado == DEVUELTO),
            retrasado=sum(1 for loan in loans if loan.estado == RETRASADO),
            vencido=sum(1 for loan in loans if is_late(loan, now)),
        )

    def penalty_history(self, loan_id: str) -> List[PenaltyEntry]:
        """Every penalty applied to the loan, oldest first"""
        if self.store.get(loan_id) is None:
            raise NotFoundError(f"Loan {loan_id} not found")
        return self.store.penalty_history(loan_id)

    def penalties_for_user(self, user_id: str) -> List[PenaltyEntry]:
        return self.store.penalties_for_user(user_id)

    def get_policy(self) -> PolicyConfig:
        with self._lock:
            return replace(self._policy, loan_days=dict(self._policy.loan_days))

    # Commands

    def create_loan(self, book_id: str, user_id: str, auth: Authorizer) -> EnrichedLoanView:
        """
        Check out a book; the due date comes from the policy for the user's role.

        Raises:
            ForbiddenError: Caller is not staff
            NotFoundError: Unknown book or user
            ValidationError: Book already on loan, user at the active-loan
                limit, or no duration configured for the user's role
        """
        self.authorize(auth)
        book = self.catalog.find(book_id)
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")
        user = self.directory.find(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        with self._lock:
            policy = self._policy
            loans = self.store.all()
            if any(loan.book_id == book_id and loan.estado in ACTIVE_STATES for loan in loans):
                raise ValidationError(f"Book {book_id} is already on loan")
            active = sum(1 for loan in loans if loan.user_id == user_id and loan.estado in ACTIVE_STATES)
            if active >= policy.max_active_loans:
                raise ValidationError(
                    f"User {user_id} already has {active} active loans (limit {policy.max_active_loans})"
                )

            now = self.clock()
            loan = LoanRecord(
                id=self.id_factory(),
                book_id=book_id,
                user_id=user_id,
                fecha_prestamo=now,
                fecha_devolucion=compute_due_date(policy, user.role, now),
                estado=PRESTADO,
            )
            self.store.add(loan)

        self._notify(f"Préstamo registrado: {book.titulo}")
        return self._build_view(loan, book, user, now)

    def mark_returned(self, loan_id: str, auth: Authorizer) -> EnrichedLoanView:
        """
        Move a loan to `devuelto`. Returning an already returned loan is a no-op.

        Raises:
            ForbiddenError: Caller is not staff
            NotFoundError: Unknown loan id
        """
        self.authorize(auth)
        with self._lock:
            before, loan = self.store.update(loan_id, _returned)

        if before.estado != DEVUELTO:
            self._notify("Libro devuelto")
        return self._enrich(loan, self.clock())

    def apply_penalty(self, loan_id: str, dias: int, razon: str, auth: Authorizer) -> EnrichedLoanView:
        """
        Stamp a penalty applied now, replacing any previous one on the loan.

        Raises:
            ForbiddenError: Caller is not staff
            ValidationError: dias <= 0 or empty razon
            NotFoundError: Unknown loan id
        """
        self.authorize(auth)
        validate_penalty(dias, razon)
        with self._lock:
            now = self.clock()
            _, loan = self.store.update(loan_id, lambda loan: self.ledger.apply_penalty(loan, dias, razon, now))

        self._notify(f"Penalización aplicada: {dias} días")
        return self._enrich(loan, now)

    def set_policy(self, new_config: PolicyConfig, auth: Authorizer) -> PolicyConfig:
        """
        Validate and swap the whole policy. Existing due dates are untouched.

        Raises:
            ForbiddenError: Caller is not staff
            ValidationError: Invalid policy; the active policy stays in effect
        """
        self.authorize(auth)
        validate_policy(new_config)
        candidate = replace(new_config, loan_days=dict(new_config.loan_days))
        with self._lock:
            self._policy = candidate

        self._notify("Configuración de préstamos actualizada")
        return self.get_policy()

    # Helpers

    def authorize(self, auth: Authorizer) -> None:
        """Raises ForbiddenError unless the caller holds a staff role"""
        if auth is None or not auth.has_role(STAFF_ROLES):
            raise ForbiddenError("Operation requires role bibliotecario or administrador")

    def _notify(self, message: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(message)
        except NotificationError as e:
            logging.warning(f"Notification not delivered: {e}")

    def _enrich_all(self, loans: List[LoanRecord], now: datetime) -> List[EnrichedLoanView]:
        # Lookups are shared within one read only
        books: Dict[str, Optional[Book]] = {}
        users: Dict[str, Optional[User]] = {}
        views = []
        for loan in loans:
            if loan.book_id not in books:
                books[loan.book_id] = self.catalog.find(loan.book_id)
            if loan.user_id not in users:
                users[loan.user_id] = self.directory.find(loan.user_id)
            views.append(self._build_view(loan, books[loan.book_id], users[loan.user_id], now))
        return views

    def _enrich(self, loan: LoanRecord, now: datetime) -> EnrichedLoanView:
        return self._build_view(
            loan,
            self.catalog.find(loan.book_id),
            self.directory.find(loan.user_id),
            now,
        )

    @staticmethod
    def _build_view(
        loan: LoanRecord,
        book: Optional[Book],
        user: Optional[User],
        now: datetime,
    ) -> EnrichedLoanView:
        return EnrichedLoanView(
            id=loan.id,
            book_id=loan.book_id,
            user_id=loan.user_id,
            fecha_prestamo=loan.fecha_prestamo,
            fecha_devolucion=loan.fecha_devolucion,
            estado=loan.estado,
            penalizacion=loan.penalizacion,
            libro_titulo=book.titulo if book else UNKNOWN_BOOK,
            usuario=user.full_name if user else UNKNOWN_USER,
            user_email=user.email if user else "",
            user_role=user.role if user else "",
            vencido=is_overdue(loan, now),
        )
