"""In-memory store and lookups, for tests and single-process deployments"""

import threading
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Tuple

from biblioteca_gateway.domain.exceptions import NotFoundError
from biblioteca_gateway.domain.models import Book, LoanRecord, PenaltyEntry, User


class InMemoryLoanStore:
    """
    Loans held in an immutable tuple.

    Every write builds a new tuple, so a snapshot handed out by `all()`
    never changes underneath a reader.
    """

    def __init__(self, loans: Iterable[LoanRecord] = ()):
        self._loans: Tuple[LoanRecord, ...] = tuple(loans)
        self._penalties: Tuple[PenaltyEntry, ...] = ()
        self._lock = threading.RLock()

    def all(self) -> List[LoanRecord]:
        return list(self._loans)

    def get(self, loan_id: str) -> Optional[LoanRecord]:
        return next((loan for loan in self._loans if loan.id == loan_id), None)

    def add(self, loan: LoanRecord) -> None:
        with self._lock:
            self._loans = self._loans + (loan,)

    def update(
        self, loan_id: str, change: Callable[[LoanRecord], LoanRecord]
    ) -> Tuple[LoanRecord, LoanRecord]:
        with self._lock:
            before = self.get(loan_id)
            if before is None:
                raise NotFoundError(f"Loan {loan_id} not found")
            changed = change(before)

            # column-level write, as the SQL store does
            current = stored = self.get(loan_id)
            if changed.estado != before.estado:
                stored = replace(stored, estado=changed.estado)
            if changed.penalizacion is not before.penalizacion:
                stored = replace(stored, penalizacion=changed.penalizacion)
                if changed.penalizacion is not None:
                    entry = PenaltyEntry(loan_id=loan_id, user_id=before.user_id, penalty=changed.penalizacion)
                    self._penalties = self._penalties + (entry,)

            if stored is not current:
                self._loans = tuple(stored if loan.id == loan_id else loan for loan in self._loans)
            return before, stored

    def penalty_history(self, loan_id: str) -> List[PenaltyEntry]:
        return [entry for entry in self._penalties if entry.loan_id == loan_id]

    def penalties_for_user(self, user_id: str) -> List[PenaltyEntry]:
        return [entry for entry in self._penalties if entry.user_id == user_id]


class InMemoryBookCatalog:
    def __init__(self, books: Iterable[Book] = ()):
        self._books = {book.id: book for book in books}

    def find(self, book_id: str) -> Optional[Book]:
        return self._books.get(book_id)


class InMemoryUserDirectory:
    def __init__(self, users: Iterable[User] = ()):
        self._users = {user.id: user for user in users}

    def find(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)


class RoleSet:
    """Authorizer over a fixed set of roles held by the caller"""

    def __init__(self, roles: Iterable[str] = ()):
        self.roles = frozenset(r.strip() for r in roles if r and r.strip())

    def has_role(self, roles: Iterable[str]) -> bool:
        return not self.roles.isdisjoint(roles)
