"""Collaborator interfaces consumed by the loan engine"""

from typing import Callable, Iterable, List, Optional, Protocol, Tuple

from biblioteca_gateway.domain.models import Book, LoanRecord, PenaltyEntry, User


class LoanStore(Protocol):
    """Authoritative set of loan records plus their penalty history"""

    def all(self) -> List[LoanRecord]: ...

    def get(self, loan_id: str) -> Optional[LoanRecord]: ...

    def add(self, loan: LoanRecord) -> None: ...

    def update(
        self, loan_id: str, change: Callable[[LoanRecord], LoanRecord]
    ) -> Tuple[LoanRecord, LoanRecord]:
        """
        Read, change and write one loan as a single atomic step.

        Only the fields `change` altered are written: `estado`, and the
        penalty (a new penalty is also appended to the history). Returns the
        loan as read and as stored afterwards. Raises NotFoundError for an
        unknown id.
        """
        ...

    def penalty_history(self, loan_id: str) -> List[PenaltyEntry]: ...

    def penalties_for_user(self, user_id: str) -> List[PenaltyEntry]: ...


class BookCatalog(Protocol):
    def find(self, book_id: str) -> Optional[Book]: ...


class UserDirectory(Protocol):
    def find(self, user_id: str) -> Optional[User]: ...


class Authorizer(Protocol):
    def has_role(self, roles: Iterable[str]) -> bool: ...


class Notifier(Protocol):
    def notify(self, message: str) -> None: ...


class BlobStore(Protocol):
    def upload(self, path: str, content: bytes, content_type: str) -> str: ...

    def delete(self, path: str) -> None: ...
