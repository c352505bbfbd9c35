"""Data access layer for loans, books and users"""

from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

from biblioteca_gateway.domain.exceptions import NotFoundError
from biblioteca_gateway.domain.models import Book, LoanRecord, Penalty, PenaltyEntry, User
from biblioteca_gateway.infrastructure.database.models import BookRow, LoanPenaltyRow, LoanRow, UserRow
from biblioteca_gateway.utils.date_utils import ensure_utc


def _to_record(row: LoanRow) -> LoanRecord:
    penalty = None
    if row.penalty_dias is not None:
        penalty = Penalty(
            dias=row.penalty_dias,
            razon=row.penalty_razon,
            fecha_aplicacion=ensure_utc(row.penalty_fecha_aplicacion),
        )
    return LoanRecord(
        id=row.id,
        book_id=row.book_id,
        user_id=row.user_id,
        fecha_prestamo=ensure_utc(row.fecha_prestamo),
        fecha_devolucion=ensure_utc(row.fecha_devolucion),
        estado=row.estado,
        penalizacion=penalty,
    )


def _penalty_columns(penalty: Optional[Penalty]) -> dict:
    return {
        "penalty_dias": penalty.dias if penalty else None,
        "penalty_razon": penalty.razon if penalty else None,
        "penalty_fecha_aplicacion": penalty.fecha_aplicacion if penalty else None,
    }


def _history_row(loan: LoanRecord, penalty: Penalty) -> LoanPenaltyRow:
    return LoanPenaltyRow(
        loan_id=loan.id,
        user_id=loan.user_id,
        dias=penalty.dias,
        razon=penalty.razon,
        fecha_aplicacion=penalty.fecha_aplicacion,
    )


def _to_entry(row: LoanPenaltyRow) -> PenaltyEntry:
    return PenaltyEntry(
        loan_id=row.loan_id,
        user_id=row.user_id,
        penalty=Penalty(dias=row.dias, razon=row.razon, fecha_aplicacion=ensure_utc(row.fecha_aplicacion)),
    )


class SqlLoanStore:
    """
    Loan store over a session factory.

    Each call opens its own session and commits, so a store instance can be
    shared across requests.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def all(self) -> List[LoanRecord]:
        with self.session_factory() as db:
            rows = db.query(LoanRow).order_by(LoanRow.fecha_prestamo.desc(), LoanRow.id).all()
            return [_to_record(row) for row in rows]

    def get(self, loan_id: str) -> Optional[LoanRecord]:
        with self.session_factory() as db:
            row = db.get(LoanRow, loan_id)
            return _to_record(row) if row else None

    def add(self, loan: LoanRecord) -> None:
        with self.session_factory() as db:
            row = LoanRow(
                id=loan.id,
                book_id=loan.book_id,
                user_id=loan.user_id,
                fecha_prestamo=loan.fecha_prestamo,
                fecha_devolucion=loan.fecha_devolucion,
                estado=loan.estado,
                **_penalty_columns(loan.penalizacion),
            )
            db.add(row)
            db.commit()

    def update(
        self, loan_id: str, change: Callable[[LoanRecord], LoanRecord]
    ) -> Tuple[LoanRecord, LoanRecord]:
        """
        Apply `change` to a loan inside one locked transaction.

        The row is read with SELECT ... FOR UPDATE and written in the same
        session. Only the columns the change touched are updated: `estado`
        for a return, the penalty columns (plus a `loan_penalty` history row)
        for a penalty. The due date column is never written.
        """
        with self.session_factory() as db:
            row = db.query(LoanRow).filter(LoanRow.id == loan_id).with_for_update().first()
            if row is None:
                raise NotFoundError(f"Loan {loan_id} not found")
            before = _to_record(row)
            changed = change(before)

            values = {}
            if changed.estado != before.estado:
                values["estado"] = changed.estado
            if changed.penalizacion is not before.penalizacion:
                values.update(_penalty_columns(changed.penalizacion))
                if changed.penalizacion is not None:
                    db.add(_history_row(before, changed.penalizacion))
            if values:
                db.query(LoanRow).filter(LoanRow.id == loan_id).update(values, synchronize_session=False)
            db.commit()

            stored = db.get(LoanRow, loan_id, populate_existing=True)
            return before, _to_record(stored)

    def penalty_history(self, loan_id: str) -> List[PenaltyEntry]:
        with self.session_factory() as db:
            query = db.query(LoanPenaltyRow).filter(LoanPenaltyRow.loan_id == loan_id)
            return [_to_entry(row) for row in query.order_by(LoanPenaltyRow.id).all()]

    def penalties_for_user(self, user_id: str) -> List[PenaltyEntry]:
        with self.session_factory() as db:
            query = db.query(LoanPenaltyRow).filter(LoanPenaltyRow.user_id == user_id)
            return [_to_entry(row) for row in query.order_by(LoanPenaltyRow.id).all()]


class SqlBookCatalog:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def find(self, book_id: str) -> Optional[Book]:
        with self.session_factory() as db:
            row = db.get(BookRow, book_id)
            return Book(id=row.id, titulo=row.titulo) if row else None


class SqlUserDirectory:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def find(self, user_id: str) -> Optional[User]:
        with self.session_factory() as db:
            row = db.get(UserRow, user_id)
            if row is None:
                return None
            return User(
                id=row.id,
                nombre=row.nombre,
                apellidos=row.apellidos,
                email=row.email,
                role=row.role,
            )


def seed_directory(db: Session, books: List[Book], users: List[User]) -> None:
    """Insert catalog/directory rows (fixtures and local development)"""
    for book in books:
        db.merge(BookRow(id=book.id, titulo=book.titulo))
    for user in users:
        db.merge(
            UserRow(
                id=user.id,
                nombre=user.nombre,
                apellidos=user.apellidos,
                email=user.email,
                role=user.role,
            )
        )
    db.commit()
