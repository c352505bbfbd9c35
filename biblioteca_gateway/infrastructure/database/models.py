"""SQLAlchemy ORM models for loans and the read-only book/user tables"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class LoanRow(Base):
    """Loan record with its latest penalty flattened into nullable columns"""

    __tablename__ = "loan"

    id = Column(Text, primary_key=True)
    book_id = Column(Text, nullable=False, index=True)
    user_id = Column(Text, nullable=False, index=True)
    fecha_prestamo = Column(DateTime(timezone=True), nullable=False)
    fecha_devolucion = Column(DateTime(timezone=True), nullable=False)
    estado = Column(Text, nullable=False, default="prestado")
    penalty_dias = Column(Integer, nullable=True)
    penalty_razon = Column(Text, nullable=True)
    penalty_fecha_aplicacion = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class LoanPenaltyRow(Base):
    """Every penalty applied to a loan, in application order"""

    __tablename__ = "loan_penalty"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(Text, ForeignKey("loan.id"), nullable=False, index=True)
    user_id = Column(Text, nullable=False, index=True)
    dias = Column(Integer, nullable=False)
    razon = Column(Text, nullable=False)
    fecha_aplicacion = Column(DateTime(timezone=True), nullable=False)


class BookRow(Base):
    """Catalog entry (owned by the catalog service, read here for display)"""

    __tablename__ = "book"

    id = Column(Text, primary_key=True)
    titulo = Column(Text, nullable=False)


class UserRow(Base):
    """Library user (owned by the user directory, read here for display)"""

    __tablename__ = "library_user"

    id = Column(Text, primary_key=True)
    nombre = Column(Text, nullable=False)
    apellidos = Column(Text, nullable=False, default="")
    email = Column(Text, nullable=False)
    role = Column(Text, nullable=False)
