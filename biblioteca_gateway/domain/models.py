"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from biblioteca_gateway.utils.date_utils import ensure_utc

# Stored loan states
PRESTADO = "prestado"
DEVUELTO = "devuelto"
RETRASADO = "retrasado"

LOAN_STATES = frozenset({PRESTADO, DEVUELTO, RETRASADO})

# Synthetic filter values
ALL = "all"
VENCIDO = "vencido"

# Roles allowed to administer loans
STAFF_ROLES = frozenset({"bibliotecario", "administrador"})

UNKNOWN_USER = "Usuario desconocido"
UNKNOWN_BOOK = "Libro desconocido"


@dataclass(frozen=True)
class Penalty:
    """Restriction-days annotation attached to a loan"""

    dias: int
    razon: str
    fecha_aplicacion: datetime

    def __post_init__(self):
        object.__setattr__(self, "fecha_aplicacion", ensure_utc(self.fecha_aplicacion))


@dataclass(frozen=True)
class LoanRecord:
    """Checkout of one physical book by one user

    Dates are held in UTC; naive values are taken to be UTC already.
    """

    id: str
    book_id: str
    user_id: str
    fecha_prestamo: datetime
    fecha_devolucion: datetime  # fixed at creation
    estado: str  # "prestado", "devuelto" or "retrasado"
    penalizacion: Optional[Penalty] = None

    def __post_init__(self):
        object.__setattr__(self, "fecha_prestamo", ensure_utc(self.fecha_prestamo))
        object.__setattr__(self, "fecha_devolucion", ensure_utc(self.fecha_devolucion))


@dataclass(frozen=True)
class Book:
    """Catalog entry, resolved through BookCatalog"""

    id: str
    titulo: str


@dataclass(frozen=True)
class User:
    """Library user, resolved through UserDirectory"""

    id: str
    nombre: str
    apellidos: str
    email: str
    role: str

    @property
    def full_name(self) -> str:
        return f"{self.nombre} {self.apellidos}"


@dataclass(frozen=True)
class EnrichedLoanView:
    """Loan joined with book/user display data and the derived overdue flag"""

    id: str
    book_id: str
    user_id: str
    fecha_prestamo: datetime
    fecha_devolucion: datetime
    estado: str
    penalizacion: Optional[Penalty]
    libro_titulo: str
    usuario: str
    user_email: str
    user_role: str
    vencido: bool


@dataclass(frozen=True)
class LoanSummary:
    """Loan counts computed from one snapshot"""

    total: int
    prestado: int
    devuelto: int
    retrasado: int
    vencido: int


@dataclass(frozen=True)
class PenaltyEntry:
    """One applied penalty in a loan's penalty history"""

    loan_id: str
    user_id: str
    penalty: Penalty


@dataclass(frozen=True)
class Thesis:
    """Thesis record with an optional stored PDF"""

    id: str
    titulo: str
    autor: str
    archivo_pdf: Optional[str] = None


@dataclass(frozen=True)
class DigitalBook:
    """Digital copy of a catalog book"""

    id: str
    book_id: str
    storage_path: Optional[str] = None


@dataclass(frozen=True)
class NewFile:
    """File supplied by an edit flow"""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"
