"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, StrictInt

from biblioteca_gateway.domain.models import EnrichedLoanView, LoanSummary, PenaltyEntry
from biblioteca_gateway.domain.policy import PolicyConfig


class LoanCreateRequest(BaseModel):
    """Request body for POST /v1/loans"""

    book_id: str = Field(..., min_length=1, description="Catalog book identifier")
    user_id: str = Field(..., min_length=1, description="Borrowing user identifier")


class PenaltyRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/penalty

    Values are checked by the domain so that bad input maps to one error type.
    """

    dias: StrictInt = Field(..., description="Restriction days, must be > 0")
    razon: str = Field(..., description="Reason, must not be empty")


class PenaltySchema(BaseModel):
    dias: int
    razon: str
    fecha_aplicacion: datetime


class LoanResponse(BaseModel):
    """Loan joined with book and user display data"""

    id: str
    book_id: str
    user_id: str
    fecha_prestamo: datetime
    fecha_devolucion: datetime
    estado: str
    penalizacion: Optional[PenaltySchema] = None
    libro_titulo: str
    usuario: str
    user_email: str
    user_role: str
    vencido: bool

    @classmethod
    def from_view(cls, view: EnrichedLoanView) -> "LoanResponse":
        penalty = view.penalizacion
        return cls(
            id=view.id,
            book_id=view.book_id,
            user_id=view.user_id,
            fecha_prestamo=view.fecha_prestamo,
            fecha_devolucion=view.fecha_devolucion,
            estado=view.estado,
            penalizacion=(
                PenaltySchema(dias=penalty.dias, razon=penalty.razon, fecha_aplicacion=penalty.fecha_aplicacion)
                if penalty
                else None
            ),
            libro_titulo=view.libro_titulo,
            usuario=view.usuario,
            user_email=view.user_email,
            user_role=view.user_role,
            vencido=view.vencido,
        )


class LoanListResponse(BaseModel):
    """Response for GET /v1/loans"""

    count: int
    loans: List[LoanResponse]


class SummaryResponse(BaseModel):
    """Response for GET /v1/loans/summary"""

    total: int
    prestado: int
    devuelto: int
    retrasado: int
    vencido: int

    @classmethod
    def from_summary(cls, summary: LoanSummary) -> "SummaryResponse":
        return cls(
            total=summary.total,
            prestado=summary.prestado,
            devuelto=summary.devuelto,
            retrasado=summary.retrasado,
            vencido=summary.vencido,
        )


class PenaltyHistoryItem(BaseModel):
    loan_id: str
    user_id: str
    dias: int
    razon: str
    fecha_aplicacion: datetime

    @classmethod
    def from_entry(cls, entry: PenaltyEntry) -> "PenaltyHistoryItem":
        return cls(
            loan_id=entry.loan_id,
            user_id=entry.user_id,
            dias=entry.penalty.dias,
            razon=entry.penalty.razon,
            fecha_aplicacion=entry.penalty.fecha_aplicacion,
        )


class PenaltyHistoryResponse(BaseModel):
    """Response for GET /v1/loans/{loan_id}/penalties"""

    loan_id: str
    penalties: List[PenaltyHistoryItem]


class PolicySchema(BaseModel):
    """Complete loan policy; PUT always replaces the whole policy"""

    loan_days: Dict[str, StrictInt]
    max_renewals: StrictInt
    max_active_loans: StrictInt

    @classmethod
    def from_policy(cls, policy: PolicyConfig) -> "PolicySchema":
        return cls(
            loan_days=dict(policy.loan_days),
            max_renewals=policy.max_renewals,
            max_active_loans=policy.max_active_loans,
        )

    def to_policy(self) -> PolicyConfig:
        return PolicyConfig(
            loan_days=dict(self.loan_days),
            max_renewals=self.max_renewals,
            max_active_loans=self.max_active_loans,
        )
