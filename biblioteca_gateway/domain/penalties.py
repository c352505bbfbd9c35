"""Penalty ledger: validates and stamps penalties onto loans"""

from dataclasses import replace
from datetime import datetime
from typing import Optional

from biblioteca_gateway.domain.exceptions import NotFoundError, ValidationError
from biblioteca_gateway.domain.models import LoanRecord, Penalty


def validate_penalty(dias: int, razon: str) -> None:
    """Raises ValidationError for non-positive days or a blank reason"""
    if isinstance(dias, bool) or not isinstance(dias, int) or dias <= 0:
        raise ValidationError(f"Penalty days must be a positive integer, got {dias!r}")
    if not isinstance(razon, str) or not razon.strip():
        raise ValidationError("Penalty reason must not be empty")


class PenaltyLedger:
    """
    Records the fact that a penalty was applied.

    The loan carries only its latest penalty (a new one overwrites the old).
    Earlier penalties stay in the store's penalty history. Enforcing
    restrictions on future loans is not done here.
    """

    def apply_penalty(
        self,
        loan: Optional[LoanRecord],
        dias: int,
        razon: str,
        applied_at: datetime,
    ) -> LoanRecord:
        """
        Return a copy of `loan` whose penalty is replaced by the new one.

        Allowed in any loan state, including `devuelto` (late return).
        Validation runs fully before anything is stamped.

        Raises:
            ValidationError: dias <= 0 or empty razon
            NotFoundError: loan is None
        """
        validate_penalty(dias, razon)
        if loan is None:
            raise NotFoundError("Loan not found")

        penalty = Penalty(dias=dias, razon=razon.strip(), fecha_aplicacion=applied_at)
        return replace(loan, penalizacion=penalty)
