"""Loan-duration policy: role table plus named policy numerics"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping

from biblioteca_gateway.config import Settings
from biblioteca_gateway.domain.exceptions import ValidationError
from biblioteca_gateway.utils.date_utils import add_days


@dataclass(frozen=True)
class PolicyConfig:
    """Complete loan policy. Replaced wholesale, never patched."""

    loan_days: Dict[str, int] = field(default_factory=dict)
    max_renewals: int = 2
    max_active_loans: int = 3

    def loan_days_for(self, role: str) -> int:
        try:
            return self.loan_days[role]
        except KeyError:
            raise ValidationError(f"No loan duration configured for role '{role}'") from None


def _require_positive_int(name: str, value: Any) -> None:
    # bool is an int subclass; True must not pass as 1 day
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}")


def validate_policy(config: PolicyConfig) -> PolicyConfig:
    """
    Check every value of a policy before it goes live.

    Raises:
        ValidationError: Empty role table, blank role name, or any value that
            is not a strictly positive integer
    """
    if not isinstance(config.loan_days, Mapping) or not config.loan_days:
        raise ValidationError("loan_days must map at least one role to a number of days")

    for role, days in config.loan_days.items():
        if not isinstance(role, str) or not role.strip():
            raise ValidationError(f"Invalid role name {role!r}")
        _require_positive_int(f"loan_days[{role}]", days)

    _require_positive_int("max_renewals", config.max_renewals)
    _require_positive_int("max_active_loans", config.max_active_loans)
    return config


def build_policy(
    loan_days: Mapping[str, int],
    max_renewals: int = 2,
    max_active_loans: int = 3,
) -> PolicyConfig:
    """Build and validate a policy; the role table is copied, not shared"""
    return validate_policy(
        PolicyConfig(
            loan_days=dict(loan_days),
            max_renewals=max_renewals,
            max_active_loans=max_active_loans,
        )
    )


def policy_from_settings(settings: Settings) -> PolicyConfig:
    """Initial policy at process start"""
    return build_policy(
        settings.default_loan_days,
        max_renewals=settings.default_max_renewals,
        max_active_loans=settings.default_max_active_loans,
    )


def compute_due_date(policy: PolicyConfig, role: str, loan_date: datetime) -> datetime:
    """Due date for a new loan; evaluated once at creation"""
    return add_days(loan_date, policy.loan_days_for(role))
