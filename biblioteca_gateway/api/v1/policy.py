"""GET/PUT /v1/policy - loan duration configuration"""

from fastapi import APIRouter, Depends, Request

from biblioteca_gateway.api.dependencies import get_caller_roles, get_registry, get_request_id
from biblioteca_gateway.api.v1.errors import to_http_error
from biblioteca_gateway.api.v1.schemas import PolicySchema
from biblioteca_gateway.domain.registry import LoanRegistry
from biblioteca_gateway.infrastructure.memory import RoleSet
from biblioteca_gateway.infrastructure.observability.logging import log_loan_event
from biblioteca_gateway.infrastructure.observability.metrics import policy_updates_counter

router = APIRouter()


@router.get("/policy", response_model=PolicySchema)
def get_policy(
    request: Request,
    registry: LoanRegistry = Depends(get_registry),
    roles: RoleSet = Depends(get_caller_roles),
):
    request_id = get_request_id(request)
    try:
        registry.authorize(roles)
    except Exception as e:
        raise to_http_error(e, request_id) from e

    return PolicySchema.from_policy(registry.get_policy())


@router.put("/policy", response_model=PolicySchema)
def set_policy(
    request_body: PolicySchema,
    request: Request,
    registry: LoanRegistry = Depends(get_registry),
    roles: RoleSet = Depends(get_caller_roles),
):
    """
    Replace the whole loan policy.

    Only loans created afterwards are affected; existing due dates stay.
    An invalid body leaves the active policy in effect.
    """
    request_id = get_request_id(request)
    try:
        policy = registry.set_policy(request_body.to_policy(), roles)
    except Exception as e:
        raise to_http_error(e, request_id) from e

    policy_updates_counter.inc()
    log_loan_event(request_id, "policy_updated", loan_days=dict(policy.loan_days))
    return PolicySchema.from_policy(policy)
