"""Loan administration endpoints - list, check out, return, penalize"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from biblioteca_gateway.api.dependencies import get_caller_roles, get_registry, get_request_id
from biblioteca_gateway.api.v1.errors import to_http_error
from biblioteca_gateway.api.v1.schemas import (
    LoanCreateRequest,
    LoanListResponse,
    LoanResponse,
    PenaltyHistoryItem,
    PenaltyHistoryResponse,
    PenaltyRequest,
    SummaryResponse,
)
from biblioteca_gateway.domain.registry import LoanRegistry
from biblioteca_gateway.infrastructure.memory import RoleSet
from biblioteca_gateway.infrastructure.observability.logging import log_loan_event
from biblioteca_gateway.infrastructure.observability.metrics import (
    loans_created_counter,
    record_penalty,
    return_commands_counter,
)

router = APIRouter()


@router.get("/loans", response_model=LoanListResponse)
def list_loans(
    request: Request,
    estado: Optional[str] = Query(None, description="all, prestado, devuelto, retrasado or vencido"),
    q: Optional[str] = Query(None, description="Search in book title, user name and email"),
    registry: LoanRegistry = Depends(get_registry),
    roles: RoleSet = Depends(get_caller_roles),
):
    """
    List loans joined with book/user data.

    Overdue flags are computed against the time of this request.
    """
    request_id = get_request_id(request)
    try:
        registry.authorize(roles)
        views = registry.list_loans(estado=estado, query=q)
    except Exception as e:
        raise to_http_error(e, request_id) from e

    return LoanListResponse(count=len(views), loans=[LoanResponse.from_view(v) for v in views])


@router.get("/loans/summary", response_model=SummaryResponse)
def loan_summary(
    request: Request,
    registry: LoanRegistry = Depends(get_registry),
    roles: RoleSet = Depends(get_caller_roles),
):
    request_id = get_request_id(request)
    try:
        registry.authorize(roles)
        summary = registry.summarize()
    except Exception as e:
        raise to_http_error(e, request_id) from e

    return SummaryResponse.from_summary(summary)


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(
    loan_id: str,
    request: Request,
    registry: LoanRegistry = Depends(get_registry),
    roles: RoleSet = Depends(get_caller_roles),
):
    request_id = get_request_id(request)
    try:
        registry.authorize(roles)
        view = registry.get_loan(loan_id)
    except Exception as e:
        raise to_http_error(e, request_id) from e

    return LoanResponse.from_view(view)


@router.post("/loans", response_model=LoanResponse, status_code=201)
def create_loan(
    request_body: LoanCreateRequest,
    request: Request,
    registry: LoanRegistry = Depends(get_registry),
    roles: RoleSet = Depends(get_caller_roles),
):
    """Check out a book; the due date follows the policy for the user's role"""
    request_id = get_request_id(request)
    try:
        view = registry.create_loan(request_body.book_id, request_body.user_id, roles)
    except Exception as e:
        raise to_http_error(e, request_id) from e

    loans_created_counter.inc()
    log_loan_event(
        request_id,
        "loan_created",
        view.id,
        user_id=view.user_id,
        book_id=view.book_id,
        fecha_devolucion=view.fecha_devolucion.isoformat(),
    )
    return LoanResponse.from_view(view)


@router.post("/loans/{loan_id}/return", response_model=LoanResponse)
def mark_returned(
    loan_id: str,
    request: Request,
    registry: LoanRegistry = Depends(get_registry),
    roles: RoleSet = Depends(get_caller_roles),
):
    """Mark a loan as returned. Repeating the call is harmless."""
    request_id = get_request_id(request)
    try:
        view = registry.mark_returned(loan_id, roles)
    except Exception as e:
        raise to_http_error(e, request_id) from e

    return_commands_counter.inc()
    log_loan_event(request_id, "return_processed", loan_id, estado=view.estado)
    return LoanResponse.from_view(view)


@router.post("/loans/{loan_id}/penalty", response_model=LoanResponse)
def apply_penalty(
    loan_id: str,
    request_body: PenaltyRequest,
    request: Request,
    registry: LoanRegistry = Depends(get_registry),
    roles: RoleSet = Depends(get_caller_roles),
):
    """Apply a penalty now, replacing any penalty already on the loan"""
    request_id = get_request_id(request)
    try:
        view = registry.apply_penalty(loan_id, request_body.dias, request_body.razon, roles)
    except Exception as e:
        raise to_http_error(e, request_id) from e

    record_penalty(request_body.dias)
    log_loan_event(
        request_id,
        "penalty_applied",
        loan_id,
        user_id=view.user_id,
        dias=request_body.dias,
    )
    return LoanResponse.from_view(view)


@router.get("/loans/{loan_id}/penalties", response_model=PenaltyHistoryResponse)
def penalty_history(
    loan_id: str,
    request: Request,
    registry: LoanRegistry = Depends(get_registry),
    roles: RoleSet = Depends(get_caller_roles),
):
    """Every penalty ever applied to the loan, oldest first"""
    request_id = get_request_id(request)
    try:
        registry.authorize(roles)
        entries = registry.penalty_history(loan_id)
    except Exception as e:
        raise to_http_error(e, request_id) from e

    return PenaltyHistoryResponse(
        loan_id=loan_id,
        penalties=[PenaltyHistoryItem.from_entry(entry) for entry in entries],
    )
