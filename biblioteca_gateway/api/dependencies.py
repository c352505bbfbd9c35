"""Dependency injection for FastAPI endpoints"""

from fastapi import Header, Request

from biblioteca_gateway.domain.registry import LoanRegistry
from biblioteca_gateway.infrastructure.memory import RoleSet


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_registry(request: Request) -> LoanRegistry:
    """Provide the application's loan registry"""
    return request.app.state.registry


def get_caller_roles(x_user_roles: str = Header(default="")) -> RoleSet:
    """Roles of the caller, as forwarded by the authenticating proxy"""
    return RoleSet(x_user_roles.split(","))
