"""Dependency injection for FastAPI endpoints"""

from dataclasses import dataclass

from fastapi import Header, HTTPException, Query, Request

from billing_ledger.config import settings
from billing_ledger.infrastructure.clients.aggregator import AggregatorClient
from billing_ledger.services.categories import AllowAllCategories, CategoryValidator


@dataclass
class Pagination:
    page: int
    limit: int


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_current_user_id(x_user_id: str | None = Header(None, alias="X-User-Id")) -> str:
    """Authenticated user identity; requests without one are rejected, never defaulted"""
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def get_pagination(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
) -> Pagination:
    return Pagination(page=page, limit=limit)


def get_aggregator_client() -> AggregatorClient:
    """Provide account-aggregation API client instance"""
    return AggregatorClient()


def get_category_validator() -> CategoryValidator:
    return AllowAllCategories()
