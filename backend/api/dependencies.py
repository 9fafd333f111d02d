"""
Shared FastAPI dependencies: services, caller resolution, client address.
"""

from fastapi import Depends, Header, Request
from pymongo.database import Database

from database import get_database
from models.identity import Identity
from services.credential_manager import CredentialManager
from services.identity_ledger import IdentityLedger
from services.metrics import MetricsSink, NullMetricsSink


def get_metrics_sink(request: Request) -> MetricsSink:
    """Sink configured on the app at startup."""
    return getattr(request.app.state, "metrics", None) or NullMetricsSink()


def get_identity_ledger(
    db: Database = Depends(get_database),
    metrics: MetricsSink = Depends(get_metrics_sink),
) -> IdentityLedger:
    """Dependency injection for IdentityLedger."""
    return IdentityLedger(db, metrics=metrics)


def get_credential_manager(
    db: Database = Depends(get_database),
    ledger: IdentityLedger = Depends(get_identity_ledger),
    metrics: MetricsSink = Depends(get_metrics_sink),
) -> CredentialManager:
    """Dependency injection for CredentialManager."""
    return CredentialManager(db, ledger, metrics=metrics)


async def get_caller(
    x_api_key: str = Header(..., description="API key of the calling identity"),
    manager: CredentialManager = Depends(get_credential_manager),
) -> Identity:
    """Resolve the calling identity from its API key."""
    return await manager.resolve_caller(x_api_key)


def get_client_address(request: Request) -> str:
    """First hop of x-forwarded-for, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
