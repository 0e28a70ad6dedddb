"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.infrastructure.audit import AuditDispatcher, build_audit_sink
from marketplace.infrastructure.config import settings
from marketplace.infrastructure.database import get_session_factory

ACTOR_HEADER = "X-Actor"

SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


def get_audit_dispatcher(session_factory: SessionFactory) -> AuditDispatcher:
    """Build the dispatcher for the configured audit sink."""
    return AuditDispatcher(build_audit_sink(settings.audit_sink, session_factory))


Audit = Annotated[AuditDispatcher, Depends(get_audit_dispatcher)]


def get_request_id(request: Request) -> str | None:
    """Request ID set by RequestContextMiddleware."""
    return getattr(request.state, "request_id", None)


def get_actor(request: Request) -> str:
    """Name recorded in status history and audit events."""
    return request.headers.get(ACTOR_HEADER) or "api"


Actor = Annotated[str, Depends(get_actor)]
