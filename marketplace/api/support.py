"""Support ticket API endpoints.

- POST /support/tickets - open a ticket
- PATCH /support/tickets/{id} - change a ticket's status
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from marketplace.api.dependencies import SessionFactory, get_request_id
from marketplace.api.schemas import (
    ErrorResponse,
    OpenTicketRequest,
    TicketIdResponse,
    TicketResponse,
    UpdateTicketRequest,
)
from marketplace.application.support_service import SupportService, get_support_service

router = APIRouter(prefix="/support", tags=["Support"])


def get_service(request: Request, session_factory: SessionFactory) -> SupportService:
    """Get support service with request ID."""
    return get_support_service(session_factory=session_factory, request_id=get_request_id(request))


@router.post(
    "/tickets",
    response_model=TicketIdResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Open support ticket",
)
async def open_ticket(
    body: OpenTicketRequest,
    service: Annotated[SupportService, Depends(get_service)],
) -> TicketIdResponse:
    """Open a support ticket, Open unless another status is given."""
    ticket = await service.open_ticket(
        user_id=body.user_id,
        description=body.description,
        order_id=body.order_id,
        status=body.status,
    )
    return TicketIdResponse(ticket_id=ticket.id)


@router.patch(
    "/tickets/{ticket_id}",
    response_model=TicketResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Update ticket status",
)
async def update_ticket(
    ticket_id: int,
    body: UpdateTicketRequest,
    service: Annotated[SupportService, Depends(get_service)],
) -> TicketResponse:
    """Change a ticket's status."""
    ticket = await service.update_status(ticket_id, body.status)
    return TicketResponse(
        id=ticket.id,
        user_id=ticket.user_id,
        order_id=ticket.order_id,
        description=ticket.description,
        status=ticket.status,
        created_on=ticket.created_on,
    )
