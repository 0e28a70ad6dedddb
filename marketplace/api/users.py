"""User API endpoints.

- POST /users - register a user
- POST /users/login - verify credentials
- POST /users/{id}/addresses - save a shipping address
- POST /sellers - register a seller
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from marketplace.api.dependencies import Audit, SessionFactory, get_request_id
from marketplace.api.schemas import (
    ErrorResponse,
    LoginRequest,
    RegisterUserRequest,
    SellerIdResponse,
    ShippingAddressRequest,
    ShippingAddressResponse,
    UserIdResponse,
)
from marketplace.application.user_service import (
    AddressDTO,
    RegistrationDTO,
    UserService,
    get_user_service,
)

router = APIRouter(prefix="/users", tags=["Users"])
sellers_router = APIRouter(prefix="/sellers", tags=["Users"])


def get_service(request: Request, session_factory: SessionFactory, audit: Audit) -> UserService:
    """Get user service with request ID."""
    return get_user_service(
        session_factory=session_factory,
        audit=audit,
        request_id=get_request_id(request),
    )


@router.post(
    "",
    response_model=UserIdResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Register user",
)
async def register_user(
    body: RegisterUserRequest,
    service: Annotated[UserService, Depends(get_service)],
) -> UserIdResponse:
    """Register a user. Email and username must be unused."""
    user = await service.register(
        RegistrationDTO(
            first_name=body.first_name,
            last_name=body.last_name,
            email=body.email,
            username=body.username,
            password=body.password,
            mobile_number=body.mobile_number,
        )
    )
    return UserIdResponse(user_id=user.id)


@sellers_router.post(
    "",
    response_model=SellerIdResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Register seller",
)
async def register_seller(
    body: RegisterUserRequest,
    service: Annotated[UserService, Depends(get_service)],
) -> SellerIdResponse:
    """Register a seller. Email and username must be unused among sellers."""
    seller = await service.register_seller(
        RegistrationDTO(
            first_name=body.first_name,
            last_name=body.last_name,
            email=body.email,
            username=body.username,
            password=body.password,
            mobile_number=body.mobile_number,
        )
    )
    return SellerIdResponse(seller_id=seller.id)


@router.post(
    "/login",
    response_model=UserIdResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Log in",
)
async def login(
    body: LoginRequest,
    service: Annotated[UserService, Depends(get_service)],
) -> UserIdResponse:
    """Verify credentials and record the login time."""
    user = await service.authenticate(body.username, body.password)
    return UserIdResponse(user_id=user.id)


@router.post(
    "/{user_id}/addresses",
    response_model=ShippingAddressResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Add shipping address",
)
async def add_shipping_address(
    user_id: int,
    body: ShippingAddressRequest,
    service: Annotated[UserService, Depends(get_service)],
) -> ShippingAddressResponse:
    """Save a shipping address for a user."""
    address = await service.add_shipping_address(
        user_id,
        AddressDTO(
            street=body.street,
            city=body.city,
            state=body.state,
            zip_code=body.zip_code,
            country=body.country,
            apartment_name=body.apartment_name,
            region=body.region,
        ),
    )
    return ShippingAddressResponse(address_id=address.id)
