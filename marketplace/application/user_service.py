"""User application service.

Handles user and seller registration, login and shipping addresses.
Passwords are hashed before they reach the database and are never logged.
"""

import asyncio
from dataclasses import dataclass
from typing import TypeVar

import structlog
from sqlalchemy import exc as sa_exc
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.domain.events import AuditedEntity, ChangeEvent
from marketplace.domain.exceptions import (
    AuthenticationError,
    IntegrityError,
    UserNotFoundError,
    ValidationError,
)
from marketplace.domain.validation import (
    NAME_MAX_LENGTH,
    USERNAME_MAX_LENGTH,
    require_text,
    validate_email,
    validate_mobile_number,
    validate_zip_code,
)
from marketplace.infrastructure.audit import AuditDispatcher, LogAuditSink
from marketplace.infrastructure.crypto import PasswordHasher, get_password_hasher
from marketplace.infrastructure.database import get_session_factory
from marketplace.infrastructure.models import SellerModel, ShippingAddressModel, UserModel, utcnow
from marketplace.infrastructure.unit_of_work import UnitOfWork

logger = structlog.get_logger()

Account = TypeVar("Account", UserModel, SellerModel)


# ============================================================================
# User Data Transfer Objects
# ============================================================================


@dataclass
class RegistrationDTO:
    """New user registration data."""

    first_name: str
    last_name: str
    email: str
    username: str
    password: str
    mobile_number: str | None = None


@dataclass
class AddressDTO:
    """Shipping address data transfer object."""

    street: str
    city: str
    state: str
    zip_code: str
    country: str
    apartment_name: str | None = None
    region: str | None = None


# ============================================================================
# User Service
# ============================================================================


class UserService:
    """Application service for users and their addresses."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        audit: AuditDispatcher | None = None,
        hasher: PasswordHasher | None = None,
        request_id: str | None = None,
    ) -> None:
        self.session_factory = session_factory or get_session_factory()
        self.uow = UnitOfWork(self.session_factory)
        self.audit = audit or AuditDispatcher(LogAuditSink())
        self.hasher = hasher or get_password_hasher()
        self.request_id = request_id

    async def register(self, registration: RegistrationDTO) -> UserModel:
        """Register a new user.

        Args:
            registration: User details and plaintext password.

        Returns:
            The created user.

        Raises:
            ValidationError: If a field is malformed.
            IntegrityError: If the email or username is taken.
        """
        fields = await self._account_fields(registration)
        user = await self._create_account(UserModel, fields, "register_user")

        self.audit.publish([ChangeEvent.inserted(AuditedEntity.USERS, user.id, after=user.to_dict())])

        logger.info("User registered", user_id=user.id, username=user.username, request_id=self.request_id)
        return user

    async def register_seller(self, registration: RegistrationDTO) -> SellerModel:
        """Register a seller account.

        Sellers follow the same field rules as users. Their email and
        username only need to be unused among sellers.

        Raises:
            ValidationError: If a field is malformed.
            IntegrityError: If the email or username is taken.
        """
        fields = await self._account_fields(registration)
        seller = await self._create_account(SellerModel, fields, "register_seller")

        logger.info(
            "Seller registered",
            seller_id=seller.id,
            username=seller.username,
            request_id=self.request_id,
        )
        return seller

    async def _account_fields(self, registration: RegistrationDTO) -> dict[str, str | None]:
        """Validate registration data and hash the password."""
        fields = {
            "first_name": require_text("first_name", registration.first_name, NAME_MAX_LENGTH),
            "last_name": require_text("last_name", registration.last_name, NAME_MAX_LENGTH),
            "username": require_text("username", registration.username, USERNAME_MAX_LENGTH),
            "email": validate_email(registration.email),
            "mobile_number": validate_mobile_number(registration.mobile_number),
        }
        if not registration.password:
            raise ValidationError("password", "must not be empty")

        fields["password_hash"] = await asyncio.to_thread(self.hasher.hash, registration.password)
        return fields

    async def _create_account(
        self,
        model: type[Account],
        fields: dict[str, str | None],
        operation: str,
    ) -> Account:
        email, username = fields["email"], fields["username"]

        async def work(session: AsyncSession) -> Account:
            taken = await session.execute(
                select(model.email, model.username).where(
                    or_(model.email == email, model.username == username)
                )
            )
            for taken_email, taken_username in taken:
                if taken_email == email:
                    raise IntegrityError("email", email)
                if taken_username == username:
                    raise IntegrityError("username", username)

            account = model(**fields)
            session.add(account)
            await session.flush()
            return account

        try:
            return await self.uow.run(operation, work)
        except sa_exc.IntegrityError as exc:
            # Lost a race with a concurrent registration
            raise IntegrityError("email or username", f"{email} / {username}") from exc

    async def authenticate(self, username: str, password: str) -> UserModel:
        """Verify credentials and record the login time.

        Raises:
            AuthenticationError: If the username is unknown or the
                password does not match.
        """
        async with self.session_factory() as session:
            user = await session.scalar(select(UserModel).where(UserModel.username == username))

        if user is None or not await asyncio.to_thread(
            self.hasher.verify, password, user.password_hash
        ):
            logger.warning("Login failed", username=username, request_id=self.request_id)
            raise AuthenticationError()
        user_id = user.id

        async def work(session: AsyncSession) -> tuple[UserModel, dict, dict]:
            current = await session.get(UserModel, user_id, with_for_update=True)
            if current is None:
                raise AuthenticationError()
            before = current.to_dict()
            current.last_login_date = utcnow()
            await session.flush()
            return current, before, current.to_dict()

        user, before, after = await self.uow.run("login", work)

        self.audit.publish([ChangeEvent.updated(AuditedEntity.USERS, user.id, before, after)])

        logger.info("User logged in", user_id=user.id, request_id=self.request_id)
        return user

    async def add_shipping_address(self, user_id: int, address: AddressDTO) -> ShippingAddressModel:
        """Save a shipping address for a user.

        Raises:
            UserNotFoundError: If the user does not exist.
            ValidationError: If a field is malformed.
        """
        zip_code = validate_zip_code(address.zip_code)
        street = require_text("street", address.street, 255)
        city = require_text("city", address.city, 100)
        state = require_text("state", address.state, 100)
        country = require_text("country", address.country, 100)

        async def work(session: AsyncSession) -> ShippingAddressModel:
            if await session.get(UserModel, user_id) is None:
                raise UserNotFoundError(user_id)
            record = ShippingAddressModel(
                user_id=user_id,
                apartment_name=address.apartment_name,
                street=street,
                city=city,
                state=state,
                zip_code=zip_code,
                region=address.region,
                country=country,
            )
            session.add(record)
            await session.flush()
            return record

        record = await self.uow.run("add_shipping_address", work)

        logger.info(
            "Shipping address added",
            user_id=user_id,
            address_id=record.id,
            request_id=self.request_id,
        )
        return record


# ============================================================================
# Service Factory
# ============================================================================


def get_user_service(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    audit: AuditDispatcher | None = None,
    request_id: str | None = None,
) -> UserService:
    """Get user service instance.

    Args:
        session_factory: Session factory to use.
        audit: Dispatcher for change events.
        request_id: Request ID for correlation.

    Returns:
        UserService instance.
    """
    return UserService(session_factory=session_factory, audit=audit, request_id=request_id)
