"""Tests for registration, login and shipping addresses."""

import pytest

from marketplace.application.user_service import AddressDTO, RegistrationDTO, UserService
from marketplace.domain.events import AuditedEntity, ChangeAction
from marketplace.domain.exceptions import (
    AuthenticationError,
    IntegrityError,
    UserNotFoundError,
    ValidationError,
)
from marketplace.infrastructure.audit import drain_audit_tasks
from marketplace.infrastructure.crypto import PasswordHasher
from marketplace.infrastructure.models import SellerModel, UserModel


@pytest.fixture
def users(session_factory, audit, fast_hasher) -> UserService:
    return UserService(session_factory=session_factory, audit=audit, hasher=fast_hasher)


def registration(**overrides) -> RegistrationDTO:
    data = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "username": "ada",
        "password": "analytical-engine",
        "mobile_number": "0612345678",
    }
    data.update(overrides)
    return RegistrationDTO(**data)


class TestPasswordHasher:
    """Tests for PasswordHasher."""

    def test_hash_and_verify(self, fast_hasher: PasswordHasher) -> None:
        password_hash = fast_hasher.hash("s3cret")

        assert password_hash.startswith("$argon2id$")
        assert fast_hasher.verify("s3cret", password_hash)
        assert not fast_hasher.verify("wrong", password_hash)

    def test_salted(self, fast_hasher: PasswordHasher) -> None:
        """The same password hashes differently each time."""
        assert fast_hasher.hash("s3cret") != fast_hasher.hash("s3cret")

    def test_garbage_hash(self, fast_hasher: PasswordHasher) -> None:
        assert not fast_hasher.verify("s3cret", "not-a-hash")


class TestRegister:
    """Tests for UserService.register."""

    async def test_register(self, users, audit_sink) -> None:
        user = await users.register(registration())
        await drain_audit_tasks()

        assert user.id is not None
        assert user.password_hash != "analytical-engine"
        [event] = audit_sink.events
        assert event.entity == AuditedEntity.USERS
        assert event.action == ChangeAction.INSERT
        assert "password_hash" not in event.after

    async def test_duplicate_email(self, users) -> None:
        await users.register(registration())

        with pytest.raises(IntegrityError) as exc_info:
            await users.register(registration(username="ada2"))

        assert exc_info.value.field == "email"

    async def test_duplicate_username(self, users) -> None:
        await users.register(registration())

        with pytest.raises(IntegrityError) as exc_info:
            await users.register(registration(email="other@example.com"))

        assert exc_info.value.field == "username"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"email": "not-an-email"},
            {"first_name": " "},
            {"mobile_number": "+44 20 7946"},
            {"password": ""},
        ],
    )
    async def test_invalid_fields(self, users, overrides) -> None:
        with pytest.raises(ValidationError):
            await users.register(registration(**overrides))


class TestRegisterSeller:
    """Tests for UserService.register_seller."""

    async def test_register_seller(self, users, seed, audit_sink) -> None:
        seller = await users.register_seller(registration())
        await drain_audit_tasks()

        assert seller.id is not None
        assert seller.password_hash.startswith("$argon2id$")
        assert await seed.count(SellerModel) == 1
        assert await seed.count(UserModel) == 0
        assert audit_sink.events == []

    async def test_same_details_as_a_user(self, users) -> None:
        """Seller accounts are separate from user accounts."""
        await users.register(registration())

        seller = await users.register_seller(registration())

        assert seller.username == "ada"

    async def test_duplicate_seller_username(self, users) -> None:
        await users.register_seller(registration())

        with pytest.raises(IntegrityError) as exc_info:
            await users.register_seller(registration(email="other@example.com"))

        assert exc_info.value.field == "username"

    @pytest.mark.parametrize(
        ("field", "overrides"),
        [("email", {"email": "ada@nowhere"}), ("mobile_number", {"mobile_number": "+31 6"})],
    )
    async def test_field_rules_shared_with_users(self, users, field, overrides) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await users.register_seller(registration(**overrides))

        assert exc_info.value.details["field"] == field


class TestAuthenticate:
    """Tests for UserService.authenticate."""

    async def test_login_records_time(self, users, audit_sink) -> None:
        registered = await users.register(registration())
        assert registered.last_login_date is None

        user = await users.authenticate("ada", "analytical-engine")
        await drain_audit_tasks()

        assert user.id == registered.id
        assert user.last_login_date is not None
        login_event = audit_sink.events[-1]
        assert login_event.action == ChangeAction.UPDATE
        assert login_event.before["last_login_date"] is None
        assert login_event.after["last_login_date"] is not None

    async def test_wrong_password(self, users) -> None:
        await users.register(registration())

        with pytest.raises(AuthenticationError):
            await users.authenticate("ada", "difference-engine")

    async def test_unknown_username(self, users) -> None:
        with pytest.raises(AuthenticationError):
            await users.authenticate("nobody", "whatever")


class TestShippingAddress:
    """Tests for UserService.add_shipping_address."""

    def address(self, zip_code: str = "94107") -> AddressDTO:
        return AddressDTO(
            street="1 Market St",
            city="San Francisco",
            state="CA",
            zip_code=zip_code,
            country="US",
            apartment_name="Suite 300",
        )

    async def test_add_address(self, users, seed) -> None:
        user_id = await seed.user()

        address = await users.add_shipping_address(user_id, self.address())

        assert address.id is not None
        assert address.user_id == user_id

    async def test_invalid_zip(self, users, seed) -> None:
        user_id = await seed.user()

        with pytest.raises(ValidationError):
            await users.add_shipping_address(user_id, self.address(zip_code="123"))

    async def test_unknown_user(self, users) -> None:
        with pytest.raises(UserNotFoundError):
            await users.add_shipping_address(999, self.address())
