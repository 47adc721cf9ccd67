"""User registration and role rules at the service level."""

from musicshare.features.users import repository
from musicshare.features.users import service as users_service


async def test_upsert_reports_creation_once(session):
    first, created = await repository.upsert_user(session, email="new@example.com", name="New")
    again, created_again = await repository.upsert_user(
        session, email="new@example.com", name="Renamed", role="admin"
    )

    assert created is True
    assert created_again is False
    assert again.id == first.id
    assert again.name == "Renamed"
    # An existing user's role is never changed by sign-in
    assert again.role == "user"


async def test_admin_emails_seed_admin_role(session, settings):
    admin = await users_service.get_or_create_user(
        session, settings, email="Admin@Example.com", name="Boss"
    )
    user = await users_service.get_or_create_user(session, settings, email="u@example.com")

    assert admin.role == "admin"
    assert user.role == "user"
    assert user.name is None
