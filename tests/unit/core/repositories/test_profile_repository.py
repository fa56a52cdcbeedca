"""Unit tests for ProfileRepository"""

import pytest

from notecollab.core.repositories import ProfileRepository


@pytest.fixture
def repo(test_session):
    return ProfileRepository(test_session)


async def test_upsert_creates_then_updates(repo, alice):
    created = await repo.upsert(alice.id, "Alice@Example.com", first_name="Alice")
    assert created.email == "alice@example.com"

    updated = await repo.upsert(alice.id, alice.email, last_name="Archer")
    assert updated.first_name == "Alice"
    assert updated.last_name == "Archer"
    assert await repo.get_email(alice.id) == "alice@example.com"


async def test_upsert_moves_email_to_new_identity(repo, alice, bob):
    await repo.upsert(alice.id, "shared@example.com")
    await repo.upsert(bob.id, "shared@example.com")

    assert await repo.get_by_id(alice.id) is None
    assert (await repo.get_by_email("SHARED@example.com")).id == bob.id


async def test_search(repo, profiles, bob):
    assert [p.id for p in await repo.search(str(bob.id))] == [bob.id]
    assert [p.email for p in await repo.search("BAK")] == [bob.email]
    assert [p.email for p in await repo.search("example.com", limit=2)] == [
        "alice@example.com",
        "bob@example.com",
    ]
    assert await repo.search("   ") == []
    assert await repo.search("nobody") == []
