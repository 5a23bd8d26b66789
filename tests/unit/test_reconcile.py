"""Entity reconciler tests."""

import asyncio

import pytest

from intakeflow.backends.inmemory import InMemoryIntakeBackend
from intakeflow.contracts import IdentitySection
from intakeflow.errors import Conflict
from intakeflow.reconcile import EntityReconciler, ReconcileOutcome


def _identity(email: str = "new@example.com") -> IdentitySection:
    return IdentitySection(full_name="Ada Lovelace", business_email=email)


@pytest.mark.asyncio
async def test_known_client_is_already_client():
    backend = InMemoryIntakeBackend()
    backend.add_client("client@example.com")
    reconciler = EntityReconciler(backend)

    result = await reconciler.reconcile("  Client@Example.com ")
    assert result.outcome is ReconcileOutcome.ALREADY_CLIENT
    assert backend.calls[0] == ("check_email", ("client@example.com",))

    with pytest.raises(Conflict) as exc_info:
        await reconciler.resolve(_identity("client@example.com"))
    assert exc_info.value.email == "client@example.com"
    assert backend.call_count("create_visitor") == 0


@pytest.mark.asyncio
async def test_existing_visitor_draft_is_reused():
    backend = InMemoryIntakeBackend()
    draft_id = backend.add_visitor("returning@example.com")
    reconciler = EntityReconciler(backend)

    result = await reconciler.resolve(_identity("returning@example.com"))
    assert result.outcome is ReconcileOutcome.EXISTING_DRAFT
    assert result.draft_id == draft_id
    assert result.created is False
    assert backend.call_count("create_visitor") == 0


@pytest.mark.asyncio
async def test_new_email_creates_exactly_one_draft():
    backend = InMemoryIntakeBackend()
    reconciler = EntityReconciler(backend)

    first = await reconciler.resolve(_identity())
    assert first.outcome is ReconcileOutcome.NO_MATCH
    assert first.created is True
    assert first.draft_id in backend.visitors

    # A second submission finds the draft the first one created.
    second = await reconciler.resolve(_identity())
    assert second.outcome is ReconcileOutcome.EXISTING_DRAFT
    assert second.draft_id == first.draft_id
    assert backend.call_count("create_visitor") == 1


@pytest.mark.asyncio
async def test_concurrent_resolves_share_one_creation():
    backend = InMemoryIntakeBackend(latency=0.01)
    reconciler = EntityReconciler(backend)

    results = await asyncio.gather(
        reconciler.resolve(_identity()),
        reconciler.resolve(_identity("NEW@example.com")),
    )
    assert results[0].draft_id == results[1].draft_id
    assert backend.call_count("check_email") == 1
    assert backend.call_count("create_visitor") == 1


@pytest.mark.asyncio
async def test_failed_existence_check_falls_back_to_creation(caplog):
    backend = InMemoryIntakeBackend()
    backend.fail_next("check_email")
    reconciler = EntityReconciler(backend)

    result = await reconciler.resolve(_identity())
    assert result.created is True
    assert backend.call_count("create_visitor") == 1
    assert "Creating a new draft" in caplog.text


@pytest.mark.asyncio
async def test_reconcile_propagates_check_failure():
    backend = InMemoryIntakeBackend()
    backend.fail_next("check_email", error=RuntimeError("offline"))
    reconciler = EntityReconciler(backend)

    with pytest.raises(RuntimeError):
        await reconciler.reconcile("new@example.com")
