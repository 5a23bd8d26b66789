"""Submission orchestrator tests."""

import asyncio

import pytest

from intakeflow.backends.inmemory import InMemoryIntakeBackend
from intakeflow.config import IntakeConfig
from intakeflow.contracts import (
    IdentitySection,
    Idle,
    IndustrySelection,
    ServiceSelection,
    Submitting,
)
from intakeflow.persistence import InMemoryProgressRepository
from intakeflow.pipeline import IntakePipeline


def _pipeline(backend=None, repo=None, session_id="s1", config=None) -> IntakePipeline:
    return IntakePipeline(
        backend or InMemoryIntakeBackend(),
        repo or InMemoryProgressRepository(),
        session_id=session_id,
        config=config,
    )


async def _fill_identity(pipeline: IntakePipeline, email: str = "ada@example.com"):
    await pipeline.update(
        "identity",
        IdentitySection(
            full_name="Ada Lovelace", business_email=email, company_name="Engines Ltd"
        ),
    )


async def _fill_services(pipeline: IntakePipeline):
    await pipeline.update(
        "services",
        [ServiceSelection(category="Web Development", services=["Shop"])],
    )


@pytest.mark.asyncio
async def test_advance_blocked_on_invalid_step():
    backend = InMemoryIntakeBackend()
    pipeline = _pipeline(backend)

    outcome = await pipeline.advance()
    assert outcome.status == "blocked"
    assert outcome.error.kind == "validation_failure"
    assert pipeline.current_index == 0
    assert backend.calls == []
    assert not pipeline.can_advance()


@pytest.mark.asyncio
async def test_first_step_creates_draft_and_persists():
    backend = InMemoryIntakeBackend()
    repo = InMemoryProgressRepository()
    pipeline = _pipeline(backend, repo)
    await _fill_identity(pipeline)

    outcome = await pipeline.advance()
    assert outcome.ok
    assert outcome.status == "advanced"
    assert pipeline.current_index == 1
    assert pipeline.draft.exists
    assert pipeline.draft.external_id in backend.visitors

    stored = await repo.load("s1")
    assert stored.current_step_index == 1
    assert stored.draft_id == pipeline.draft.external_id


@pytest.mark.asyncio
async def test_failed_submission_leaves_state_unchanged_and_retry_succeeds():
    backend = InMemoryIntakeBackend()
    pipeline = _pipeline(backend)
    await _fill_identity(pipeline)
    await pipeline.advance()
    await _fill_services(pipeline)
    answers_before = pipeline.answers.model_dump()

    backend.fail_next("add_services")
    outcome = await pipeline.advance()
    assert outcome.status == "failed"
    assert outcome.error.kind == "transient_submission_failure"
    assert outcome.error.retryable
    assert pipeline.current_index == 1
    assert pipeline.answers.model_dump() == answers_before
    assert pipeline.error_for("services") is not None
    assert isinstance(pipeline.state, Idle)

    retry = await pipeline.advance()
    assert retry.status == "advanced"
    assert pipeline.current_index == 2
    assert pipeline.error_for("services") is None
    assert backend.call_count("add_services") == 2


@pytest.mark.asyncio
async def test_advance_while_submitting_is_ignored():
    backend = InMemoryIntakeBackend(latency=0.02)
    pipeline = _pipeline(backend)
    await _fill_identity(pipeline)

    first = asyncio.ensure_future(pipeline.advance())
    await asyncio.sleep(0)
    assert isinstance(pipeline.state, Submitting)
    assert pipeline.is_submitting

    second = await pipeline.advance()
    assert second.status == "ignored"

    # Edits are accepted while the advance is in flight.
    await pipeline.update(
        "identity",
        pipeline.answers.identity.model_copy(update={"phone_number": "555-0100"}),
    )

    outcome = await first
    assert outcome.status == "advanced"
    assert pipeline.current_index == 1
    assert pipeline.answers.identity.phone_number == "555-0100"
    assert backend.call_count("create_visitor") == 1


@pytest.mark.asyncio
async def test_reload_resumes_at_same_step():
    backend = InMemoryIntakeBackend()
    repo = InMemoryProgressRepository()
    pipeline = _pipeline(backend, repo)
    await _fill_identity(pipeline)
    await pipeline.advance()
    await _fill_services(pipeline)
    await pipeline.advance()
    await pipeline.update(
        "industries", [IndustrySelection(category="Technology", industry="SaaS")]
    )

    resumed = await IntakePipeline.open(
        session_id="s1", backend=backend, repository=repo, config=IntakeConfig()
    )
    assert resumed.current_index == 2
    assert resumed.draft.external_id == pipeline.draft.external_id
    assert resumed.answers.model_dump() == pipeline.answers.model_dump()
    assert resumed.validity == pipeline.validity


@pytest.mark.asyncio
async def test_known_client_blocks_until_email_changes():
    backend = InMemoryIntakeBackend()
    backend.add_client("client@example.com")
    pipeline = _pipeline(backend)
    await _fill_identity(pipeline, "client@example.com")

    outcome = await pipeline.advance()
    assert outcome.status == "failed"
    assert outcome.error.kind == "conflict"
    assert not outcome.error.retryable
    assert pipeline.conflict_email == "client@example.com"

    retry = await pipeline.advance()
    assert retry.status == "blocked"
    assert retry.error.kind == "conflict"
    assert backend.call_count("check_email") == 1

    await _fill_identity(pipeline, "someone.else@example.com")
    assert pipeline.conflict_email is None
    assert pipeline.error_for("register_yourself") is None

    outcome = await pipeline.advance()
    assert outcome.status == "advanced"
    assert backend.call_count("create_visitor") == 1


@pytest.mark.asyncio
async def test_missing_draft_is_session_expired():
    backend = InMemoryIntakeBackend()
    repo = InMemoryProgressRepository()
    pipeline = _pipeline(backend, repo)
    await _fill_identity(pipeline)
    await pipeline.advance()

    # Simulate a snapshot that lost its draft reference.
    snapshot = pipeline.snapshot().model_copy(update={"draft_id": None})
    await repo.save("s1", snapshot)
    resumed = await IntakePipeline.open(
        session_id="s1", backend=backend, repository=repo, config=IntakeConfig()
    )
    await _fill_services(resumed)

    outcome = await resumed.advance()
    assert outcome.status == "failed"
    assert outcome.error.kind == "session_expired"
    assert resumed.current_index == 1
    assert backend.call_count("add_services") == 0


@pytest.mark.asyncio
async def test_navigation_is_backward_only():
    pipeline = _pipeline()
    await _fill_identity(pipeline)
    await pipeline.advance()
    await _fill_services(pipeline)
    await pipeline.advance()
    assert pipeline.current_index == 2

    assert await pipeline.go_to(5) is False
    assert await pipeline.go_back() is True
    assert pipeline.current_index == 1
    assert pipeline.answers.services[0].services == ["Shop"]
    assert await pipeline.go_to(0) is True
    assert await pipeline.go_back() is False
    assert pipeline.current_index == 0


@pytest.mark.asyncio
async def test_reset_clears_local_progress_only():
    backend = InMemoryIntakeBackend()
    repo = InMemoryProgressRepository()
    pipeline = _pipeline(backend, repo)
    await _fill_identity(pipeline)
    await pipeline.advance()
    draft_id = pipeline.draft.external_id

    await pipeline.reset()
    assert pipeline.current_index == 0
    assert not pipeline.draft.exists
    assert pipeline.answers.identity.full_name == ""
    assert await repo.load("s1") is None
    assert draft_id in backend.visitors


@pytest.mark.asyncio
async def test_estimate_fetch_and_accept():
    backend = InMemoryIntakeBackend()
    pipeline = _pipeline(backend)
    await _fill_identity(pipeline)
    await pipeline.advance()

    backend.fail_next("get_estimate")
    assert await pipeline.fetch_estimate() is None
    assert pipeline.error_for("estimate").retryable

    estimate = await pipeline.fetch_estimate()
    assert estimate.price_min == 4800
    assert pipeline.answers.estimate.price_max == 6200
    assert pipeline.error_for("estimate") is None
    assert not pipeline.answers.estimate.accepted

    assert await pipeline.accept_estimate() is True
    assert pipeline.answers.estimate.accepted
    assert backend.visitors[pipeline.draft.external_id]["estimateAccepted"] is True


@pytest.mark.asyncio
async def test_selection_summary_and_progress():
    pipeline = _pipeline()
    assert pipeline.progress_percent == 10
    await _fill_identity(pipeline)
    await pipeline.advance()
    await _fill_services(pipeline)
    assert pipeline.selection_summary() == "1 selected"
    assert pipeline.progress_percent == 20
