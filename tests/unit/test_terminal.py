"""Terminal dispatcher tests."""

from pathlib import Path

import pytest

from intakeflow.backends.inmemory import InMemoryIntakeBackend
from intakeflow.config import IntakeConfig
from intakeflow.contracts import IdentitySection
from intakeflow.errors import ValidationFailure
from intakeflow.persistence import InMemoryProgressRepository, PersistedSnapshot
from intakeflow.pipeline import IntakePipeline
from intakeflow.terminal import TerminalDispatcher


def _terminal_pipeline(backend, tmp_path, draft_id="draft-x") -> IntakePipeline:
    """Pipeline parked on the last step with a known draft."""
    config = IntakeConfig(
        download_dir=str(tmp_path / "quotes"),
        consultation_url="https://calendar.example.test/book",
    )
    snapshot = PersistedSnapshot.model_validate(
        {
            "answers": {
                "identity": IdentitySection(
                    full_name="Ada Lovelace", business_email="ada@example.com"
                ).model_dump(),
            },
            "current_step_index": 9,
            "draft_id": draft_id,
        }
    )
    return IntakePipeline(
        backend, InMemoryProgressRepository(), "s1", config, snapshot=snapshot
    )


@pytest.mark.asyncio
async def test_quote_download_writes_pdf(tmp_path):
    backend = InMemoryIntakeBackend()
    draft_id = backend.add_visitor("ada@example.com")
    pipeline = _terminal_pipeline(backend, tmp_path, draft_id)
    dispatcher = TerminalDispatcher(pipeline)
    await dispatcher.select("quote")

    result = await dispatcher.download_quote()
    assert result.ok
    assert result.completed
    path = Path(result.document_path)
    assert path.parent == tmp_path / "quotes"
    assert path.name.startswith("Project_Quote_")
    assert path.read_bytes().startswith(b"%PDF")
    assert pipeline.answers.proceed.action == "downloaded_quote"
    assert pipeline.validity[9]

    outcome = await pipeline.advance()
    assert outcome.status == "completed"
    assert pipeline.is_complete


@pytest.mark.asyncio
async def test_quote_failure_is_retryable(tmp_path):
    backend = InMemoryIntakeBackend()
    draft_id = backend.add_visitor("ada@example.com")
    pipeline = _terminal_pipeline(backend, tmp_path, draft_id)
    dispatcher = TerminalDispatcher(pipeline)
    await dispatcher.select("quote")
    backend.fail_next("download_quote")

    result = await dispatcher.download_quote()
    assert not result.ok
    assert result.error.kind == "terminal_action_failure"
    assert result.error.retryable
    assert pipeline.error_for("proceed_options") is not None
    assert not pipeline.answers.proceed.completed

    result = await dispatcher.download_quote()
    assert result.ok
    assert pipeline.error_for("proceed_options") is None


@pytest.mark.asyncio
async def test_quote_without_draft_is_session_expired(tmp_path):
    backend = InMemoryIntakeBackend()
    pipeline = _terminal_pipeline(backend, tmp_path, draft_id=None)
    dispatcher = TerminalDispatcher(pipeline)
    await dispatcher.select("quote")
    result = await dispatcher.download_quote()
    assert result.error.kind == "session_expired"
    assert backend.call_count("download_quote") == 0


@pytest.mark.asyncio
async def test_consultation_returns_scheduling_url(tmp_path):
    backend = InMemoryIntakeBackend()
    pipeline = _terminal_pipeline(backend, tmp_path)
    dispatcher = TerminalDispatcher(pipeline)

    await dispatcher.select("consultation")
    assert pipeline.answers.proceed.selected_option == "consultation"
    assert not pipeline.validity[9]

    result = await dispatcher.schedule_consultation()
    assert result.redirect_url == "https://calendar.example.test/book"
    assert pipeline.answers.proceed.action == "opened_calendar"
    assert pipeline.answers.proceed.completed
    assert backend.calls == []


@pytest.mark.asyncio
async def test_secure_flow_redirects_to_checkout(tmp_path):
    backend = InMemoryIntakeBackend(otp_code="654321")
    draft_id = backend.add_visitor("ada@example.com")
    pipeline = _terminal_pipeline(backend, tmp_path, draft_id)
    dispatcher = TerminalDispatcher(pipeline)
    await dispatcher.select("secure")

    result = await dispatcher.checkout()
    assert result.error.kind == "terminal_action_failure"
    assert "Authentication required" in result.error.message

    result = await dispatcher.register("ada", "secret1", "secret1")
    assert result.ok
    assert backend.users["ada@example.com"]["username"] == "ada"

    result = await dispatcher.verify("123456")
    assert result.error.kind == "terminal_action_failure"
    assert result.error.retryable
    assert not dispatcher.is_authenticated

    result = await dispatcher.resend_otp()
    assert result.ok
    result = await dispatcher.verify("654321")
    assert result.ok
    assert dispatcher.is_authenticated

    result = await dispatcher.checkout()
    assert result.ok
    assert result.redirect_url.startswith("https://checkout.example.test/pay/")
    proceed = pipeline.answers.proceed
    assert proceed.selected_option == "secure"
    assert proceed.action == "redirected_to_checkout"
    assert proceed.checkout_url == result.redirect_url
    assert backend.checkout_sessions[0]["cancelUrl"] == pipeline.config.checkout.cancel_url


@pytest.mark.asyncio
async def test_registration_input_is_validated(tmp_path):
    backend = InMemoryIntakeBackend()
    pipeline = _terminal_pipeline(backend, tmp_path)
    dispatcher = TerminalDispatcher(pipeline)
    await dispatcher.select("secure")

    for username, password, confirm, message in (
        ("", "secret1", "secret1", "Username is required"),
        ("ada lovelace", "secret1", "secret1", "Only letters and numbers are allowed"),
        ("ada", "secret1", "secret2", "Passwords do not match"),
        ("ada", "abc", "abc", "at least 6 characters"),
    ):
        result = await dispatcher.register(username, password, confirm)
        assert result.error.kind == "validation_failure"
        assert message in result.error.message

    result = await dispatcher.verify("123456")
    assert result.error.kind == "validation_failure"
    assert backend.calls == []


@pytest.mark.asyncio
async def test_branches_only_run_on_last_step(tmp_path):
    backend = InMemoryIntakeBackend()
    pipeline = IntakePipeline(backend, InMemoryProgressRepository(), "s1", IntakeConfig())
    result = await TerminalDispatcher(pipeline).schedule_consultation()
    assert result.error.kind == "validation_failure"
    assert not pipeline.answers.proceed.completed


@pytest.mark.asyncio
async def test_branch_must_match_selected_option(tmp_path):
    backend = InMemoryIntakeBackend()
    draft_id = backend.add_visitor("ada@example.com")
    pipeline = _terminal_pipeline(backend, tmp_path, draft_id)
    dispatcher = TerminalDispatcher(pipeline)

    result = await dispatcher.download_quote()
    assert result.error.kind == "validation_failure"
    assert "Request Formal Quote" in result.error.message

    await dispatcher.select("consultation")
    result = await dispatcher.download_quote()
    assert result.error.kind == "validation_failure"
    assert pipeline.error_for("proceed_options") is not None
    assert backend.call_count("download_quote") == 0
    assert not (tmp_path / "quotes").exists()
    assert pipeline.answers.proceed.selected_option == "consultation"
    assert not pipeline.answers.proceed.completed

    result = await dispatcher.register("ada", "secret1", "secret1")
    assert result.error.kind == "validation_failure"
    assert backend.calls == []


@pytest.mark.asyncio
async def test_completed_branch_cannot_be_switched(tmp_path):
    backend = InMemoryIntakeBackend()
    draft_id = backend.add_visitor("ada@example.com")
    pipeline = _terminal_pipeline(backend, tmp_path, draft_id)
    dispatcher = TerminalDispatcher(pipeline)
    await dispatcher.select("consultation")
    assert (await dispatcher.schedule_consultation()).completed

    await dispatcher.select("consultation")
    with pytest.raises(ValidationFailure, match="Schedule Consultation is already completed"):
        await dispatcher.select("quote")

    result = await dispatcher.download_quote()
    assert result.error.kind == "validation_failure"
    proceed = pipeline.answers.proceed
    assert proceed.selected_option == "consultation"
    assert proceed.action == "opened_calendar"
    assert proceed.completed
    assert backend.call_count("download_quote") == 0


@pytest.mark.asyncio
async def test_checkout_backend_failure_is_terminal_action_failure(tmp_path):
    backend = InMemoryIntakeBackend()
    draft_id = backend.add_visitor("ada@example.com")
    pipeline = _terminal_pipeline(backend, tmp_path, draft_id)
    dispatcher = TerminalDispatcher(pipeline)
    await dispatcher.select("secure")
    assert (await dispatcher.register("ada", "secret1", "secret1")).ok
    assert (await dispatcher.verify("123456")).ok

    backend.fail_next("create_checkout_session")
    result = await dispatcher.checkout()
    assert result.error.kind == "terminal_action_failure"
    assert result.error.retryable
    assert "create_checkout_session" in result.error.message
    assert not pipeline.answers.proceed.completed

    result = await dispatcher.checkout()
    assert result.ok
    assert pipeline.answers.proceed.completed
