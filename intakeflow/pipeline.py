"""Submission orchestrator: the intake state machine."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from .backends import BaseIntakeBackend, get_backend
from .commit import (
    AgreementCommitter,
    CommitContext,
    DiscountCommitter,
    StepCommitter,
    default_committers,
)
from .config import IntakeConfig, load_config
from .constants import TERMINAL_OPTION_LABELS
from .contracts import (
    AnswerSet,
    DraftHandle,
    Estimate,
    Idle,
    PipelineCursor,
    StepError,
    StepOutcome,
    Submitting,
    TransitionState,
)
from .errors import (
    Conflict,
    SessionExpired,
    TransientSubmissionFailure,
    ValidationFailure,
)
from .persistence import PersistedSnapshot, ProgressRepository, get_repository
from .reconcile import EntityReconciler, normalize_email
from .steps import (
    LAST_STEP_INDEX,
    STEP_COUNT,
    STEPS,
    StepDescriptor,
    evaluate_validity,
    get_step,
)

logger = logging.getLogger(__name__)


class IntakePipeline:
    """Drives the ten-step intake flow for one session.

    The cursor only moves forward through :meth:`advance`, and only after the
    current step's committer succeeded. Failures never touch the answers and
    are kept per step in :attr:`errors`. Every answer change and every
    successful advance is flushed to the progress repository.
    """

    def __init__(
        self,
        backend: BaseIntakeBackend,
        repository: ProgressRepository,
        session_id: str = "default",
        config: Optional[IntakeConfig] = None,
        committers: Optional[Dict[str, StepCommitter]] = None,
        snapshot: Optional[PersistedSnapshot] = None,
    ) -> None:
        self._backend = backend
        self._repository = repository
        self.session_id = session_id
        self.config = config or IntakeConfig()
        self.reconciler = EntityReconciler(backend)
        self.committers = committers or default_committers(self.reconciler)
        missing = [s.name for s in STEPS if s.name not in self.committers]
        if missing:
            raise ValueError(f"No committer registered for steps: {missing}")

        self._answers = AnswerSet()
        self._cursor = PipelineCursor()
        self._draft = DraftHandle()
        self._state: TransitionState = Idle()
        self._errors: Dict[str, StepError] = {}
        self._conflict_email: Optional[str] = None
        if snapshot is not None:
            self._apply_snapshot(snapshot)
        self._validity = evaluate_validity(self._answers)
        self._restore_committers()

    @classmethod
    async def open(
        cls,
        session_id: Optional[str] = None,
        backend: Optional[BaseIntakeBackend] = None,
        repository: Optional[ProgressRepository] = None,
        config: Optional[IntakeConfig] = None,
        committers: Optional[Dict[str, StepCommitter]] = None,
    ) -> "IntakePipeline":
        """Build a pipeline seeded from the stored snapshot, if any."""
        config = config or load_config()
        backend = backend or get_backend(config=config)
        repository = repository or get_repository(config=config)
        session_id = session_id or config.session_id
        snapshot = await repository.load(session_id)
        if snapshot is not None:
            logger.info(
                f"Resuming session {session_id} at step {snapshot.current_step_index}"
            )
        return cls(backend, repository, session_id, config, committers, snapshot)

    # ------------------------------------------------------------------
    # Read-only views
    @property
    def backend(self) -> BaseIntakeBackend:
        return self._backend

    @property
    def answers(self) -> AnswerSet:
        return self._answers

    @property
    def cursor(self) -> PipelineCursor:
        return self._cursor.model_copy()

    @property
    def current_index(self) -> int:
        return self._cursor.current_step_index

    @property
    def current_step(self) -> StepDescriptor:
        return get_step(self._cursor.current_step_index)

    @property
    def draft(self) -> DraftHandle:
        return self._draft

    @property
    def state(self) -> TransitionState:
        return self._state

    @property
    def is_submitting(self) -> bool:
        return isinstance(self._state, Submitting)

    @property
    def is_complete(self) -> bool:
        return self._cursor.completed

    @property
    def validity(self) -> Tuple[bool, ...]:
        return self._validity

    @property
    def errors(self) -> Dict[str, StepError]:
        return dict(self._errors)

    @property
    def conflict_email(self) -> Optional[str]:
        return self._conflict_email

    @property
    def progress_percent(self) -> int:
        return round((self._cursor.current_step_index + 1) / STEP_COUNT * 100)

    def can_advance(self) -> bool:
        return (
            not self.is_submitting
            and not self._cursor.completed
            and self._validity[self._cursor.current_step_index]
        )

    def error_for(self, step_name: str) -> Optional[StepError]:
        return self._errors.get(step_name)

    def snapshot(self) -> PersistedSnapshot:
        return PersistedSnapshot(
            answers=self._answers,
            current_step_index=self._cursor.current_step_index,
            completed=self._cursor.completed,
            draft_id=self._draft.external_id,
            conflict_email=self._conflict_email,
        )

    def selection_summary(self) -> str:
        """Short description of the current step's selection."""
        answers = self._answers
        name = self.current_step.name
        if name == "services":
            return f"{len(answers.services)} selected"
        if name == "industries":
            return f"{len(answers.industries)} selected"
        if name == "technologies":
            return f"{len(answers.technologies)} selected"
        if name == "features":
            return f"{len(answers.features)} selected"
        if name == "special_offers":
            if answers.discount.applied_percent > 0:
                return f"{answers.discount.applied_percent}% discount applied"
            return "No discount applied"
        if name == "timeline":
            return f"Timeline: {answers.timeline}"
        if name == "estimate":
            return "Estimate Accepted" if answers.estimate.accepted else "Pending Acceptance"
        if name == "agreement":
            return "Agreement Accepted" if answers.agreement.accepted else "Pending Acceptance"
        if name == "proceed_options":
            option = answers.proceed.selected_option
            if option:
                return f"Selected: {TERMINAL_OPTION_LABELS[option]}"
            return "No option selected"
        return ""

    # ------------------------------------------------------------------
    # Answer updates
    async def update(self, section: str, value: Any) -> AnswerSet:
        """Replace one answer section and persist.

        Accepted while an advance is in flight; the edit does not start a
        transition of its own.
        """
        self._answers = self._answers.replace(section, value)
        if section == "identity" and self._conflict_email is not None:
            email = normalize_email(self._answers.identity.business_email)
            if email != self._conflict_email:
                logger.info("Identity email changed; clearing client conflict")
                self._conflict_email = None
                self._errors.pop("register_yourself", None)
        for step in STEPS:
            error = self._errors.get(step.name)
            if step.section == section and error and error.kind == ValidationFailure.kind:
                self._errors.pop(step.name)
        self._refresh_validity()
        await self._persist()
        return self._answers

    async def select_discount(self, option_id: str) -> AnswerSet:
        committer = self.committers["special_offers"]
        if not isinstance(committer, DiscountCommitter):
            raise TypeError("special_offers committer does not own a discount choice")
        return await self.update("discount", committer.select(option_id))

    async def set_agreement_accepted(self, accepted: bool) -> AnswerSet:
        committer = self.committers["agreement"]
        if not isinstance(committer, AgreementCommitter):
            raise TypeError("agreement committer does not own an acceptance flag")
        return await self.update("agreement", committer.set_accepted(accepted))

    async def fetch_estimate(self) -> Optional[Estimate]:
        """Load the backend estimate for the draft and record its range."""
        try:
            if not self._draft.exists:
                raise SessionExpired()
            estimate = await self._backend.get_estimate(self._draft.external_id)
        except Exception as e:
            self._record_failure("estimate", e)
            return None

        section = self._answers.estimate.model_copy(
            update={
                "price_min": estimate.price_min,
                "price_max": estimate.price_max,
                "accepted": self._answers.estimate.accepted or estimate.accepted,
            }
        )
        await self.update("estimate", section)
        self._errors.pop("estimate", None)
        return estimate

    async def accept_estimate(self) -> bool:
        """Explicit user confirmation of the computed estimate."""
        try:
            if not self._draft.exists:
                raise SessionExpired()
            await self._backend.accept_estimate(self._draft.external_id)
        except Exception as e:
            self._record_failure("estimate", e)
            return False

        await self.update(
            "estimate", self._answers.estimate.model_copy(update={"accepted": True})
        )
        self._errors.pop("estimate", None)
        logger.info(f"Estimate accepted for draft {self._draft.external_id}")
        return True

    # ------------------------------------------------------------------
    # Transitions
    async def advance(self) -> StepOutcome:
        """Commit the current step and move the cursor on success.

        A request arriving while another advance is in flight is ignored, not
        queued. No automatic retry: calling ``advance`` again is the retry.
        """
        index = self._cursor.current_step_index
        if self.is_submitting or self._cursor.completed:
            logger.debug(f"Ignoring advance request at step {index}")
            return StepOutcome(status="ignored", step_index=index)

        step = get_step(index)
        if not step.is_valid(self._answers):
            return self._blocked(
                step, ValidationFailure(f"{step.title} is not complete yet")
            )

        if index == 0 and self._conflict_email is not None:
            email = normalize_email(self._answers.identity.business_email)
            if email == self._conflict_email:
                return self._blocked(step, Conflict(self._answers.identity.business_email))

        if step.requires_draft and not self._draft.exists:
            error = self._record_failure(step.name, SessionExpired())
            return StepOutcome(status="failed", step_index=index, error=error)

        self._state = Submitting(step_index=index)
        try:
            try:
                result = await self.committers[step.name].commit(
                    CommitContext(
                        step=step,
                        answers=self._answers,
                        draft_id=self._draft.external_id,
                        backend=self._backend,
                        strict_mapping=self.config.strict_mapping,
                    )
                )
                if not result.success:
                    raise TransientSubmissionFailure(
                        result.message or f"Failed to submit {step.title}"
                    )
            except Exception as e:
                if isinstance(e, Conflict):
                    self._conflict_email = normalize_email(e.email)
                error = self._record_failure(step.name, e)
                await self._persist()
                return StepOutcome(status="failed", step_index=index, error=error)

            if result.draft_id:
                self._draft = DraftHandle(external_id=result.draft_id)
            if result.section:
                self._answers = self._answers.replace(result.section, result.value)
                self._refresh_validity()
            self._errors.pop(step.name, None)

            if index == LAST_STEP_INDEX:
                self._cursor = PipelineCursor(current_step_index=index, completed=True)
                status = "completed"
                logger.info(f"Intake session {self.session_id} completed")
            else:
                self._cursor = PipelineCursor(current_step_index=index + 1)
                status = "advanced"
                logger.info(f"Step {step.name} submitted; moving to step {index + 1}")
            await self._persist()
            return StepOutcome(status=status, step_index=index)
        finally:
            self._state = Idle()

    async def go_back(self) -> bool:
        return await self.go_to(self._cursor.current_step_index - 1)

    async def go_to(self, index: int) -> bool:
        """Jump backward to an already reached step; never forward."""
        if self.is_submitting or self._cursor.completed:
            return False
        if not 0 <= index <= self._cursor.current_step_index:
            return False
        self._cursor = PipelineCursor(current_step_index=index)
        await self._persist()
        return True

    async def reset(self) -> None:
        """Discard local progress, including the draft reference.

        The remote draft itself is left alone.
        """
        await self._repository.clear(self.session_id)
        self._answers = AnswerSet()
        self._cursor = PipelineCursor()
        self._draft = DraftHandle()
        self._errors.clear()
        self._conflict_email = None
        self._refresh_validity()
        self._restore_committers()
        logger.info(f"Progress for session {self.session_id} cleared")

    # ------------------------------------------------------------------
    # Hooks for the terminal dispatcher
    def record_error(self, step_name: str, error: StepError) -> None:
        self._errors[step_name] = error

    def clear_error(self, step_name: str) -> None:
        self._errors.pop(step_name, None)

    # ------------------------------------------------------------------
    # Helper methods
    def _blocked(self, step: StepDescriptor, exc: Exception) -> StepOutcome:
        error = self._record_failure(step.name, exc)
        return StepOutcome(status="blocked", step_index=step.index, error=error)

    def _record_failure(self, step_name: str, exc: Exception) -> StepError:
        error = StepError.from_exception(exc)
        self._errors[step_name] = error
        logger.error(f"Step {step_name} failed ({error.kind}): {error.message}")
        return error

    def _refresh_validity(self) -> None:
        self._validity = evaluate_validity(self._answers)

    def _restore_committers(self) -> None:
        for committer in self.committers.values():
            committer.restore(self._answers)

    def _apply_snapshot(self, snapshot: PersistedSnapshot) -> None:
        self._answers = snapshot.answers
        index = min(max(snapshot.current_step_index, 0), LAST_STEP_INDEX)
        self._cursor = PipelineCursor(current_step_index=index, completed=snapshot.completed)
        self._draft = DraftHandle(external_id=snapshot.draft_id)
        self._conflict_email = snapshot.conflict_email

    async def _persist(self) -> None:
        await self._repository.save(self.session_id, self.snapshot())
