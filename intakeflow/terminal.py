"""Branch actions of the final step: pay, quote or consult."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .config import IntakeConfig
from .constants import (
    MIN_PASSWORD_LENGTH,
    OTP_LENGTH,
    TERMINAL_OPTION_LABELS,
    TERMINAL_OPTIONS,
)
from .contracts import ProceedSection, StepError, TerminalResult
from .errors import (
    IntakeError,
    SessionExpired,
    TerminalActionFailure,
    ValidationFailure,
)
from .pipeline import IntakePipeline
from .steps import LAST_STEP_INDEX

logger = logging.getLogger(__name__)

TERMINAL_STEP = "proceed_options"

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9]+$")


class TerminalDispatcher:
    """Runs one of three mutually exclusive terminal branches.

    A branch only runs after it was chosen with :meth:`select`, and each is
    retryable on its own. Failures are recorded against the
    terminal step and leave it incomplete; success marks the step complete,
    which is what the registry reads as its validity.
    """

    def __init__(
        self, pipeline: IntakePipeline, config: Optional[IntakeConfig] = None
    ) -> None:
        self.pipeline = pipeline
        self.config = config or pipeline.config
        self._backend = pipeline.backend
        self.registered_user: Optional[dict] = None
        self.access_token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    async def select(self, option: str) -> None:
        """Record the user's choice without running it.

        Once a branch has completed the choice is final.
        """
        if option not in TERMINAL_OPTIONS:
            raise ValueError(f"Unknown terminal option: {option}")
        self._ensure_terminal_step()
        proceed = self.pipeline.answers.proceed
        if proceed.completed:
            if proceed.selected_option == option:
                return
            raise ValidationFailure(
                f"{TERMINAL_OPTION_LABELS[proceed.selected_option]} is already completed"
            )
        await self.pipeline.update(
            "proceed", ProceedSection(selected_option=option, completed=False)
        )

    # ------------------------------------------------------------------
    # Secure / pay
    async def register(
        self, username: str, password: str, confirm_password: str
    ) -> TerminalResult:
        """Create the user account for the identity collected in step one."""

        async def action() -> TerminalResult:
            identity = self.pipeline.answers.identity
            if not identity.full_name.strip() or not identity.business_email.strip():
                raise ValidationFailure("Missing required registration data")
            if not username.strip():
                raise ValidationFailure("Username is required")
            if not _USERNAME_RE.match(username.strip()):
                raise ValidationFailure("Only letters and numbers are allowed")
            if not password.strip():
                raise ValidationFailure("Password is required")
            if password != confirm_password:
                raise ValidationFailure("Passwords do not match")
            if len(password) < MIN_PASSWORD_LENGTH:
                raise ValidationFailure(
                    f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
                )
            self.registered_user = await self._backend.register_user(
                username.strip(),
                identity.full_name.strip(),
                identity.business_email.strip(),
                password,
            )
            logger.info(f"Registered user {username.strip()}; awaiting verification")
            return TerminalResult(option="secure")

        return await self._attempt("secure", action)

    async def verify(self, otp: str) -> TerminalResult:
        """Exchange the emailed one-time code for an access token."""

        async def action() -> TerminalResult:
            if self.registered_user is None:
                raise ValidationFailure("Please register before verifying your email")
            code = otp.strip()
            if not code:
                raise ValidationFailure("OTP is required")
            if len(code) != OTP_LENGTH:
                raise ValidationFailure(f"OTP must be {OTP_LENGTH} digits")
            email = self.pipeline.answers.identity.business_email.strip()
            self.access_token = await self._backend.verify_email(email, code)
            logger.info(f"Email {email} verified")
            return TerminalResult(option="secure")

        return await self._attempt("secure", action)

    async def resend_otp(self) -> TerminalResult:
        async def action() -> TerminalResult:
            email = self.pipeline.answers.identity.business_email.strip()
            await self._backend.resend_otp(email)
            return TerminalResult(option="secure")

        return await self._attempt("secure", action)

    async def checkout(self) -> TerminalResult:
        """Create a checkout session and return the URL to redirect to.

        The redirect is one-way: payment completes outside the pipeline.
        """

        async def action() -> TerminalResult:
            if self.access_token is None:
                raise TerminalActionFailure(
                    "Authentication required. Please complete registration first."
                )
            projects = await self._backend.list_projects(self.access_token)
            if not projects:
                raise TerminalActionFailure("No project found. Please contact support.")
            project = projects[0]
            session = await self._backend.create_checkout_session(
                project.id,
                self.config.checkout.success_url,
                self.config.checkout.cancel_url,
                self.access_token,
            )
            await self.pipeline.update(
                "proceed",
                ProceedSection(
                    selected_option="secure",
                    completed=True,
                    action="redirected_to_checkout",
                    checkout_url=session.checkout_url,
                ),
            )
            logger.info(f"Redirecting project {project.id} to checkout")
            return TerminalResult(
                option="secure", completed=True, redirect_url=session.checkout_url
            )

        return await self._attempt("secure", action)

    # ------------------------------------------------------------------
    # Quote
    async def download_quote(self) -> TerminalResult:
        """Fetch the rendered quote for the draft and save it locally."""

        async def action() -> TerminalResult:
            draft = self.pipeline.draft
            if not draft.exists:
                raise SessionExpired()
            document = await self._backend.download_quote(draft.external_id)
            target_dir = Path(self.config.download_dir)
            target = target_dir / f"Project_Quote_{int(time.time() * 1000)}.pdf"
            await asyncio.to_thread(target_dir.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(target.write_bytes, document)
            await self.pipeline.update(
                "proceed",
                ProceedSection(
                    selected_option="quote", completed=True, action="downloaded_quote"
                ),
            )
            logger.info(f"Quote saved to {target}")
            return TerminalResult(option="quote", completed=True, document_path=str(target))

        return await self._attempt("quote", action)

    # ------------------------------------------------------------------
    # Consultation
    async def schedule_consultation(self) -> TerminalResult:
        """Record the choice and hand off to the scheduling page."""

        async def action() -> TerminalResult:
            await self.pipeline.update(
                "proceed",
                ProceedSection(
                    selected_option="consultation",
                    completed=True,
                    action="opened_calendar",
                ),
            )
            return TerminalResult(
                option="consultation",
                completed=True,
                redirect_url=self.config.consultation_url,
            )

        return await self._attempt("consultation", action)

    # ------------------------------------------------------------------
    # Helper methods
    def _ensure_terminal_step(self) -> None:
        if self.pipeline.current_index != LAST_STEP_INDEX:
            raise ValidationFailure("Proceed options are only available on the last step")

    def _ensure_selected(self, option: str) -> None:
        if self.pipeline.answers.proceed.selected_option != option:
            raise ValidationFailure(
                f"Select {TERMINAL_OPTION_LABELS[option]} before continuing with it"
            )

    async def _attempt(
        self, option: str, action: Callable[[], Awaitable[TerminalResult]]
    ) -> TerminalResult:
        try:
            self._ensure_terminal_step()
            self._ensure_selected(option)
            result = await action()
        except Exception as e:
            if isinstance(e, (ValidationFailure, SessionExpired, TerminalActionFailure)):
                failure = e
            elif isinstance(e, IntakeError):
                failure = TerminalActionFailure(e.message)
            else:
                failure = TerminalActionFailure(str(e) or e.__class__.__name__)
            error = StepError.from_exception(failure)
            self.pipeline.record_error(TERMINAL_STEP, error)
            logger.error(f"Terminal option {option} failed: {error.message}")
            return TerminalResult(option=option, error=error)

        self.pipeline.clear_error(TERMINAL_STEP)
        return result
