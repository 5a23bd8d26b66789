"""Commit capabilities, one per step.

The pipeline never performs a step's remote write itself. It asks the step's
committer to commit now and treats a failed result or an exception as a
failed submission. Steps whose remote action depends on sub-state (the chosen
discount, the agreement checkbox) keep that state in their committer.
"""

from __future__ import annotations

import abc
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .backends import BaseIntakeBackend
from .contracts import AgreementSection, AnswerSet, DiscountSection
from .errors import ValidationFailure
from .mapping import (
    features_payload,
    industries_payload,
    services_payload,
    technologies_payload,
    timeline_payload,
)
from .reconcile import EntityReconciler
from .steps import StepDescriptor

logger = logging.getLogger(__name__)


class CommitContext(BaseModel):
    """Everything a committer may read while committing."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    step: StepDescriptor
    answers: AnswerSet
    draft_id: Optional[str] = None
    backend: BaseIntakeBackend
    strict_mapping: bool = False


class CommitResult(BaseModel):
    """Outcome of a commit.

    ``section``/``value`` carry an answer-section replacement to apply on
    success; ``draft_id`` is set only by the first step.
    """

    success: bool
    message: Optional[str] = None
    section: Optional[str] = None
    value: Any = None
    draft_id: Optional[str] = None

    @classmethod
    def failed(cls, message: str) -> "CommitResult":
        return cls(success=False, message=message)


class StepCommitter(metaclass=abc.ABCMeta):
    """Capability every step implements: write its data remotely."""

    @abc.abstractmethod
    async def commit(self, context: CommitContext) -> CommitResult:
        raise NotImplementedError

    def restore(self, answers: AnswerSet) -> None:
        """Re-seed owned sub-state from a resumed answer set."""
        pass


class IdentityCommitter(StepCommitter):
    """Runs reconciliation and hands back the draft id to adopt."""

    def __init__(self, reconciler: EntityReconciler) -> None:
        self.reconciler = reconciler

    async def commit(self, context: CommitContext) -> CommitResult:
        result = await self.reconciler.resolve(context.answers.identity)
        return CommitResult(success=True, draft_id=result.draft_id)


class PayloadCommitter(StepCommitter):
    """Transform a section and upsert it against the draft."""

    def __init__(
        self,
        transform: Callable[[AnswerSet, bool], Any],
        send: Callable[[BaseIntakeBackend, str, Any], Awaitable[None]],
    ) -> None:
        self.transform = transform
        self.send = send

    async def commit(self, context: CommitContext) -> CommitResult:
        payload = self.transform(context.answers, context.strict_mapping)
        await self.send(context.backend, context.draft_id, payload)
        return CommitResult(success=True)


class DiscountOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    percent: int
    code: str


DISCOUNT_OPTIONS: Tuple[DiscountOption, ...] = (
    DiscountOption(id="startup", name="Startup Founder", percent=10, code="STARTUP_FOUNDER"),
    DiscountOption(
        id="veteran", name="Veteran-Owned Business", percent=15, code="VETERAN_OWNED_BUSINESS"
    ),
    DiscountOption(
        id="nonprofit", name="Nonprofit Organization", percent=15, code="NONPROFIT_ORGANIZATION"
    ),
    DiscountOption(id="none", name="Not Eligible", percent=0, code="NOT_ELIGIBLE"),
)


class DiscountCommitter(StepCommitter):
    """Owns the discount choice and submits it when asked."""

    def __init__(self, options: Tuple[DiscountOption, ...] = DISCOUNT_OPTIONS) -> None:
        self.options: Dict[str, DiscountOption] = {o.id: o for o in options}
        self.selected_id: Optional[str] = None

    def select(self, option_id: str) -> DiscountSection:
        """Record a choice; returns the section the pipeline should store."""
        option = self.options.get(option_id)
        if option is None:
            raise ValidationFailure(f"Unknown discount option: {option_id}")
        self.selected_id = option.id
        return DiscountSection(
            option_id=option.id, applied_percent=option.percent, submitted=False
        )

    def restore(self, answers: AnswerSet) -> None:
        option_id = answers.discount.option_id
        self.selected_id = option_id if option_id in self.options else None

    async def commit(self, context: CommitContext) -> CommitResult:
        option = self.options.get(self.selected_id or "")
        if option is None:
            return CommitResult.failed("Please select a discount option.")

        payload = {
            "type": option.code,
            "percent": option.percent,
            "notes": (
                f"{option.name} discount applied"
                if option.percent > 0
                else "No discount applicable"
            ),
        }
        await context.backend.add_discount(context.draft_id, payload)
        logger.info(f"Discount {option.code} submitted for draft {context.draft_id}")
        return CommitResult(
            success=True,
            section="discount",
            value=DiscountSection(
                option_id=option.id, applied_percent=option.percent, submitted=True
            ),
        )


class EstimateCommitter(StepCommitter):
    """Acceptance is its own call; advancing only checks it happened."""

    async def commit(self, context: CommitContext) -> CommitResult:
        if not context.answers.estimate.accepted:
            return CommitResult.failed("Please accept the estimate to continue.")
        return CommitResult(success=True)


class AgreementCommitter(StepCommitter):
    """Owns the agreement checkbox and records acceptance remotely."""

    def __init__(self) -> None:
        self.accepted = False
        self.pdf_url: Optional[str] = None

    def set_accepted(self, accepted: bool) -> AgreementSection:
        self.accepted = accepted
        return AgreementSection(accepted=accepted, submitted=False, pdf_url=self.pdf_url)

    def restore(self, answers: AnswerSet) -> None:
        self.accepted = answers.agreement.accepted
        self.pdf_url = answers.agreement.pdf_url

    async def commit(self, context: CommitContext) -> CommitResult:
        if not self.accepted:
            return CommitResult.failed("Please accept the service agreement to proceed.")
        receipt = await context.backend.accept_agreement(context.draft_id, True)
        self.pdf_url = receipt.pdf_url or self.pdf_url
        return CommitResult(
            success=True,
            section="agreement",
            value=AgreementSection(accepted=True, submitted=True, pdf_url=self.pdf_url),
        )


class TerminalCommitter(StepCommitter):
    """The chosen branch already ran; completion is all that is checked."""

    async def commit(self, context: CommitContext) -> CommitResult:
        if not context.answers.proceed.completed:
            return CommitResult.failed("Please complete one of the proceed options.")
        return CommitResult(success=True)


def default_committers(reconciler: EntityReconciler) -> Dict[str, StepCommitter]:
    """Committer for every registered step, keyed by step name."""
    return {
        "register_yourself": IdentityCommitter(reconciler),
        "services": PayloadCommitter(
            lambda a, strict: services_payload(a.services, strict),
            lambda b, draft, p: b.add_services(draft, p),
        ),
        "industries": PayloadCommitter(
            lambda a, strict: industries_payload(a.industries, strict),
            lambda b, draft, p: b.add_industries(draft, p),
        ),
        "technologies": PayloadCommitter(
            lambda a, strict: technologies_payload(a.technologies, strict),
            lambda b, draft, p: b.add_technologies(draft, p),
        ),
        "features": PayloadCommitter(
            lambda a, strict: features_payload(a.features, strict),
            lambda b, draft, p: b.add_features(draft, p),
        ),
        "special_offers": DiscountCommitter(),
        "timeline": PayloadCommitter(
            lambda a, strict: timeline_payload(a.timeline),
            lambda b, draft, p: b.add_timeline(draft, p),
        ),
        "estimate": EstimateCommitter(),
        "agreement": AgreementCommitter(),
        "proceed_options": TerminalCommitter(),
    }
