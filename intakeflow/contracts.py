"""Core data contracts for the intake pipeline."""

from __future__ import annotations

from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .constants import DEFAULT_TIMELINE
from .errors import IntakeError


class IdentitySection(BaseModel):
    """Contact and company details collected by the first step."""

    full_name: str = ""
    business_email: str = ""
    phone_number: str = ""
    company_name: str = ""
    company_website: str = ""
    business_address: str = ""
    business_type: str = ""
    referral_source: str = ""


class ServiceSelection(BaseModel):
    category: str
    services: List[str] = Field(default_factory=list)


class IndustrySelection(BaseModel):
    category: str
    industry: Optional[str] = None


class TechnologySelection(BaseModel):
    category: str
    technologies: List[str] = Field(default_factory=list)


class FeatureSelection(BaseModel):
    category: str
    features: List[str] = Field(default_factory=list)


class DiscountSection(BaseModel):
    """Chosen discount option; ``option_id`` is ``None`` until the user picks one."""

    option_id: Optional[str] = None
    applied_percent: int = 0
    submitted: bool = False


class EstimateSection(BaseModel):
    accepted: bool = False
    price_min: Optional[float] = None
    price_max: Optional[float] = None


class AgreementSection(BaseModel):
    accepted: bool = False
    submitted: bool = False
    pdf_url: Optional[str] = None


class ProceedSection(BaseModel):
    """Terminal option chosen by the user and whether its sub-flow finished."""

    selected_option: Optional[Literal["secure", "quote", "consultation"]] = None
    completed: bool = False
    action: Optional[str] = None
    checkout_url: Optional[str] = None


class AnswerSet(BaseModel):
    """Accumulated answers, one section per step.

    Every section carries a default so the aggregate is always fully
    populated. Sections are replaced wholesale through :meth:`replace`, which
    returns a new ``AnswerSet`` sharing untouched sections by reference.
    """

    identity: IdentitySection = Field(default_factory=IdentitySection)
    services: List[ServiceSelection] = Field(default_factory=list)
    industries: List[IndustrySelection] = Field(default_factory=list)
    technologies: List[TechnologySelection] = Field(default_factory=list)
    features: List[FeatureSelection] = Field(default_factory=list)
    discount: DiscountSection = Field(default_factory=DiscountSection)
    timeline: str = DEFAULT_TIMELINE
    estimate: EstimateSection = Field(default_factory=EstimateSection)
    agreement: AgreementSection = Field(default_factory=AgreementSection)
    proceed: ProceedSection = Field(default_factory=ProceedSection)

    def replace(self, section: str, value: Any) -> "AnswerSet":
        """Return a copy with ``section`` swapped for ``value``.

        ``value`` may be a model instance or plain data; it is validated
        against the section's declared type.
        """
        field = type(self).model_fields.get(section)
        if field is None:
            raise ValueError(f"Unknown answer section: {section}")
        validated = TypeAdapter(field.annotation).validate_python(value)
        return self.model_copy(update={section: validated})


class DraftHandle(BaseModel):
    """Identifier of the backend draft, assigned by the first step."""

    external_id: Optional[str] = None

    @property
    def exists(self) -> bool:
        return bool(self.external_id)


class PipelineCursor(BaseModel):
    current_step_index: int = 0
    completed: bool = False


class Idle(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["idle"] = "idle"


class Submitting(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["submitting"] = "submitting"
    step_index: int


TransitionState = Union[Idle, Submitting]


class StepError(BaseModel):
    """Failure recorded against a step and shown beside its form."""

    kind: str
    message: str
    retryable: bool = False

    @classmethod
    def from_exception(cls, exc: Exception) -> "StepError":
        if isinstance(exc, IntakeError):
            return cls(kind=exc.kind, message=exc.message, retryable=exc.retryable)
        return cls(
            kind="transient_submission_failure",
            message=str(exc) or exc.__class__.__name__,
            retryable=True,
        )


class StepOutcome(BaseModel):
    """Result of one ``advance`` request."""

    status: Literal["advanced", "completed", "failed", "ignored", "blocked"]
    step_index: int
    error: Optional[StepError] = None

    @property
    def ok(self) -> bool:
        return self.status in ("advanced", "completed")


# ---------------------------------------------------------------------------
# Shapes returned by the remote intake service


class EmailCheck(BaseModel):
    is_client: bool = False
    is_visitor: bool = False
    visitor_id: Optional[str] = None


class Estimate(BaseModel):
    """Price range and cost breakdown computed by the backend."""

    price_min: float
    price_max: float
    base_cost: Optional[float] = None
    discount_percent: float = 0
    discount_amount: float = 0
    rush_fee_percent: float = 0
    rush_fee_amount: float = 0
    calculated_total: Optional[float] = None
    is_manually_adjusted: bool = False
    accepted: bool = False


class AgreementReceipt(BaseModel):
    pdf_url: Optional[str] = None


class ProjectRef(BaseModel):
    id: str
    name: Optional[str] = None


class CheckoutSession(BaseModel):
    checkout_url: str
    session_id: Optional[str] = None
    payment_id: Optional[str] = None


class TerminalResult(BaseModel):
    """Outcome of a terminal branch action."""

    option: Literal["secure", "quote", "consultation"]
    completed: bool = False
    redirect_url: Optional[str] = None
    document_path: Optional[str] = None
    error: Optional[StepError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
