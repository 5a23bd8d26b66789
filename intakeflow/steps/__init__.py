"""Ordered registry of intake steps."""

from __future__ import annotations

from typing import Callable, Tuple

from pydantic import BaseModel, ConfigDict

from ..contracts import AnswerSet
from . import validity


class StepDescriptor(BaseModel):
    """Immutable description of one intake step."""

    model_config = ConfigDict(frozen=True)

    index: int
    name: str
    title: str
    section: str
    requires_draft: bool = True
    predicate: Callable[[AnswerSet], bool]

    def is_valid(self, answers: AnswerSet) -> bool:
        return bool(self.predicate(answers))


def _step(index, name, title, section, predicate, requires_draft=True):
    return StepDescriptor(
        index=index,
        name=name,
        title=title,
        section=section,
        predicate=predicate,
        requires_draft=requires_draft,
    )


STEPS: Tuple[StepDescriptor, ...] = (
    _step(0, "register_yourself", "Register Yourself", "identity",
          validity.identity_is_valid, requires_draft=False),
    _step(1, "services", "Services", "services", validity.services_are_valid),
    _step(2, "industries", "Industries", "industries", validity.industries_are_valid),
    _step(3, "technologies", "Technologies", "technologies",
          validity.technologies_are_valid),
    _step(4, "features", "Features", "features", validity.features_are_valid),
    _step(5, "special_offers", "Special Offers", "discount", validity.discount_is_valid),
    _step(6, "timeline", "Timeline", "timeline", validity.timeline_is_valid),
    _step(7, "estimate", "Estimate", "estimate", validity.estimate_is_valid),
    _step(8, "agreement", "Agreement", "agreement", validity.agreement_is_valid),
    _step(9, "proceed_options", "Proceed Options", "proceed", validity.proceed_is_valid),
)

STEP_COUNT = len(STEPS)
LAST_STEP_INDEX = STEP_COUNT - 1


def get_step(index: int) -> StepDescriptor:
    """Return the descriptor at ``index``."""
    if not 0 <= index < STEP_COUNT:
        raise IndexError(f"No step at index {index}")
    return STEPS[index]


def get_step_by_name(name: str) -> StepDescriptor:
    for step in STEPS:
        if step.name == name:
            return step
    raise KeyError(f"Unknown step: {name}")


def is_step_valid(index: int, answers: AnswerSet) -> bool:
    return get_step(index).is_valid(answers)


def evaluate_validity(answers: AnswerSet) -> Tuple[bool, ...]:
    """Validity flag for every step, in registry order."""
    return tuple(step.is_valid(answers) for step in STEPS)


def first_invalid_step(answers: AnswerSet) -> int | None:
    for step in STEPS:
        if not step.is_valid(answers):
            return step.index
    return None


__all__ = [
    "LAST_STEP_INDEX",
    "STEPS",
    "STEP_COUNT",
    "StepDescriptor",
    "evaluate_validity",
    "first_invalid_step",
    "get_step",
    "get_step_by_name",
    "is_step_valid",
]
