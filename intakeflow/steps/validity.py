"""Pure validity predicates, one per step.

Each predicate reads the :class:`AnswerSet` and nothing else.
"""

from __future__ import annotations

from ..constants import REQUIRED_IDENTITY_FIELDS, REQUIRED_TECHNOLOGY_CATEGORIES
from ..contracts import AnswerSet


def identity_is_valid(answers: AnswerSet) -> bool:
    identity = answers.identity
    return all(
        (getattr(identity, field, "") or "").strip() != ""
        for field in REQUIRED_IDENTITY_FIELDS
    )


def services_are_valid(answers: AnswerSet) -> bool:
    return len(answers.services) > 0


def industries_are_valid(answers: AnswerSet) -> bool:
    return len(answers.industries) > 0


def technologies_are_valid(answers: AnswerSet) -> bool:
    """Frontend, backend and database each need at least one pick."""
    if not answers.technologies:
        return False
    for label, code in REQUIRED_TECHNOLOGY_CATEGORIES:
        if not any(
            selection.category in (label, code) and selection.technologies
            for selection in answers.technologies
        ):
            return False
    return True


def features_are_valid(answers: AnswerSet) -> bool:
    return len(answers.features) > 0


def discount_is_valid(answers: AnswerSet) -> bool:
    # "Not eligible" is a real choice; only the absence of a choice fails.
    return answers.discount.option_id is not None


def timeline_is_valid(answers: AnswerSet) -> bool:
    return True


def estimate_is_valid(answers: AnswerSet) -> bool:
    return answers.estimate.accepted


def agreement_is_valid(answers: AnswerSet) -> bool:
    return answers.agreement.accepted


def proceed_is_valid(answers: AnswerSet) -> bool:
    return answers.proceed.completed
