"""Match a new identity against existing visitors and clients."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel

from .backends import BaseIntakeBackend
from .contracts import IdentitySection
from .errors import Conflict
from .mapping import identity_payload

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    ALREADY_CLIENT = "already_client"
    EXISTING_DRAFT = "existing_draft"
    NO_MATCH = "no_match"


class ReconcileResult(BaseModel):
    outcome: ReconcileOutcome
    draft_id: Optional[str] = None
    created: bool = False


def normalize_email(email: str) -> str:
    return email.strip().lower()


class EntityReconciler:
    """Decide between create, reuse and reject for the first step.

    A failed existence check falls back to creating a new draft. Concurrent
    :meth:`resolve` calls for the same email share a single in-flight task.
    """

    def __init__(self, backend: BaseIntakeBackend) -> None:
        self._backend = backend
        self._in_flight: Dict[str, asyncio.Task] = {}

    async def reconcile(self, email: str) -> ReconcileResult:
        """Classify ``email`` without creating anything.

        Errors from the existence check propagate to the caller.
        """
        check = await self._backend.check_email(normalize_email(email))
        if check.is_client:
            return ReconcileResult(outcome=ReconcileOutcome.ALREADY_CLIENT)
        if check.is_visitor and check.visitor_id:
            return ReconcileResult(
                outcome=ReconcileOutcome.EXISTING_DRAFT, draft_id=check.visitor_id
            )
        return ReconcileResult(outcome=ReconcileOutcome.NO_MATCH)

    async def resolve(self, identity: IdentitySection) -> ReconcileResult:
        """Return the draft to use for ``identity``, creating one if needed.

        Raises:
            Conflict: The email already belongs to a finalized client.
        """
        email = normalize_email(identity.business_email)
        task = self._in_flight.get(email)
        if task is None:
            task = asyncio.ensure_future(self._resolve(email, identity))
            self._in_flight[email] = task
            task.add_done_callback(lambda _t: self._in_flight.pop(email, None))
        else:
            logger.info(f"Joining in-flight reconciliation for {email}")
        return await asyncio.shield(task)

    async def _resolve(self, email: str, identity: IdentitySection) -> ReconcileResult:
        try:
            result = await self.reconcile(email)
        except Exception as e:
            logger.warning(
                f"Existence check failed for {email}: {e}. Creating a new draft."
            )
            result = ReconcileResult(outcome=ReconcileOutcome.NO_MATCH)

        if result.outcome is ReconcileOutcome.ALREADY_CLIENT:
            logger.info(f"Rejecting {email}: already a client")
            raise Conflict(email)

        if result.outcome is ReconcileOutcome.EXISTING_DRAFT:
            logger.info(f"Resuming existing draft {result.draft_id} for {email}")
            return result

        draft_id = await self._backend.create_visitor(identity_payload(identity))
        logger.info(f"Created draft {draft_id} for {email}")
        return ReconcileResult(
            outcome=ReconcileOutcome.NO_MATCH, draft_id=draft_id, created=True
        )
