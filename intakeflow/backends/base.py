"""Base contract for the remote intake service."""

from __future__ import annotations

import abc
from typing import Any, Dict, List

from ..contracts import (
    AgreementReceipt,
    CheckoutSession,
    EmailCheck,
    Estimate,
    ProjectRef,
)


class BaseIntakeBackend(metaclass=abc.ABCMeta):
    """Abstract client for the draft, auth and payment services.

    Every per-step write is an upsert keyed by the draft id, so repeating a
    call with the same payload is safe.
    """

    async def connect(self) -> None:
        """Open underlying connections (no-op by default)."""
        pass

    async def close(self) -> None:
        """Release underlying connections (no-op by default)."""
        pass

    # -- visitors / drafts ---------------------------------------------
    @abc.abstractmethod
    async def check_email(self, email: str) -> EmailCheck:
        """Report whether ``email`` belongs to a client or an open draft."""
        raise NotImplementedError

    @abc.abstractmethod
    async def create_visitor(self, identity: Dict[str, Any]) -> str:
        """Create a draft and return its identifier."""
        raise NotImplementedError

    @abc.abstractmethod
    async def add_services(self, draft_id: str, payload: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def add_industries(self, draft_id: str, payload: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def add_technologies(
        self, draft_id: str, payload: List[Dict[str, Any]]
    ) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def add_features(self, draft_id: str, payload: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def add_discount(self, draft_id: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def add_timeline(self, draft_id: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_estimate(self, draft_id: str) -> Estimate:
        raise NotImplementedError

    @abc.abstractmethod
    async def accept_estimate(self, draft_id: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def accept_agreement(self, draft_id: str, accepted: bool) -> AgreementReceipt:
        raise NotImplementedError

    @abc.abstractmethod
    async def download_quote(self, draft_id: str) -> bytes:
        """Return the rendered quote document (PDF bytes)."""
        raise NotImplementedError

    # -- auth ------------------------------------------------------------
    @abc.abstractmethod
    async def register_user(
        self, username: str, full_name: str, email: str, password: str
    ) -> Dict[str, Any]:
        raise NotImplementedError

    @abc.abstractmethod
    async def verify_email(self, email: str, otp: str) -> str:
        """Exchange a one-time code for an access token."""
        raise NotImplementedError

    @abc.abstractmethod
    async def resend_otp(self, email: str) -> None:
        raise NotImplementedError

    # -- projects / payment ---------------------------------------------
    @abc.abstractmethod
    async def list_projects(self, access_token: str) -> List[ProjectRef]:
        """Projects owned by the authenticated user, most recent first."""
        raise NotImplementedError

    @abc.abstractmethod
    async def create_checkout_session(
        self, project_id: str, success_url: str, cancel_url: str, access_token: str
    ) -> CheckoutSession:
        raise NotImplementedError
