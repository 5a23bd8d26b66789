"""In-process stand-in for the intake service, for tests and demos."""

from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from ..contracts import (
    AgreementReceipt,
    CheckoutSession,
    EmailCheck,
    Estimate,
    ProjectRef,
)
from ..errors import BackendError
from .base import BaseIntakeBackend


class InMemoryIntakeBackend(BaseIntakeBackend):
    """Keeps drafts, users and checkout sessions in local dictionaries.

    Failures can be injected per operation with :meth:`fail_next`, and every
    call is recorded in ``calls`` so tests can assert on remote traffic.
    """

    def __init__(
        self,
        latency: float = 0.0,
        otp_code: str = "123456",
        estimate: Optional[Estimate] = None,
    ) -> None:
        self.latency = latency
        self.otp_code = otp_code
        self.estimate = estimate or Estimate(
            price_min=4800,
            price_max=6200,
            base_cost=5000,
            discount_percent=0,
            rush_fee_percent=0,
            calculated_total=5400,
        )
        self.visitors: Dict[str, Dict[str, Any]] = {}
        self.clients: set[str] = set()
        self.users: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, str] = {}
        self.projects: Dict[str, List[ProjectRef]] = defaultdict(list)
        self.checkout_sessions: List[Dict[str, Any]] = []
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self._failures: Dict[str, List[Exception]] = defaultdict(list)

    # ------------------------------------------------------------------
    # Test helpers
    def add_client(self, email: str) -> None:
        self.clients.add(email.strip().lower())

    def add_visitor(self, email: str, **details: Any) -> str:
        visitor_id = str(uuid.uuid4())
        self.visitors[visitor_id] = {
            "id": visitor_id,
            "businessEmail": email.strip().lower(),
            **details,
        }
        return visitor_id

    def fail_next(
        self, operation: str, times: int = 1, error: Optional[Exception] = None
    ) -> None:
        """Make the next ``times`` calls to ``operation`` raise ``error``."""
        for _ in range(times):
            self._failures[operation].append(
                error or BackendError(f"Simulated network failure in {operation}")
            )

    def call_count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    # ------------------------------------------------------------------
    # Helper methods
    async def _enter(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if self.latency:
            await asyncio.sleep(self.latency)
        if self._failures[operation]:
            raise self._failures[operation].pop(0)

    def _visitor(self, draft_id: str) -> Dict[str, Any]:
        visitor = self.visitors.get(draft_id)
        if visitor is None:
            raise BackendError(f"Visitor {draft_id} not found", status_code=404)
        return visitor

    def _user_for_token(self, access_token: str) -> str:
        email = self.tokens.get(access_token)
        if email is None:
            raise BackendError("Unauthorized", status_code=401)
        return email

    # ------------------------------------------------------------------
    # Visitors / drafts
    async def check_email(self, email: str) -> EmailCheck:
        await self._enter("check_email", email)
        normalized = email.strip().lower()
        if normalized in self.clients:
            return EmailCheck(is_client=True)
        for visitor in self.visitors.values():
            if visitor.get("businessEmail") == normalized:
                return EmailCheck(is_visitor=True, visitor_id=visitor["id"])
        return EmailCheck(is_visitor=False)

    async def create_visitor(self, identity: Dict[str, Any]) -> str:
        await self._enter("create_visitor", identity)
        email = str(identity.get("businessEmail", ""))
        details = {k: v for k, v in identity.items() if k != "businessEmail"}
        return self.add_visitor(email, **details)

    async def add_services(self, draft_id: str, payload: List[Dict[str, Any]]) -> None:
        await self._enter("add_services", draft_id, payload)
        self._visitor(draft_id)["services"] = payload

    async def add_industries(self, draft_id: str, payload: List[Dict[str, Any]]) -> None:
        await self._enter("add_industries", draft_id, payload)
        self._visitor(draft_id)["industries"] = payload

    async def add_technologies(
        self, draft_id: str, payload: List[Dict[str, Any]]
    ) -> None:
        await self._enter("add_technologies", draft_id, payload)
        self._visitor(draft_id)["technologies"] = payload

    async def add_features(self, draft_id: str, payload: List[Dict[str, Any]]) -> None:
        await self._enter("add_features", draft_id, payload)
        self._visitor(draft_id)["features"] = payload

    async def add_discount(self, draft_id: str, payload: Dict[str, Any]) -> None:
        await self._enter("add_discount", draft_id, payload)
        self._visitor(draft_id)["discount"] = payload

    async def add_timeline(self, draft_id: str, payload: Dict[str, Any]) -> None:
        await self._enter("add_timeline", draft_id, payload)
        self._visitor(draft_id)["timeline"] = payload

    async def get_estimate(self, draft_id: str) -> Estimate:
        await self._enter("get_estimate", draft_id)
        visitor = self._visitor(draft_id)
        return self.estimate.model_copy(
            update={"accepted": bool(visitor.get("estimateAccepted"))}
        )

    async def accept_estimate(self, draft_id: str) -> None:
        await self._enter("accept_estimate", draft_id)
        self._visitor(draft_id)["estimateAccepted"] = True

    async def accept_agreement(self, draft_id: str, accepted: bool) -> AgreementReceipt:
        await self._enter("accept_agreement", draft_id, accepted)
        self._visitor(draft_id)["agreementAccepted"] = accepted
        return AgreementReceipt(
            pdf_url=f"https://files.example.test/agreements/{draft_id}.pdf"
        )

    async def download_quote(self, draft_id: str) -> bytes:
        await self._enter("download_quote", draft_id)
        self._visitor(draft_id)
        return b"%PDF-1.4\n% quote for " + draft_id.encode() + b"\n%%EOF\n"

    # ------------------------------------------------------------------
    # Auth
    async def register_user(
        self, username: str, full_name: str, email: str, password: str
    ) -> Dict[str, Any]:
        await self._enter("register_user", username, email)
        normalized = email.strip().lower()
        if any(u["username"] == username for u in self.users.values()):
            raise BackendError("Username already taken", status_code=409)
        user = {
            "id": str(uuid.uuid4()),
            "username": username,
            "fullName": full_name,
            "email": normalized,
            "isVerified": False,
        }
        self.users[normalized] = user
        return user

    async def verify_email(self, email: str, otp: str) -> str:
        await self._enter("verify_email", email, otp)
        normalized = email.strip().lower()
        user = self.users.get(normalized)
        if user is None or otp != self.otp_code:
            raise BackendError("Invalid or expired OTP", status_code=400)
        user["isVerified"] = True
        token = f"token-{uuid.uuid4()}"
        self.tokens[token] = normalized
        # Verification finalizes the visitor into a client with a project.
        self.clients.add(normalized)
        self.projects[normalized].insert(
            0, ProjectRef(id=str(uuid.uuid4()), name=user["fullName"])
        )
        return token

    async def resend_otp(self, email: str) -> None:
        await self._enter("resend_otp", email)

    # ------------------------------------------------------------------
    # Projects / payment
    async def list_projects(self, access_token: str) -> List[ProjectRef]:
        await self._enter("list_projects", access_token)
        return list(self.projects[self._user_for_token(access_token)])

    async def create_checkout_session(
        self, project_id: str, success_url: str, cancel_url: str, access_token: str
    ) -> CheckoutSession:
        await self._enter("create_checkout_session", project_id)
        self._user_for_token(access_token)
        session_id = f"cs_{uuid.uuid4().hex[:16]}"
        self.checkout_sessions.append(
            {
                "sessionId": session_id,
                "projectId": project_id,
                "successUrl": success_url,
                "cancelUrl": cancel_url,
            }
        )
        return CheckoutSession(
            checkout_url=f"https://checkout.example.test/pay/{session_id}",
            session_id=session_id,
            payment_id=f"pay_{uuid.uuid4().hex[:12]}",
        )
