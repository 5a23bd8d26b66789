"""HTTP client for the intake REST service."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..contracts import (
    AgreementReceipt,
    CheckoutSession,
    EmailCheck,
    Estimate,
    ProjectRef,
)
from ..errors import BackendError
from .base import BaseIntakeBackend

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class HttpIntakeBackend(BaseIntakeBackend):
    """Talks to the intake service over HTTP using ``httpx``.

    Responses use a ``{success, message, data}`` envelope. Non-2xx statuses,
    ``success: false`` and transport errors all surface as
    :class:`BackendError`.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
            self._owns_client = True

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Helper methods
    async def _send(
        self,
        method: str,
        path: str,
        json: Any = None,
        token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        accept: str = "application/json",
    ) -> httpx.Response:
        await self.connect()
        headers = {"Accept": accept}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = await self._client.request(
                method, f"{API_PREFIX}{path}", json=json, params=params, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise BackendError(f"Network error: {e}") from e

        if response.is_error:
            message = f"HTTP error! status: {response.status_code}"
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("message"):
                message = body["message"]
            raise BackendError(message, status_code=response.status_code)
        return response

    async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._send(method, path, **kwargs)
        try:
            body = response.json()
        except ValueError as e:
            raise BackendError(f"Malformed response from {path}") from e
        if isinstance(body, dict) and body.get("success") is False:
            raise BackendError(
                body.get("message") or f"{path} was rejected",
                status_code=response.status_code,
            )
        return body.get("data") if isinstance(body, dict) else body

    # ------------------------------------------------------------------
    # Visitors / drafts
    async def check_email(self, email: str) -> EmailCheck:
        data = await self._call("POST", "/visitors/check-email", json={"email": email})
        data = data or {}
        return EmailCheck(
            is_client=bool(data.get("isClient")),
            is_visitor=bool(data.get("isVisitor")),
            visitor_id=data.get("visitorId"),
        )

    async def create_visitor(self, identity: Dict[str, Any]) -> str:
        data = await self._call("POST", "/visitors/create", json=identity)
        draft_id = (data or {}).get("id") or (data or {}).get("visitorId")
        if not draft_id:
            raise BackendError("Draft creation returned no identifier")
        return str(draft_id)

    async def add_services(self, draft_id: str, payload: List[Dict[str, Any]]) -> None:
        await self._call("POST", f"/visitors/{draft_id}/services", json=payload)

    async def add_industries(self, draft_id: str, payload: List[Dict[str, Any]]) -> None:
        await self._call("POST", f"/visitors/{draft_id}/industries", json=payload)

    async def add_technologies(
        self, draft_id: str, payload: List[Dict[str, Any]]
    ) -> None:
        await self._call("POST", f"/visitors/{draft_id}/technologies", json=payload)

    async def add_features(self, draft_id: str, payload: List[Dict[str, Any]]) -> None:
        await self._call("POST", f"/visitors/{draft_id}/features", json=payload)

    async def add_discount(self, draft_id: str, payload: Dict[str, Any]) -> None:
        await self._call("POST", f"/visitors/{draft_id}/discount", json=payload)

    async def add_timeline(self, draft_id: str, payload: Dict[str, Any]) -> None:
        await self._call("POST", f"/visitors/{draft_id}/timeline", json=payload)

    async def get_estimate(self, draft_id: str) -> Estimate:
        data = await self._call("GET", f"/visitors/{draft_id}/estimate") or {}
        return Estimate(
            price_min=data.get("estimateFinalPriceMin", 0),
            price_max=data.get("estimateFinalPriceMax", 0),
            base_cost=data.get("baseCost"),
            discount_percent=data.get("discountPercent") or 0,
            discount_amount=data.get("discountAmount") or 0,
            rush_fee_percent=data.get("rushFeePercent") or 0,
            rush_fee_amount=data.get("rushFeeAmount") or 0,
            calculated_total=data.get("calculatedTotal"),
            is_manually_adjusted=bool(data.get("isManuallyAdjusted")),
            accepted=bool(data.get("estimateAccepted")),
        )

    async def accept_estimate(self, draft_id: str) -> None:
        await self._call("POST", f"/visitors/{draft_id}/estimate/accept")

    async def accept_agreement(self, draft_id: str, accepted: bool) -> AgreementReceipt:
        data = await self._call(
            "POST", f"/visitors/{draft_id}/service-agreement", json={"accepted": accepted}
        )
        return AgreementReceipt(pdf_url=(data or {}).get("pdfUrl"))

    async def download_quote(self, draft_id: str) -> bytes:
        response = await self._send(
            "GET", f"/visitors/{draft_id}/quote", accept="application/pdf"
        )
        return response.content

    # ------------------------------------------------------------------
    # Auth
    async def register_user(
        self, username: str, full_name: str, email: str, password: str
    ) -> Dict[str, Any]:
        data = await self._call(
            "POST",
            "/auth/register",
            json={
                "username": username,
                "fullName": full_name,
                "email": email,
                "password": password,
            },
        )
        return data or {}

    async def verify_email(self, email: str, otp: str) -> str:
        data = await self._call(
            "POST", "/auth/verifyEmail", json={"email": email, "OTP": otp}
        )
        data = data or {}
        token = data.get("token") or data.get("accessToken")
        if not token:
            raise BackendError("Verification succeeded but no access token was issued")
        return token

    async def resend_otp(self, email: str) -> None:
        await self._call("POST", "/auth/sendOTP", json={"email": email})

    # ------------------------------------------------------------------
    # Projects / payment
    async def list_projects(self, access_token: str) -> List[ProjectRef]:
        data = await self._call(
            "GET",
            "/projects/my-projects",
            token=access_token,
            params={"page": 1, "limit": 10},
        )
        projects = (data or {}).get("projects") or []
        return [ProjectRef(id=str(p["id"]), name=p.get("name")) for p in projects]

    async def create_checkout_session(
        self, project_id: str, success_url: str, cancel_url: str, access_token: str
    ) -> CheckoutSession:
        data = await self._call(
            "POST",
            "/payment/project/create-checkout-session",
            token=access_token,
            json={
                "projectId": project_id,
                "successUrl": success_url,
                "cancelUrl": cancel_url,
            },
        )
        data = data or {}
        url = data.get("checkoutUrl") or data.get("url")
        if not url:
            raise BackendError("Failed to create payment session")
        return CheckoutSession(
            checkout_url=url,
            session_id=data.get("sessionId"),
            payment_id=data.get("paymentId"),
        )
