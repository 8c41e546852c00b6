"""
`OrderBackend` for a remote order service reached over HTTP.

Every request carries an explicit `httpx.Timeout`; timeouts and transport
faults are reported as `BackendUnavailable`. A declined capture (HTTP 402 or
`{"success": false}`) is returned as a failed `CaptureResult`, not raised.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from acp_checkout.errors import BackendUnavailable
from acp_checkout.models import CaptureResult, OrderTotals, ValidatedLineItem
from acp_checkout.ports import OrderBackend

logger = logging.getLogger(__name__)


class HttpOrderBackend(OrderBackend):
    def __init__(
        self,
        base_url: str,
        auth_token: str = "",
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        self.client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout, read=timeout),
            headers=headers,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("Order service timeout on %s %s", method, url)
            raise BackendUnavailable("Order service timed out") from exc
        except httpx.TransportError as exc:
            logger.error("Order service unreachable on %s %s: %s", method, url, exc)
            raise BackendUnavailable("Order service is unreachable") from exc
        if resp.status_code >= 500:
            logger.error("Order service error %d on %s %s", resp.status_code, method, url)
            raise BackendUnavailable(f"Order service returned HTTP {resp.status_code}")
        return resp

    async def _json(self, method: str, url: str, **kwargs: Any) -> dict:
        resp = await self._request(method, url, **kwargs)
        resp.raise_for_status()
        return resp.json() if resp.content else {}

    async def create(self) -> str:
        data = await self._json("POST", "/orders", json={})
        return str(data["id"])

    async def add_item(self, order_id: str, item: ValidatedLineItem) -> None:
        await self._json("POST", f"/orders/{order_id}/items", json=item.model_dump(mode="json"))

    async def clear_items(self, order_id: str) -> None:
        await self._json("DELETE", f"/orders/{order_id}/items")

    async def set_currency(self, order_id: str, currency: str) -> None:
        await self._json("PATCH", f"/orders/{order_id}", json={"currency": currency})

    async def set_billing_email(self, order_id: str, email: str) -> None:
        await self._json("PATCH", f"/orders/{order_id}", json={"billing_email": email})

    async def set_metadata(self, order_id: str, key: str, value: Any) -> None:
        await self._json("PUT", f"/orders/{order_id}/metadata/{key}", json={"value": value})

    async def set_status(self, order_id: str, status: str) -> None:
        await self._json("PATCH", f"/orders/{order_id}", json={"status": status})

    async def calculate_totals(self, order_id: str) -> OrderTotals:
        data = await self._json("POST", f"/orders/{order_id}/calculate_totals")
        return OrderTotals.model_validate(data)

    async def save(self, order_id: str) -> None:
        await self._json("POST", f"/orders/{order_id}/save")

    async def get_checkout_url(self, order_id: str) -> str:
        data = await self._json("GET", f"/orders/{order_id}/checkout_url")
        return data["url"]

    async def capture_payment(self, order_id: str) -> CaptureResult:
        resp = await self._request("POST", f"/orders/{order_id}/capture")
        if resp.status_code == 402:
            detail = resp.json() if resp.content else {}
            return CaptureResult(success=False, message=detail.get("message", "Payment declined"))
        resp.raise_for_status()
        return CaptureResult.model_validate(resp.json())

    async def cancel(self, order_id: str) -> None:
        await self._json("POST", f"/orders/{order_id}/cancel")
