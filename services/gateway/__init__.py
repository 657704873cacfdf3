from __future__ import annotations
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

import aiohttp
from fastapi import Depends

from api.crud.errors import GatewayError
from config import Settings, get_settings
from .schemas import GatewaySession, VerificationResult, VerificationStatus


class PaymentGateway(ABC):
    """Hosted-checkout payment provider as seen by the settlement engine."""

    provider: str = "gateway"

    @abstractmethod
    async def initialize(self, email: str, amount: int, reference: str, metadata: Dict[str, Any]) -> GatewaySession:
        pass

    @abstractmethod
    async def verify(self, reference: str) -> VerificationResult:
        pass


# "abandoned", "ongoing", "processing" and "queued" can still turn into a success
_FAILED_STATES = {"failed", "reversed"}


class PaystackGateway(PaymentGateway):
    provider = "paystack"

    def __init__(self, settings: Settings):
        self.env = settings.env
        self.base_url = self.env.PAYSTACK_BASE_URL.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=self.env.GATEWAY_TIMEOUT_SECONDS)

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        headers = kwargs.pop("headers", {})
        headers.update({"Authorization": f"Bearer {self.env.PAYSTACK_SECRET_KEY}"})
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, f"{self.base_url}{path}", headers=headers, **kwargs) as r:
                    data = await r.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise GatewayError(f"Paystack unreachable: {e}") from e
        except ValueError as e:
            raise GatewayError("Paystack returned a non-JSON response") from e
        # Paystack wraps every answer as {"status": bool, "message": str, "data": {...}}
        if not isinstance(data, dict) or not data.get("status") or not isinstance(data.get("data"), dict):
            message = data.get("message") if isinstance(data, dict) else data
            raise GatewayError(f"Paystack error: {message}")
        return data["data"]

    async def initialize(self, email: str, amount: int, reference: str, metadata: Dict[str, Any]) -> GatewaySession:
        payload = {
            "email": email,
            # Paystack expects the lowest denomination (kobo)
            "amount": amount * 100,
            "reference": reference,
            "currency": self.env.CURRENCY,
            "metadata": metadata,
        }
        if self.env.PAYSTACK_CALLBACK_URL:
            payload["callback_url"] = self.env.PAYSTACK_CALLBACK_URL
        data = await self._request("POST", "/transaction/initialize", json=payload)
        if not data.get("authorization_url"):
            raise GatewayError("Paystack response has no authorization_url")
        logging.info(f"Opened Paystack session for reference {reference}")
        return GatewaySession(
            authorization_url=data["authorization_url"],
            reference=data.get("reference", reference),
            amount=amount,
            metadata=metadata,
        )

    async def verify(self, reference: str) -> VerificationResult:
        data = await self._request("GET", f"/transaction/verify/{reference}")
        state = str(data.get("status", "")).lower()
        if state == "success":
            status = VerificationStatus.success
        elif state in _FAILED_STATES:
            status = VerificationStatus.failed
        else:
            status = VerificationStatus.pending

        metadata = data.get("metadata") or {}
        if isinstance(metadata, str):
            try:
                metadata = json.loads(metadata)
            except ValueError:
                metadata = {}
        return VerificationResult(status=status, reference=data.get("reference", reference), metadata=metadata)


def get_payment_gateway(settings: Settings = Depends(get_settings)) -> PaymentGateway:
    return PaystackGateway(settings)
