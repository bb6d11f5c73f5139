from __future__ import annotations

from typing import Any

import httpx

from ..models import IdentifyRequest, IdentifyResponse


class IdentityServiceClient:
    """Lightweight SDK for interacting with the Identity Service."""

    def __init__(
        self,
        base_url: str,
        auth_token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth_token = auth_token
        self._timeout = timeout
        self._transport = transport
        self._async_transport = async_transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    @staticmethod
    def _payload(email: str | None, phone_number: str | None) -> dict[str, Any]:
        return IdentifyRequest(email=email, phoneNumber=phone_number).model_dump(exclude_none=True)

    def identify(self, email: str | None = None, phone_number: str | None = None) -> IdentifyResponse:
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            response = client.post(
                f"{self._base_url}/identify",
                json=self._payload(email, phone_number),
                headers=self._headers(),
            )
        response.raise_for_status()
        return IdentifyResponse.model_validate(response.json())

    def get_contact(self, primary_id: int) -> IdentifyResponse | None:
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            response = client.get(f"{self._base_url}/v1/contacts/{primary_id}", headers=self._headers())
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return IdentifyResponse.model_validate(response.json())

    async def aidentify(self, email: str | None = None, phone_number: str | None = None) -> IdentifyResponse:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._async_transport) as client:
            response = await client.post(
                f"{self._base_url}/identify",
                json=self._payload(email, phone_number),
                headers=self._headers(),
            )
        response.raise_for_status()
        return IdentifyResponse.model_validate(response.json())


__all__ = ["IdentityServiceClient"]
