"""Outbound call transport for the Vapi voice-AI platform."""

from typing import Any, Optional, Protocol

import httpx

from leadcaller.config import config
from leadcaller.errors import TransportError
from leadcaller.logging_config import get_logger

logger = get_logger(__name__)


class CallTransport(Protocol):
    """Anything that can place an outbound call and return the provider's call id."""

    def initiate_call(self, phone_number: str, name: str, email: Optional[str] = None,
                      first_message: Optional[str] = None) -> str:
        ...

    def get_call(self, provider_call_id: str) -> dict[str, Any]:
        ...

    def get_recording(self, provider_call_id: str) -> Optional[str]:
        ...


class VapiClient:
    """Places and looks up calls through the Vapi REST API.

    Every request is bounded by `timeout`; a timeout or any non-2xx answer is
    raised as TransportError.
    """

    def __init__(self, api_key: str, phone_number_id: str, assistant_id: str,
                 base_url: str = "https://api.vapi.ai", timeout: float = 15.0,
                 client: Optional[httpx.Client] = None):
        self.phone_number_id = phone_number_id
        self.assistant_id = assistant_id
        self._client = client or httpx.Client(
            base_url=base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
        )

    @classmethod
    def from_config(cls) -> "VapiClient":
        return cls(
            api_key=config.VAPI_API_KEY,
            phone_number_id=config.VAPI_PHONE_NUMBER_ID,
            assistant_id=config.VAPI_ASSISTANT_ID,
            base_url=config.VAPI_BASE_URL,
            timeout=config.VAPI_TIMEOUT_SECONDS,
        )

    def initiate_call(self, phone_number: str, name: str, email: Optional[str] = None,
                      first_message: Optional[str] = None) -> str:
        customer: dict[str, Any] = {"number": phone_number, "name": name}
        if email:
            customer["email"] = email

        payload: dict[str, Any] = {
            "phoneNumberId": self.phone_number_id,
            "assistantId": self.assistant_id,
            "customer": customer,
        }
        if first_message:
            payload["assistantOverrides"] = {"firstMessage": first_message}

        logger.info("vapi_call_initiating", to=phone_number)
        data = self._request("POST", "/call/phone", json=payload)

        call_id = data.get("id") if isinstance(data, dict) else None
        if not call_id:
            raise TransportError("Provider response did not include a call id")
        logger.info("vapi_call_initiated", provider_call_id=call_id)
        return call_id

    def get_call(self, provider_call_id: str) -> dict[str, Any]:
        """The provider's current record of a call (status, artifact, analysis, cost)."""
        data = self._request("GET", f"/call/{provider_call_id}")
        if not isinstance(data, dict):
            raise TransportError("Provider returned an unexpected call record")
        return data

    def get_recording(self, provider_call_id: str) -> Optional[str]:
        data = self._request("GET", f"/call/{provider_call_id}/recording")
        if isinstance(data, str):
            return data or None
        if isinstance(data, dict):
            return data.get("recordingUrl") or data.get("url") or None
        return None

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("vapi_timeout", method=method, path=path)
            raise TransportError("Calling provider timed out") from e
        except httpx.HTTPError as e:
            logger.error("vapi_request_failed", method=method, path=path, error=str(e))
            raise TransportError(f"Failed to reach calling provider: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error("vapi_error_response", method=method, path=path,
                         status_code=response.status_code, error=message)
            raise TransportError(message)

        try:
            return response.json()
        except ValueError as e:
            raise TransportError("Calling provider returned a response that is not JSON") from e


class UnconfiguredTransport:
    """Stand-in used when Vapi credentials are missing; every request fails cleanly."""

    message = "Vapi not configured. Set VAPI_API_KEY, VAPI_PHONE_NUMBER_ID and VAPI_ASSISTANT_ID in .env"

    def initiate_call(self, phone_number: str, name: str, email: Optional[str] = None,
                      first_message: Optional[str] = None) -> str:
        raise TransportError(self.message)

    def get_call(self, provider_call_id: str) -> dict[str, Any]:
        raise TransportError(self.message)

    def get_recording(self, provider_call_id: str) -> Optional[str]:
        raise TransportError(self.message)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        message = body["message"]
        return ", ".join(message) if isinstance(message, list) else str(message)
    return f"Calling provider request failed (HTTP {response.status_code})"
