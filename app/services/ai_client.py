"""
AI microservice client

Forwards interview, voice-interview and RAG requests. Connection failures
become 503, timeouts 504 and downstream 5xx 502; 4xx responses pass through
with the service's error message.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    """Raised when the AI microservice call does not succeed"""

    def __init__(self, status_code: int, message: str, payload: Optional[Any] = None):
        self.status_code = status_code
        self.message = message
        self.payload = payload
        super().__init__(message)


class AIServiceClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                endpoint,
                json=payload,
                timeout=timeout or self.timeout,
            )
        except httpx.ConnectError as e:
            logger.error(f"AI service connection refused for {endpoint}: {e}")
            raise AIServiceError(503, "AI microservice is not available. Connection refused.") from e
        except httpx.TimeoutException as e:
            logger.error(f"AI service timed out for {endpoint}")
            raise AIServiceError(504, "Request to AI microservice timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"AI service request failed for {endpoint}: {e}")
            raise AIServiceError(502, f"AI microservice request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success:
            return body

        message = None
        if isinstance(body, dict):
            message = body.get("detail") or body.get("error")
        message = message or f"Request failed with status {response.status_code}"

        if response.status_code >= 500:
            logger.error(f"AI service error {response.status_code} for {endpoint}: {message}")
            raise AIServiceError(502, f"Error from AI microservice: {message}", body)
        raise AIServiceError(response.status_code, message, body)

    async def create_interview(self, payload: Dict[str, Any]) -> Any:
        return await self._request("POST", "/interview/create", payload)

    async def create_voice_interview(self, payload: Dict[str, Any]) -> Any:
        return await self._request(
            "POST",
            "/voice-interview/create",
            payload,
            timeout=settings.VOICE_SERVICE_TIMEOUT_SECONDS,
        )

    async def query_rag(self, message: str, user_id: str) -> Any:
        return await self._request(
            "POST",
            "/rag",
            {"message": message, "user_id": user_id},
            timeout=settings.RAG_SERVICE_TIMEOUT_SECONDS,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
