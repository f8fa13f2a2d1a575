"""Intent classifier backed by the app backend's /ai/classify endpoint."""

from __future__ import annotations

from typing import Any

import httpx

from adapters.classifier.base import IntentClassifier
from errors import (
    ClassificationTimeout,
    ClassificationTransportError,
    MissingCredentialError,
)
from observability.logger import log_event, now_ms
from spec import HTTP_CONNECT_TIMEOUT_S


CLASSIFY_PATH = "/ai/classify"


class BackendIntentClassifier(IntentClassifier):
    """
    POST {"text": ...} -> {"isCommand": bool}, with bearer auth.

    A missing token fails fast without a request; the orchestrator's
    failure policy decides what that means.
    """

    def __init__(
        self,
        *,
        base_url: str,
        auth_token: str | None,
        session_id: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth_token = auth_token
        self._session_id = session_id
        self._client = client

    async def classify(self, text: str, timeout_s: float) -> bool:
        if not self._auth_token:
            raise MissingCredentialError("API_AUTH_TOKEN not configured")

        timeout = httpx.Timeout(timeout_s, connect=min(timeout_s, HTTP_CONNECT_TIMEOUT_S))
        try:
            if self._client is not None:
                response = await self._post(self._client, text, timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, text, timeout)
            response.raise_for_status()
            body: Any = response.json()
        except httpx.TimeoutException as exc:
            raise ClassificationTimeout(f"no verdict within {timeout_s:.2f}s") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ClassificationTransportError(f"{type(exc).__name__}: {exc}") from exc

        if not isinstance(body, dict) or not isinstance(body.get("isCommand"), bool):
            raise ClassificationTransportError(f"malformed classifier reply: {body!r}")

        verdict = body["isCommand"]
        log_event({
            "ts_ms": now_ms(),
            "event_type": "classifier_verdict",
            "session_id": self._session_id,
            "provider": "backend",
            "is_command": verdict,
        })
        return verdict

    async def _post(
        self,
        client: httpx.AsyncClient,
        text: str,
        timeout: httpx.Timeout,
    ) -> httpx.Response:
        return await client.post(
            f"{self._base_url}{CLASSIFY_PATH}",
            json={"text": text},
            headers={"Authorization": f"Bearer {self._auth_token}"},
            timeout=timeout,
        )
