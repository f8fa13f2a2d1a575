"""OpenAI chat-completions intent classifier."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import openai

from adapters.classifier.base import IntentClassifier
from adapters.classifier.prompts import CLASSIFIER_PROMPT_V1
from errors import (
    ClassificationTimeout,
    ClassificationTransportError,
    MissingCredentialError,
)
from observability.logger import log_event, now_ms
from spec import CLASSIFIER_MAX_TOKENS, CLASSIFIER_TEMPERATURE


class OpenAIIntentClassifier(IntentClassifier):
    """
    Classifier backed by a small chat model in JSON mode.

    Design notes:
    - Stateless; one instance serves every classification of a session.
    - The client is injected (openai.AsyncOpenAI or compatible), so a
      process can share one connection pool across sessions.
    - Adapter does NOT:
        - Retry
        - Fall back
        - Decide orchestration outcomes
    """

    def __init__(
        self,
        *,
        client: Any | None,
        model: str,
        session_id: str | None = None,
    ) -> None:
        """
        Args:
            client:
                openai.AsyncOpenAI instance, or None when no API key is
                configured (every call then raises MissingCredentialError).
            model:
                Chat model identifier, e.g. "gpt-4o-mini".
            session_id:
                Session identifier for logging/correlation.
        """
        self._client = client
        self._model = model
        self._session_id = session_id

    async def classify(self, text: str, timeout_s: float) -> bool:
        if self._client is None:
            raise MissingCredentialError("OPENAI_API_KEY not configured")

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=[
                        {"role": "system", "content": CLASSIFIER_PROMPT_V1},
                        {"role": "user", "content": text},
                    ],
                    temperature=CLASSIFIER_TEMPERATURE,
                    max_tokens=CLASSIFIER_MAX_TOKENS,
                    response_format={"type": "json_object"},
                    timeout=timeout_s,
                ),
                timeout=timeout_s,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as exc:
            raise ClassificationTimeout(f"no verdict within {timeout_s:.2f}s") from exc
        except openai.OpenAIError as exc:
            raise ClassificationTransportError(f"{type(exc).__name__}: {exc}") from exc

        verdict = self._parse_verdict(response)
        log_event({
            "ts_ms": now_ms(),
            "event_type": "classifier_verdict",
            "session_id": self._session_id,
            "provider": "openai",
            "model": self._model,
            "is_command": verdict,
        })
        return verdict

    @staticmethod
    def _parse_verdict(response: Any) -> bool:
        """
        Extract {"intent": "command" | "question"} from the completion.

        Anything else is a transport failure: a verdict we cannot read is
        not a verdict.
        """
        try:
            content = response.choices[0].message.content or ""
            payload = json.loads(content)
            intent = str(payload["intent"]).strip().lower()
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
            raise ClassificationTransportError(f"malformed classifier reply: {exc}") from exc

        if intent not in ("command", "question"):
            raise ClassificationTransportError(f"unexpected intent: {intent!r}")
        return intent == "command"
