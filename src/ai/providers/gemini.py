"""
Gemini Provider

AI provider backed by the Gemini REST ``generateContent`` endpoint.
"""

import json
import logging
import os
import time
from typing import Any, Dict, List, Optional

import requests

from .base import AIProvider, ProviderResult, ProviderStatus

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-1.5-flash"
API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
RETRY_DELAY = 0.5

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_CIVIC_INTEGRITY",
)


class SafetyBlockError(RuntimeError):
    """The model refused to answer (finish reason or prompt feedback)."""


class EmptyResponseError(RuntimeError):
    """The model returned no usable text."""


class GeminiProvider(AIProvider):
    """
    Gemini over HTTPS.

    Uses ``requests`` with a bounded timeout. An empty or failed response is
    retried once after a short pause; a safety block is never retried.
    """

    provider_id = "gemini"

    KNOWN_MODELS = [
        "gemini-1.5-flash",
        "gemini-1.5-pro",
        "gemini-2.0-flash",
        "gemini-2.5-flash",
    ]

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        session: Optional[requests.Session] = None,
        retry_delay: float = RETRY_DELAY,
    ):
        super().__init__(model=model or DEFAULT_MODEL)
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY")
        self.retry_delay = retry_delay
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def detect_availability(self) -> ProviderStatus:
        if not self.api_key:
            return ProviderStatus(
                provider_id=self.provider_id,
                available=False,
                error="Gemini API key is not configured",
            )
        return ProviderStatus(
            provider_id=self.provider_id,
            available=True,
            models=self.list_models(),
        )

    def list_models(self) -> List[str]:
        return list(self.KNOWN_MODELS)

    def build_body(
        self,
        prompt: str,
        json_mode: bool,
        system_instruction: Optional[str],
    ) -> Dict[str, Any]:
        """Request body for ``generateContent``."""
        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_NONE"}
                for category in SAFETY_CATEGORIES
            ],
        }
        if json_mode:
            body["generationConfig"] = {"responseMimeType": "application/json"}
        if system_instruction:
            body["system_instruction"] = {"parts": [{"text": system_instruction}]}
        return body

    def extract_text(self, data: Dict[str, Any]) -> str:
        """
        Text of the first candidate.

        Raises:
            SafetyBlockError: Prompt or answer blocked by safety filters
            EmptyResponseError: No text for any other reason
        """
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason")
            if reason:
                raise SafetyBlockError(f"Prompt blocked: {reason}")
            raise EmptyResponseError("No candidates in response")

        candidate = candidates[0] or {}
        parts = (candidate.get("content") or {}).get("parts") or []
        text = parts[0].get("text") if parts and isinstance(parts[0], dict) else None
        if not text:
            reason = candidate.get("finishReason") or "Unknown"
            if reason == "SAFETY":
                raise SafetyBlockError("Response blocked by safety filter")
            raise EmptyResponseError(f"Empty response ({reason})")
        return text

    def _call(
        self,
        prompt: str,
        timeout: int,
        json_mode: bool,
        system_instruction: Optional[str],
    ) -> str:
        url = API_URL.format(model=self.model)
        response = self.session.post(
            url,
            params={"key": self.api_key},
            json=self.build_body(prompt, json_mode, system_instruction),
            timeout=timeout,
        )
        if not response.ok:
            try:
                message = (response.json().get("error") or {}).get("message")
            except ValueError:
                message = None
            raise RuntimeError(f"API {response.status_code}: {message or response.reason}")
        return self.extract_text(response.json())

    def execute(
        self,
        prompt: str,
        timeout: int = 60,
        json_mode: bool = True,
        system_instruction: Optional[str] = None,
    ) -> ProviderResult:
        if not self.api_key:
            return ProviderResult(
                success=False,
                error="Gemini API key is not configured",
                provider_id=self.provider_id,
                model=self.model,
            )

        def _execute() -> ProviderResult:
            attempts = 0
            while True:
                attempts += 1
                try:
                    text = self._call(prompt, timeout, json_mode, system_instruction)
                    output = self.parse_json_response(text) if json_mode else text
                    break
                except SafetyBlockError as e:
                    logger.warning(f"[ai-service] Gemini safety block: {e}")
                    return ProviderResult(
                        success=False,
                        error=str(e),
                        provider_id=self.provider_id,
                        model=self.model,
                        blocked=True,
                    )
                except (requests.RequestException, RuntimeError, json.JSONDecodeError) as e:
                    if attempts > 1:
                        raise
                    logger.debug(f"[ai-service] Gemini call failed, retrying: {e}")
                    time.sleep(self.retry_delay)

            return ProviderResult(
                success=True,
                output=output,
                raw_response=text,
                provider_id=self.provider_id,
                model=self.model,
            )

        return self._timed_execute(_execute)
