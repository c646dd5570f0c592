"""
Abstract Base Provider

Defines the interface that all AI providers must implement, plus the
lenient JSON extraction shared by every provider.
"""

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)\n?```", re.DOTALL)


@dataclass
class ProviderResult:
    """Result from an AI provider execution."""

    success: bool
    output: Optional[Any] = None
    raw_response: Optional[str] = None
    error: Optional[str] = None
    provider_id: str = ""
    model: str = ""
    execution_time_ms: int = 0
    # Refused by the provider's content filter; retrying will not help
    blocked: bool = False


@dataclass
class ProviderStatus:
    """Whether a provider can be used right now."""

    provider_id: str
    available: bool
    models: List[str] = field(default_factory=list)
    error: Optional[str] = None


def _balanced_slice(text: str, start: int) -> Optional[Any]:
    """
    Parse the bracketed structure opening at ``text[start]``.

    Brackets inside string literals are ignored. Returns None when the
    structure never closes or the slice is not valid JSON.
    """
    open_char = text[start]
    close_char = "]" if open_char == "[" else "}"
    depth = 0
    in_string = False
    escape = False

    for i in range(start, len(text)):
        char = text[i]
        if escape:
            escape = False
        elif char == "\\":
            escape = True
        elif char == '"':
            in_string = not in_string
        elif in_string:
            continue
        elif char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                try:
                    return json.loads(text[start:i + 1])
                except json.JSONDecodeError:
                    return None
    return None


def extract_json(response: str) -> Any:
    """
    Parse JSON out of a model answer.

    Tries, in order: the whole text, the contents of markdown code fences,
    and the first balanced ``[...]`` or ``{...}`` (whichever opens first).

    Raises:
        json.JSONDecodeError: If no valid JSON is found
    """
    text = response.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for block in _FENCE.findall(text):
        try:
            return json.loads(block.strip())
        except json.JSONDecodeError:
            continue

    starts = sorted(i for i in (text.find("["), text.find("{")) if i != -1)
    for start in starts:
        parsed = _balanced_slice(text, start)
        if parsed is not None:
            return parsed

    preview = text[:200] + "..." if len(text) > 200 else text
    raise json.JSONDecodeError(f"No valid JSON found in response. Preview: {preview}", text, 0)


class AIProvider(ABC):
    """Abstract base class for AI providers."""

    # Provider identifier (e.g., "gemini")
    provider_id: str = ""

    def __init__(self, model: str = ""):
        self.model = model

    @abstractmethod
    def detect_availability(self) -> ProviderStatus:
        """Check if this provider is usable (e.g. an API key is set)."""

    @abstractmethod
    def execute(
        self,
        prompt: str,
        timeout: int = 60,
        json_mode: bool = True,
        system_instruction: Optional[str] = None,
    ) -> ProviderResult:
        """
        Execute a prompt and return the result.

        Args:
            prompt: The prompt to execute
            timeout: Maximum execution time in seconds
            json_mode: Parse the response as JSON into ``output``
            system_instruction: Optional system prompt

        Returns:
            ProviderResult with the response or error
        """

    @abstractmethod
    def list_models(self) -> List[str]:
        """Model identifiers this provider can run."""

    def parse_json_response(self, response: str) -> Any:
        """Parse JSON from an AI response; see ``extract_json``."""
        return extract_json(response)

    def _timed_execute(self, execute_fn: Callable[[], ProviderResult]) -> ProviderResult:
        """Run ``execute_fn``, record its duration and turn errors into a failed result."""
        start_time = time.time()
        try:
            result = execute_fn()
        except Exception as e:
            logger.error(f"[ai-service] Provider {self.provider_id} error: {e}")
            result = ProviderResult(
                success=False,
                error=str(e),
                provider_id=self.provider_id,
                model=self.model,
            )
        result.execution_time_ms = int((time.time() - start_time) * 1000)
        return result
