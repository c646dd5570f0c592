"""
AI Service

Main orchestrator for AI-powered tasks.
Handles provider wiring, output validation, and the chunked decomposition
batch.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Tuple

from ..store.models import DecomposedRow, DecompositionResult, TagAnalysis
from .providers import DEFAULT_MODEL, GeminiProvider
from .providers.base import AIProvider
from .tasks import (
    PromptDecompositionTask,
    TagAnalysisTask,
    WildcardExpansionInput,
    WildcardExpansionTask,
)
from .tasks.base import AITask, TaskResult

logger = logging.getLogger(__name__)

CHUNK_SIZE = 10
CONCURRENCY = 3
GROUP_PAUSE_SECONDS = 1.0


class AINotConfiguredError(Exception):
    """No API key is configured for the generative-text provider."""


class AITaskError(Exception):
    """An AI task failed after the provider's retries."""

    def __init__(self, message: str, blocked: bool = False):
        super().__init__(message)
        self.blocked = blocked


class AIService:
    """
    Main AI service - runs tasks against a provider.

    Handles:
    - Prompt building and result parsing via AITask objects
    - Output validation
    - Chunked, throttled prompt decomposition with per-line fallback
    """

    def __init__(
        self,
        provider: AIProvider,
        chunk_size: int = CHUNK_SIZE,
        concurrency: int = CONCURRENCY,
        group_pause: float = GROUP_PAUSE_SECONDS,
    ):
        """
        Initialize AI service.

        Args:
            provider: Provider executing the prompts
            chunk_size: Prompt lines per decomposition call
            concurrency: Decomposition calls in flight at once
            group_pause: Seconds to wait between groups of calls
        """
        self.provider = provider
        self.chunk_size = chunk_size
        self.concurrency = concurrency
        self.group_pause = group_pause

    @property
    def available(self) -> bool:
        return self.provider.detect_availability().available

    def require_available(self) -> None:
        status = self.provider.detect_availability()
        if not status.available:
            raise AINotConfiguredError(status.error or "AI provider is not configured")

    def execute_task(self, task: AITask, input_data: Any) -> TaskResult:
        """
        Execute an AI task with the configured provider.

        Args:
            task: Task to execute
            input_data: Task-specific input data

        Returns:
            TaskResult with output or error
        """
        prompt = task.build_prompt(input_data)
        logger.debug(f"[ai-service] Task: {task.task_type}, prompt:\n{prompt[:500]}")

        result = self.provider.execute(
            prompt,
            timeout=task.timeout,
            json_mode=task.json_mode,
            system_instruction=task.get_system_instruction(input_data),
        )

        if not result.success:
            return TaskResult(
                success=False,
                error=result.error or "Unknown error",
                provider_id=result.provider_id,
                model=result.model,
                blocked=result.blocked,
                execution_time_ms=result.execution_time_ms,
            )

        parsed = task.parse_result(result.output)
        if not task.validate_output(parsed):
            return TaskResult(
                success=False,
                error="Output validation failed",
                provider_id=result.provider_id,
                model=result.model,
                execution_time_ms=result.execution_time_ms,
            )

        logger.info(
            f"[ai-service] {task.task_type} answered by {result.provider_id} "
            f"in {result.execution_time_ms / 1000:.1f}s"
        )
        return TaskResult(
            success=True,
            output=parsed,
            provider_id=result.provider_id,
            model=result.model,
            execution_time_ms=result.execution_time_ms,
        )

    def _run(self, task: AITask, input_data: Any) -> Any:
        self.require_available()
        result = self.execute_task(task, input_data)
        if not result.success:
            raise AITaskError(result.error or "AI task failed", blocked=result.blocked)
        return result.output

    # =========================================================================
    # Tag Analysis
    # =========================================================================

    def analyze_tags(self, trigger_words: List[str]) -> TagAnalysis:
        """
        Split trigger words into base and variation prompts.

        Raises:
            AINotConfiguredError: No API key
            AITaskError: Provider failed or returned nothing usable
        """
        words = [w.strip() for w in trigger_words if w and w.strip()]
        if not words:
            return TagAnalysis()
        return self._run(TagAnalysisTask(), words)

    # =========================================================================
    # Wildcard Expansion
    # =========================================================================

    def expand_wildcard(self, lines: List[str], directive: str) -> List[str]:
        """
        Generate new wildcard lines from existing ones and a directive.

        Raises:
            AINotConfiguredError: No API key
            AITaskError: Provider failed or returned nothing usable
        """
        if not directive or not directive.strip():
            raise ValueError("Directive cannot be empty")
        return self._run(
            WildcardExpansionTask(),
            WildcardExpansionInput(lines=list(lines), directive=directive.strip()),
        )

    # =========================================================================
    # Prompt Decomposition
    # =========================================================================

    def _decompose_chunk(self, task: PromptDecompositionTask, chunk: List[str]) -> Tuple[List[DecomposedRow], int]:
        """Rows for one chunk; falls back to one call per line."""
        result = self.execute_task(task, chunk)
        if result.success:
            return result.output, 0

        logger.warning(
            f"[ai-service] Chunk of {len(chunk)} line(s) failed ({result.error}), "
            "retrying line by line"
        )
        rows: List[DecomposedRow] = []
        skipped = 0
        for line in chunk:
            single = self.execute_task(task, [line])
            if single.success:
                rows.extend(single.output)
            else:
                logger.warning(f"[ai-service] Skipped line after retries: {line[:80]} ({single.error})")
                skipped += 1
        return rows, skipped

    def decompose_prompts(
        self,
        lines: List[str],
        cancel_event: Optional[threading.Event] = None,
    ) -> DecompositionResult:
        """
        Decompose prompt lines into attribute rows.

        Lines are sent in chunks; a group of ``concurrency`` chunks runs at
        once, with a pause between groups. Setting ``cancel_event`` stops new
        groups from starting; calls already in flight finish.

        Raises:
            AINotConfiguredError: No API key
        """
        self.require_available()
        lines = [line.strip() for line in lines if line and line.strip()]
        result = DecompositionResult(total=len(lines))
        if not lines:
            return result

        task = PromptDecompositionTask()
        chunks = [lines[i:i + self.chunk_size] for i in range(0, len(lines), self.chunk_size)]
        logger.info(f"[ai-service] Decomposing {len(lines)} line(s) in {len(chunks)} chunk(s)")

        with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
            for start in range(0, len(chunks), self.concurrency):
                if cancel_event is not None and cancel_event.is_set():
                    result.cancelled = True
                    logger.info("[ai-service] Decomposition cancelled")
                    break

                group = chunks[start:start + self.concurrency]
                for rows, skipped in pool.map(lambda c: self._decompose_chunk(task, c), group):
                    result.rows.extend(rows)
                    result.skipped += skipped

                if start + self.concurrency < len(chunks) and self.group_pause > 0:
                    time.sleep(self.group_pause)

        if result.skipped:
            logger.warning(f"[ai-service] Decomposition finished with {result.skipped} skipped line(s)")
        return result


def create_ai_service(api_key: Optional[str] = None, model: Optional[str] = None) -> AIService:
    """Factory function to create an AIService backed by Gemini."""
    return AIService(GeminiProvider(api_key=api_key, model=model or DEFAULT_MODEL))
