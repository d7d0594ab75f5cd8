"""Base agent class for ReplyMate generation agents.

Every model-backed agent (the low and high writer tiers, the modify
agent) inherits from BaseAgent, which provides:

- Backend access via the infra.llm_clients wrappers
- A standard AgentResult return type (Result pattern)
- A hard per-call timeout
- Automatic latency measurement and token tracking
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from replymate.infra.llm_clients import BackendError, TextBackend

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class AgentResult:
    """Standard result type for all agent operations.

    Follows the Result pattern: every agent call returns an AgentResult
    instead of raising exceptions. Callers check ``result.ok`` to
    determine success or failure.

    Attributes:
        ok: True if the operation succeeded.
        data: The response payload (completion text).
        error: Human-readable error description when ``ok`` is False.
        model_id: Model that served (or refused) the call.
        input_tokens: Prompt tokens reported by the backend.
        output_tokens: Completion tokens reported by the backend.
        latency_ms: Wall-clock time for the operation in milliseconds.
    """

    ok: bool
    data: Any = None
    error: Optional[str] = None
    model_id: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens

    @classmethod
    def success(
        cls,
        data: Any,
        model_id: str = "",
        input_tokens: int = 0,
        output_tokens: int = 0,
        latency_ms: int = 0,
    ) -> "AgentResult":
        """Create a successful result."""
        return cls(
            ok=True,
            data=data,
            model_id=model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            latency_ms=latency_ms,
        )

    @classmethod
    def failure(
        cls,
        error: str,
        model_id: str = "",
        input_tokens: int = 0,
        output_tokens: int = 0,
        latency_ms: int = 0,
    ) -> "AgentResult":
        """Create a failure result. Token counts cover calls that billed anyway."""
        return cls(
            ok=False,
            error=error,
            model_id=model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            latency_ms=latency_ms,
        )


# ---------------------------------------------------------------------------
# Base agent
# ---------------------------------------------------------------------------

class BaseAgent:
    """Base class for model-backed agents.

    Example::

        class LowTierWriter(BaseAgent):
            def __init__(self, backend):
                super().__init__(agent_name="writer_low", backend=backend)
    """

    def __init__(
        self,
        agent_name: str,
        backend: TextBackend,
        timeout: float = 30.0,
    ):
        """Initialise the agent.

        Args:
            agent_name: A short, unique name for this agent (used in logs).
            backend: The text-generation backend to call.
            timeout: Hard limit in seconds for a single call.
        """
        self.agent_name = agent_name
        self.backend = backend
        self.timeout = timeout

    @property
    def model_id(self) -> str:
        return self.backend.model_id

    async def generate(self, prompt: str, system_instruction: str) -> AgentResult:
        """Generate a single-turn completion.

        Args:
            prompt: The user message to send.
            system_instruction: System instruction that shapes the reply.

        Returns:
            An ``AgentResult`` with the completion text in ``data``.
        """
        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self.backend.complete(system_instruction, prompt),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            latency_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "[%s] Generation timed out after %dms", self.agent_name, latency_ms,
            )
            return AgentResult.failure(
                f"timed out after {self.timeout:.0f}s",
                model_id=self.model_id,
                latency_ms=latency_ms,
            )
        except BackendError as exc:
            latency_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "[%s] Generation failed after %dms: %s",
                self.agent_name,
                latency_ms,
                exc,
            )
            billed = exc.response
            return AgentResult.failure(
                str(exc),
                model_id=self.model_id,
                input_tokens=billed.input_tokens if billed else 0,
                output_tokens=billed.output_tokens if billed else 0,
                latency_ms=latency_ms,
            )
        except Exception as exc:
            latency_ms = int((time.time() - start_time) * 1000)
            logger.exception(
                "[%s] Generation raised after %dms: %s", self.agent_name, latency_ms, exc,
            )
            return AgentResult.failure(
                f"{type(exc).__name__}: {exc}",
                model_id=self.model_id,
                latency_ms=latency_ms,
            )

        latency_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "[%s] Generation succeeded: model=%s, tokens=%d, latency=%dms",
            self.agent_name,
            response.model_id,
            response.tokens_used,
            latency_ms,
        )
        return AgentResult.success(
            data=response.text,
            model_id=response.model_id,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            latency_ms=latency_ms,
        )
