"""
Provider Chain

Try a fixed list of providers in order and return the first success.

Used for transcription (each step bounded by a timeout) and for extraction
(structured extractor first, pattern extractor as the total fallback).
Steps run strictly one after another; a failed step is recorded and the
chain moves on. Nothing is retried here.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel, Field


logger = structlog.get_logger(__name__)


class ProviderFailure(BaseModel):
    """Why one provider in a chain did not produce a result."""
    provider: str
    reason: str

    def __str__(self) -> str:
        return f"{self.provider}: {self.reason}"


class ChainResult(BaseModel):
    """First successful value plus the failures that preceded it."""
    value: Any
    provider: str
    failures: list[ProviderFailure] = Field(default_factory=list)


class ChainExhausted(Exception):
    """Every provider in the chain failed."""

    def __init__(self, failures: list[ProviderFailure]):
        self.failures = failures
        reasons = "; ".join(str(f) for f in failures) or "no providers configured"
        super().__init__(f"All providers failed: {reasons}")


class ChainStep:
    """A named async callable."""

    def __init__(self, name: str, call: Callable[..., Awaitable[Any]]):
        self.name = name
        self.call = call


class ProviderChain:
    """
    Ordered Chain-of-Responsibility over async callables.

    Args:
        steps: Providers in the order they are tried
        timeout: Per-step bound in seconds, None for unbounded
    """

    def __init__(
        self,
        steps: list[ChainStep],
        timeout: Optional[float] = None,
    ):
        self._steps = list(steps)
        self._timeout = timeout

    @property
    def names(self) -> list[str]:
        return [step.name for step in self._steps]

    async def run(self, *args: Any, **kwargs: Any) -> ChainResult:
        """
        Call each step with the same arguments until one returns.

        Raises:
            ChainExhausted: If every step raised or timed out
        """
        failures: list[ProviderFailure] = []

        for step in self._steps:
            try:
                if self._timeout is None:
                    value = await step.call(*args, **kwargs)
                else:
                    value = await asyncio.wait_for(
                        step.call(*args, **kwargs),
                        timeout=self._timeout,
                    )
            except asyncio.TimeoutError:
                reason = f"timed out after {self._timeout}s"
                failures.append(ProviderFailure(provider=step.name, reason=reason))
                logger.warning("provider_failed", provider=step.name, error=reason)
                continue
            except Exception as e:
                reason = str(e) or type(e).__name__
                failures.append(ProviderFailure(provider=step.name, reason=reason))
                logger.warning("provider_failed", provider=step.name, error=reason)
                continue

            return ChainResult(value=value, provider=step.name, failures=failures)

        raise ChainExhausted(failures)
