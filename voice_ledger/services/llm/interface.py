"""
Completion Provider Interface

The structured extractor only needs "prompt in, text out". Keeping the
contract this small lets tests substitute a canned provider.
"""

from abc import ABC, abstractmethod


class CompletionProvider(ABC):
    """Generative text provider."""

    name: str = "completion"

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """
        Run one completion.

        Returns:
            The raw response text

        Raises:
            CompletionError: If the provider fails
        """
        pass


class CompletionError(Exception):
    """The completion provider could not produce a response."""
    pass


class RateLimitError(CompletionError):
    """The provider refused the request because of rate limiting."""
    pass
