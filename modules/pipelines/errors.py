"""Exception types shared by the generation pipeline and the UI layer."""

from __future__ import annotations


class StudioError(RuntimeError):
    """Base class for errors raised by the studio services."""


class MissingApiKeyError(StudioError):
    """No Gemini API key is configured."""

    def __init__(self, message: str = "API key not valid: no Gemini API key configured") -> None:
        super().__init__(message)


class NoContentGeneratedError(StudioError):
    """The upstream response carried no usable image or text part."""

    def __init__(self, message: str = "No image generated") -> None:
        super().__init__(message)


class InputValidationError(StudioError, ValueError):
    """User input was rejected before any network call."""


class InsufficientCreditsError(StudioError):
    """The account balance does not cover the requested operation."""

    def __init__(self, cost: int, balance: int) -> None:
        self.cost = cost
        self.balance = balance
        super().__init__(
            f"Insufficient credits. This action costs {cost} credits, you have {balance} left."
        )


class BatchInProgressError(StudioError):
    """Another generation batch is still running."""

    def __init__(self, message: str = "A generation is already in progress. Please wait for it to finish.") -> None:
        super().__init__(message)
