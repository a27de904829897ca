"""Exception hierarchy for the agent engine.

Only transport-fatal errors and the iteration cap escape the agent
loop. Everything that goes wrong inside one tool invocation is turned
into an error outcome instead of an exception.
"""
from __future__ import annotations


class ClawdError(Exception):
    """Base exception for all clawd errors."""


class ProviderError(ClawdError):
    """The model provider call failed."""
    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class TransportError(ProviderError):
    """Network or server failure talking to the provider."""
    def __init__(
        self,
        message: str,
        status: int | None = None,
        retryable: bool = False,
        attempts: int = 1,
    ):
        self.retryable = retryable
        self.attempts = attempts
        super().__init__(message, status=status)


class AuthenticationError(ProviderError):
    """The provider rejected our credentials (401/403)."""
    def __init__(self, message: str = "Invalid API key. Please check your configuration."):
        super().__init__(message, status=401)


class InvalidRequestError(ProviderError):
    """The provider rejected the request shape (400)."""
    def __init__(self, message: str):
        super().__init__(f"Invalid request: {message}", status=400)


class RateLimitedError(ProviderError):
    """Rate limited and retries were exhausted."""
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            "API rate limit exceeded. Please wait before retrying.",
            status=429,
        )


class StreamError(ProviderError):
    """The provider sent an explicit error event mid-stream."""
    def __init__(self, error_type: str, message: str):
        self.error_type = error_type
        super().__init__(f"Stream error from provider ({error_type}): {message}")


class MaxIterationsExceededError(ClawdError):
    """The agent loop hit its hard iteration cap for one turn."""
    def __init__(self, max_iterations: int):
        self.max_iterations = max_iterations
        super().__init__(
            f"Agent loop exceeded maximum iterations ({max_iterations})"
        )


class AgentBusyError(ClawdError):
    """New input arrived while a loop run was still active."""
    def __init__(self, state: str):
        self.state = state
        super().__init__(f"Agent is busy (state={state}); wait for it to finish or abort")


class InvalidStateTransitionError(ClawdError, ValueError):
    """Attempted an agent state change the lifecycle does not allow."""
    def __init__(self, current: str, target: str, allowed: list[str]):
        self.current = current
        self.target = target
        allowed_str = ", ".join(allowed) or "none"
        super().__init__(
            f"Invalid state transition: {current} -> {target}. "
            f"Allowed from {current}: {allowed_str}"
        )
