"""clawd engine: agent loop, providers, configuration and core models."""
from .models import (
    AgentRunResult,
    AgentState,
    ConversationTurn,
    ImageBlock,
    PermissionChoice,
    PermissionMode,
    PermissionRequest,
    Role,
    TextBlock,
    ToolExecutionResult,
    ToolInvocation,
    ToolInvocationBlock,
    ToolOutcomeBlock,
)
from .config import EngineConfig
from .errors import (
    AgentBusyError,
    AuthenticationError,
    ClawdError,
    InvalidRequestError,
    InvalidStateTransitionError,
    MaxIterationsExceededError,
    ProviderError,
    RateLimitedError,
    StreamError,
    TransportError,
)

__all__ = [
    # Agent loop (lazy import to avoid circular deps)
    "AgentLoop",
    # Models
    "AgentRunResult",
    "AgentState",
    "ConversationTurn",
    "ImageBlock",
    "PermissionChoice",
    "PermissionMode",
    "PermissionRequest",
    "Role",
    "TextBlock",
    "ToolExecutionResult",
    "ToolInvocation",
    "ToolInvocationBlock",
    "ToolOutcomeBlock",
    # Config
    "EngineConfig",
    # YAML config (lazy import)
    "load_yaml_config",
    "find_settings_file",
    # Providers (lazy import)
    "Provider",
    "AnthropicProvider",
    "StreamDecoder",
    "Transcript",
    # Errors
    "AgentBusyError",
    "AuthenticationError",
    "ClawdError",
    "InvalidRequestError",
    "InvalidStateTransitionError",
    "MaxIterationsExceededError",
    "ProviderError",
    "RateLimitedError",
    "StreamError",
    "TransportError",
]


def __getattr__(name: str):
    if name == "AgentLoop":
        from .agent_loop import AgentLoop
        return AgentLoop
    if name == "load_yaml_config":
        from .yaml_config import load_yaml_config
        return load_yaml_config
    if name == "find_settings_file":
        from .yaml_config import find_settings_file
        return find_settings_file
    if name == "Provider":
        from .providers.base import Provider
        return Provider
    if name == "AnthropicProvider":
        from .providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider
    if name == "StreamDecoder":
        from .providers.streaming import StreamDecoder
        return StreamDecoder
    if name == "Transcript":
        from .transcript import Transcript
        return Transcript
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
