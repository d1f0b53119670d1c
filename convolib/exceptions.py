"""
Exceptions shared by the conversation orchestrator and completion backends.
"""

from typing import List, Optional


class ConvoFlowError(Exception):
    """Base exception for all ConvoFlow errors."""
    pass


class ConfigError(ConvoFlowError):
    """Raised when there's an issue with configuration."""
    pass


class LLMBackendError(ConvoFlowError):
    """Base exception for completion backend errors."""
    pass


class InvalidProviderError(LLMBackendError):
    """Raised when a provider name is not registered."""
    pass


class MissingAPIKeyError(LLMBackendError):
    """Raised when required API key is not found in environment."""
    pass


class LLMExecutionError(LLMBackendError):
    """Raised when a completion call fails."""
    pass


class LLMTimeoutError(LLMBackendError):
    """Raised when a completion call does not finish within the timeout."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"LLM request timeout after {timeout_seconds:g}s")


class TemplateValidationError(ConvoFlowError):
    """Raised when a prompt template is malformed. Carries every problem found."""

    def __init__(self, errors: List[str], agent_name: Optional[str] = None):
        self.errors = list(errors)
        self.agent_name = agent_name
        prefix = f"Invalid prompt template for {agent_name}" if agent_name else "Invalid prompt template"
        super().__init__(f"{prefix}: {'; '.join(self.errors)}")


class StepTransitionError(ConvoFlowError):
    """Raised when an agent sub-step transition violates the step ordering."""
    pass
