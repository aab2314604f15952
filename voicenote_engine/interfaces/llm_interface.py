"""Interface definition for Large Language Model (LLM) services.
"""

from typing import Protocol, Any, runtime_checkable

@runtime_checkable
class LLMInterface(Protocol):
    """A protocol defining the standard interface for LLM interactions.

    This ensures that different LLM backends (Ollama, OpenAI, etc.)
    can be used interchangeably by the extraction service.
    """

    def structured_completion(self, system_prompt: str, user_message: str, **kwargs: Any) -> str:
        """Runs one completion constrained to a JSON object.

        Args:
            system_prompt: The system/context prompt.
            user_message: The user turn (the transcript request).
            **kwargs: Backend specific options (e.g. temperature, max_tokens).

        Returns:
            The raw JSON text produced by the model. Callers must treat it as
            untrusted input.
        """
        ...
