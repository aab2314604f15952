"""Implementation of the LLMInterface using the Ollama API.
"""

import logging
import ollama
from typing import Any

from voicenote_engine.interfaces.llm_interface import LLMInterface
from voicenote_engine.database.models import ChatMessage
from voicenote_engine.core.config import Settings

logger = logging.getLogger(__name__)

class OllamaClient(LLMInterface):
    """Connects to a local Ollama instance to provide structured completions.

    Implements the LLMInterface protocol.
    """

    def __init__(self, settings: Settings):
        """Initializes the Ollama client.

        Args:
            settings: The application settings containing Ollama configuration.
        """
        self.client = ollama.Client(host=settings.ollama_base_url, timeout=settings.llm_request_timeout)
        self.default_model = settings.default_model
        self.temperature = settings.extraction_temperature
        self.max_tokens = settings.extraction_max_tokens
        logger.info(f"Ollama client initialized for host: {settings.ollama_base_url}")

    def structured_completion(self, system_prompt: str, user_message: str, **kwargs: Any) -> str:
        """Generates a JSON response using the Ollama /api/chat endpoint.

        Args:
            system_prompt: The system/context prompt.
            user_message: The user turn.
            **kwargs: Optional 'model', 'temperature' and 'max_tokens' overrides.

        Returns:
            The raw JSON text of the assistant message.

        Raises:
            ollama.ResponseError: If the Ollama API returns an error.
            Exception: For other unexpected errors.
        """
        target_model = kwargs.get("model") or self.default_model
        messages = [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=user_message),
        ]
        # Convert ChatMessage models to dictionaries expected by ollama library
        message_dicts = [msg.model_dump() for msg in messages]
        options = {
            "temperature": kwargs.get("temperature", self.temperature),
            "num_predict": kwargs.get("max_tokens", self.max_tokens),
        }

        try:
            logger.debug(f"Requesting JSON completion from Ollama model '{target_model}'.")
            response = self.client.chat(
                model=target_model,
                messages=message_dicts,
                format="json",
                options=options,
                stream=False # Ensure we get the full response
            )
            content = response["message"]["content"].strip()
            logger.debug(f"Ollama JSON response (first 80 chars): '{content[:80]}...'")
            return content
        except ollama.ResponseError as e:
            logger.error(f"Ollama API error during structured completion: {e.status_code} - {e.error}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error during Ollama structured completion: {e}", exc_info=True)
            raise
