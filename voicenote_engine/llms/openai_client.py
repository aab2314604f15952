"""Implementation of the LLMInterface using the OpenAI chat completions API.
"""

import logging
from typing import Any

from openai import OpenAI

from voicenote_engine.interfaces.llm_interface import LLMInterface
from voicenote_engine.database.models import ChatMessage
from voicenote_engine.core.config import Settings

logger = logging.getLogger(__name__)

class OpenAIClient(LLMInterface):
    """Calls OpenAI with JSON-object response formatting.

    The API key and model come from the settings passed at construction; no
    module-level client is kept.
    """

    def __init__(self, settings: Settings):
        if not settings.OPENAI_API_KEY:
            logger.error("OpenAI API key is not configured (OPENAI_API_KEY).")
            raise ValueError("Missing OpenAI API key.")
        self.client = OpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.llm_request_timeout)
        self.model = settings.OPENAI_CHAT_MODEL_NAME
        self.temperature = settings.extraction_temperature
        self.max_tokens = settings.extraction_max_tokens
        logger.info(f"OpenAI client initialized for model: {self.model}")

    def structured_completion(self, system_prompt: str, user_message: str, **kwargs: Any) -> str:
        """Runs a chat completion that must return a JSON object.

        Raises:
            openai.OpenAIError: For API, network or timeout failures.
            ValueError: If the model returned no content.
        """
        target_model = kwargs.get("model") or self.model
        messages = [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=user_message),
        ]
        logger.debug(f"Requesting JSON completion from OpenAI model '{target_model}'.")
        response = self.client.chat.completions.create(
            model=target_model,
            messages=[msg.model_dump() for msg in messages],
            response_format={"type": "json_object"},
            temperature=kwargs.get("temperature", self.temperature),
            max_tokens=kwargs.get("max_tokens", self.max_tokens),
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ValueError("No response content from OpenAI")
        logger.debug(f"OpenAI JSON response (first 80 chars): '{content[:80]}...'")
        return content
