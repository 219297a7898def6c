import logging
from typing import Optional
from datetime import datetime, timezone
from google import genai
from google.genai import types

from ..settings import Settings

logger = logging.getLogger("batchmaker.ai")


class AIUnavailableError(RuntimeError):
    pass


class AIClient:
    """Thin async wrapper over the Gemini SDK.

    Built once by the application entry point and handed to the services
    that need it.
    """

    def __init__(self, settings: Settings, client: Optional[genai.Client] = None):
        self.api_key = settings.gemini_api_key
        self.mode = settings.ai_mode  # "mock" or "gemini"
        self.model_id = settings.gemini_text_model
        self._client: Optional[genai.Client] = client
        self.last_error: Optional[str] = None
        self.last_error_at: Optional[datetime] = None

        if self._client is None and self.mode == "gemini" and self.api_key:
            self._client = genai.Client(api_key=self.api_key)

    def is_available(self) -> bool:
        return self.mode == "gemini" and self._client is not None

    async def generate_text(
        self,
        user_content: str,
        system_instruction: str,
        max_output_tokens: int,
        model: Optional[str] = None,
    ) -> Optional[str]:
        """
        Generate plain text (Async).
        Returns the model text, or None when the model sent back nothing.
        Raises on SDK / transport errors after recording them.
        """
        if not self.is_available():
            raise AIUnavailableError(f"AI service is not available (mode={self.mode})")

        model_id = model or self.model_id
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            max_output_tokens=max_output_tokens,
            response_mime_type="text/plain",
        )

        try:
            response = await self._client.aio.models.generate_content(
                model=model_id,
                contents=user_content,
                config=config,
            )
        except Exception as e:
            self.last_error = f"{e.__class__.__name__}: {str(e)}"
            self.last_error_at = datetime.now(timezone.utc)
            logger.error(f"Gemini generation failed: {e}")
            raise

        if not response.text:
            logger.warning("Gemini returned empty response")
            return None
        return response.text
