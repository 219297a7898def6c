import asyncio
import json
import logging
from typing import Optional

from ..core.ai_client import AIClient, AIUnavailableError
from ..parsing.errors import ModelInvocationError
from ..parsing.prompts import PROMPT_VERSION, build_user_content, system_prompt_for
from ..settings import Settings

logger = logging.getLogger("batchmaker.ai")


class ModelInvoker:
    """Sends recipe text to the language model and returns its raw reply.

    The output token ceiling only bounds cost and latency; a recipe too long
    to fit comes back truncated and fails JSON parsing downstream.
    """

    def __init__(self, ai_client: AIClient, settings: Settings):
        self.ai_client = ai_client
        self.mode = settings.ai_mode
        self.timeout = settings.model_timeout_seconds
        self.max_tokens = {
            "text": settings.max_output_tokens_text,
            "url": settings.max_output_tokens_url,
        }

    async def invoke(self, source_text: str, source: str = "text") -> str:
        user_content = build_user_content(source_text, source)

        if self.mode == "mock":
            return self._mock_response(source_text)

        logger.info(
            "Invoking model source=%s chars=%d prompt_version=%s",
            source, len(source_text), PROMPT_VERSION,
        )
        try:
            text: Optional[str] = await asyncio.wait_for(
                self.ai_client.generate_text(
                    user_content=user_content,
                    system_instruction=system_prompt_for(source),
                    max_output_tokens=self.max_tokens.get(source, self.max_tokens["text"]),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise ModelInvocationError(f"AI service timeout after {self.timeout:g}s")
        except AIUnavailableError as e:
            raise ModelInvocationError(f"AI service unavailable: {e}")
        except Exception as e:
            raise ModelInvocationError(f"AI service returned error: {e}")

        if not text or not text.strip():
            raise ModelInvocationError("Empty response from AI service")
        return text

    def _mock_response(self, source_text: str) -> str:
        """Deterministic reply for running without a model key."""
        lines = [line.strip() for line in source_text.splitlines() if line.strip()]
        title = lines[0][:80] if lines else "Mock Recipe"
        return json.dumps({
            "recipeName": title,
            "description": f"Mock parse of {title}",
            "ingredients": ["flour: 500 g", "water: 350 ml", "salt: 10 g"],
            "steps": [
                {
                    "order": 1,
                    "title": "Mix dough",
                    "description": "Combine flour, water and salt.",
                    "duration_minutes": 10,
                    "ingredients_for_step": ["flour: 500 g", "water: 350 ml", "salt: 10 g"],
                },
                {
                    "order": 2,
                    "title": "Bake",
                    "description": "Bake until golden.",
                    "duration_minutes": 35,
                    "temperature": 230,
                    "temperature_unit": "C",
                },
            ],
            "servings": "1 loaf",
        })
