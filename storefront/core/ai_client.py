import json
import logging
import httpx
from typing import Optional

from storefront.core.config import settings
from storefront.core.exceptions import AIServiceError

logger = logging.getLogger(__name__)


class AIClient:
    """HTTP client for the chat-completions API used by growth size prediction."""

    def __init__(self, api_key: str = None, base_url: str = None, model: str = None):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = base_url or settings.OPENAI_API_BASE_URL
        self.model = model or settings.OPENAI_MODEL
        self.client = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=30.0)
        return self.client

    async def complete_json(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> dict:
        """
        Ask for a JSON object response.

        POST /chat/completions
        {
          "model": "gpt-4o-mini",
          "messages": [{"role": "system", ...}, {"role": "user", ...}],
          "response_format": {"type": "json_object"}
        }

        Returns the parsed JSON content of the first choice.
        """
        if not self.configured:
            raise AIServiceError("AI service is not configured")

        try:
            client = await self._get_client()
            response = await client.post(
                f"{self.base_url}/chat/completions",
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    "response_format": {"type": "json_object"},
                    "temperature": temperature,
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
        except httpx.HTTPStatusError as e:
            logger.error(f"AI request failed with status {e.response.status_code}: {e.response.text}")
            raise AIServiceError(f"AI request failed: {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"AI request failed: {str(e)}")
            raise AIServiceError(f"AI request failed: {str(e)}")
        except (KeyError, IndexError, ValueError) as e:
            logger.error(f"Unexpected AI response shape: {str(e)}")
            raise AIServiceError("Unexpected AI response")

        if not content:
            raise AIServiceError("No response from AI service")

        try:
            parsed = json.loads(content)
        except ValueError:
            raise AIServiceError("AI response was not valid JSON")

        if not isinstance(parsed, dict):
            raise AIServiceError("AI response was not a JSON object")
        return parsed

    async def close(self):
        """Close HTTP client."""
        if self.client:
            await self.client.aclose()


# Global instance
ai_client = AIClient()
