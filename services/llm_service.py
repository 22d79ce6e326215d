import asyncio
import requests
import logging
from typing import Any, Dict, List, Optional

from config import settings
from core.exceptions import (
    GenerationFailed, GenerationNotConfigured, GenerationQuotaExceeded, GenerationUnauthorized
)
from core.interfaces import ILLMService

logger = logging.getLogger(settings.LOGGER_NAME)

class OpenRouterLLMService(ILLMService):
    """A service to call a chat-completions API (OpenRouter or compatible)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = settings.LLM_BASE_URL,
        model: str = settings.LLM_MODEL_NAME,
        max_tokens: int = settings.LLM_MAX_TOKENS,
        timeout: int = settings.REQUEST_TIMEOUT,
    ):
        """
        Initializes the LLM service.

        Args:
            api_key: Bearer token; falls back to settings.LLM_API_KEY.
            base_url: The base URL of the chat-completions API.
            model: The name of the model to use.
            max_tokens: Completion length cap.
            timeout: The request timeout in seconds.
        """
        self.api_key = settings.LLM_API_KEY if api_key is None else api_key
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout

    def _post(self, payload: Dict[str, Any]) -> requests.Response:
        return requests.post(
            f'{self.base_url}/chat/completions',
            json=payload,
            headers={
                'Content-Type': 'application/json',
                'Authorization': f'Bearer {self.api_key}',
                'X-Title': settings.APP_TITLE,
            },
            timeout=self.timeout,
        )

    @staticmethod
    def _raise_for_status(response: requests.Response) -> None:
        if response.ok:
            return

        try:
            detail = response.json().get('error', {}).get('message', '')
        except ValueError:
            detail = response.text[:200]
        message = f"LLM API error: {response.status_code} {response.reason}. {detail}".strip()

        if response.status_code in (401, 403):
            raise GenerationUnauthorized(message)
        if response.status_code in (402, 429):
            raise GenerationQuotaExceeded(message)
        raise GenerationFailed(message)

    def _chat(self, messages: List[Dict[str, str]], temperature: float) -> str:
        if not self.api_key:
            raise GenerationNotConfigured("LLM_API_KEY is not configured. Please set it in your environment.")

        payload = {
            'model': self.model,
            'messages': messages,
            'temperature': temperature,
            'max_tokens': self.max_tokens,
        }

        try:
            logger.info(f"[LLM] Sending {len(messages)} messages to model '{self.model}' (temperature={temperature})...")
            response = self._post(payload)
        except requests.exceptions.Timeout as e:
            logger.error(f"[LLM] Request timed out after {self.timeout} seconds.")
            raise GenerationFailed("LLM request timed out") from e
        except requests.exceptions.ConnectionError as e:
            logger.error(f"[LLM] Cannot connect to LLM at {self.base_url}. Is the service reachable?")
            raise GenerationFailed("Cannot connect to LLM service") from e

        self._raise_for_status(response)

        try:
            data = response.json()
            content = data['choices'][0]['message']['content']
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("[LLM] Response was empty or malformed.")
            raise GenerationFailed("No response from LLM API") from e

        if not content or not content.strip():
            logger.error("[LLM] Response was empty.")
            raise GenerationFailed("Empty response from LLM")

        logger.info("[LLM] Successfully received response.")
        return content.strip()

    async def generate(self, messages: List[Dict[str, str]], temperature: float) -> str:
        """Runs the blocking HTTP call off the event loop. No retries."""
        try:
            return await asyncio.to_thread(self._chat, messages, temperature)
        except GenerationFailed as e:
            logger.error(f"[LLM] Generation failed: {e}")
            raise
