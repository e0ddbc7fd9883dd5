from typing import List, Dict, Any, Optional
import logging

import httpx

from ..config import settings
from ..core.errors import LLMLabelerError

logger = logging.getLogger("npov.llm")


class LLMClient:
    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        api_url: str | None = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if api_key is None and settings.openai_api_key is not None:
            api_key = settings.openai_api_key.get_secret_value()
        self.api_key = api_key
        self.model = model or settings.llm_model
        self.api_url = api_url or settings.llm_api_url
        self.timeout = timeout
        self._transport = transport

    async def chat(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        temperature: float = 0.0,
    ) -> str:
        """
        Returns the assistant message content from the chat completion.
        """
        if not self.api_key:
            raise LLMLabelerError("No API key configured for the LLM labeler.")

        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}] + messages,
            "temperature": temperature,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Failed to get classification from the LLM: %s", exc)
            raise LLMLabelerError(f"LLM request failed: {type(exc).__name__}") from exc

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMLabelerError("LLM response missing choices[0].message.content") from exc
