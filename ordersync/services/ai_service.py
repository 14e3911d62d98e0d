"""
Wrapper for the LLM completion API.
Includes timeout, retry, response validation, error translation.
All LLM calls are isolated here.
"""
import asyncio
import json
import re
from typing import Any, Dict, List, Optional

import aiohttp

from ordersync.config import config
from ordersync.errors import DataContractError, ExternalServiceError, NetworkError
from ordersync.logger import logger
from ordersync.utils.retry import async_retry, with_timeout

_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one."""
    match = _FENCE.match(content or "")
    return match.group(1) if match else (content or "").strip()


def parse_json_completion(content: str) -> Dict[str, Any]:
    """
    Parse a completion that must be a JSON object.

    Raises:
        DataContractError: If the text is not a JSON object
    """
    try:
        data = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as e:
        raise DataContractError(f"Completion is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DataContractError(f"Completion is a {type(data).__name__}, expected an object")
    return data


class AIService:
    """
    Wrapper for OpenAI-compatible chat completion APIs.
    Business logic never calls LLM APIs directly.
    """

    def __init__(self):
        self.api_key = config.LLM_API_KEY
        self.base_url = config.LLM_BASE_URL.rstrip("/")
        self.model = config.LLM_MODEL
        self.session: Optional[aiohttp.ClientSession] = None
        self.is_available = bool(self.api_key)

    async def initialize(self):
        """Initialize HTTP session (called after startup)."""
        if not self.is_available:
            logger.warning("AI service not configured")
            return

        self.session = aiohttp.ClientSession(
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json"
            }
        )
        logger.info(f"AI service initialized with model: {self.model}")

    async def close(self):
        """Close HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    @async_retry()
    async def _post_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await with_timeout(
                self.session.post(f"{self.base_url}/chat/completions", json=payload),
                "chat completion"
            )
            if response.status != 200:
                error_text = await response.text()
                raise ExternalServiceError(f"LLM API error {response.status}: {error_text}")
            return await response.json()

        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error calling LLM API: {str(e)}") from e
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Timeout calling LLM API: {str(e)}") from e
        except json.JSONDecodeError as e:
            raise ExternalServiceError(f"Invalid JSON response from LLM API: {str(e)}") from e

    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
        json_mode: bool = True,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send a chat completion request with temperature 0.

        Args:
            messages: List of message dicts [{"role": "user", "content": "..."}]
            system_prompt: Prepended as the system message when given
            json_mode: Ask the provider for a JSON object response
            max_tokens: Maximum response length (default from config)

        Returns:
            The completion text

        Raises:
            ExternalServiceError: If the API fails, returns a malformed body or retries run out
        """
        if not self.is_available:
            raise ExternalServiceError("AI service not configured")
        if self.session is None:
            raise ExternalServiceError("AI service not initialized")

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": ([{"role": "system", "content": system_prompt}] if system_prompt else []) + messages,
            "temperature": 0,
            "max_tokens": max_tokens or config.LLM_MAX_TOKENS,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        result = await self._post_completion(payload)

        try:
            content = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError("Invalid response format from LLM API") from e

        if not isinstance(content, str) or not content.strip():
            raise ExternalServiceError("Empty completion from LLM API")

        usage = result.get("usage") or {}
        logger.info(f"LLM response generated (tokens: {usage.get('total_tokens', 0)})")
        return content

    async def health_check(self) -> Dict[str, Any]:
        """Check AI service health."""
        if not self.is_available:
            return {"status": "not_configured", "model": "none"}
        if not self.session:
            return {"status": "not_initialized"}

        try:
            response = await with_timeout(self.session.get(f"{self.base_url}/models"), "LLM health check")
            if response.status == 200:
                return {"status": "available", "model": self.model}
            return {"status": "error", "code": response.status}
        except (aiohttp.ClientError, NetworkError):
            return {"status": "unavailable"}


# Global service instance
ai_service = AIService()
