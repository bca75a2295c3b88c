"""
Unified LLM service routing a system + user prompt to OpenAI or Anthropic by model name.
Used by the LLM-backed score oracle. Calls go through the SDKs' async clients so that
cancelling the awaiting task (e.g. asyncio.wait_for timing out) closes the request.
"""

import logging
from typing import Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class LLMService:
    """Execute prompts with OpenAI or Anthropic"""

    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 0,
    ):
        self.openai_api_key = openai_api_key
        self.anthropic_api_key = anthropic_api_key
        self.timeout = timeout
        # One prompt = one upstream request; SDK retries would multiply the time per call
        self.max_retries = max_retries

    def is_configured(self) -> bool:
        return bool(self.openai_api_key or self.anthropic_api_key)

    @staticmethod
    def _is_anthropic_model(model: str) -> bool:
        return model.lower().startswith("claude-")

    async def execute_prompt(
        self,
        system_message: str,
        user_message: str,
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 1024,
    ) -> Dict:
        """
        Execute a prompt with system and user messages.

        Returns:
            Dict with content, tokens_used, and model

        Raises:
            RuntimeError: provider not configured or the call failed
        """
        if self._is_anthropic_model(model):
            logger.debug("Routing prompt to Anthropic (model=%s)", model)
            return await self._execute_anthropic(system_message, user_message, model, temperature, max_tokens)
        logger.debug("Routing prompt to OpenAI (model=%s)", model)
        return await self._execute_openai(system_message, user_message, model, temperature, max_tokens)

    async def _execute_openai(
        self,
        system_message: str,
        user_message: str,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Dict:
        if not self.openai_api_key:
            raise RuntimeError("OpenAI service is not configured. Set OPENAI_API_KEY.")

        from openai import AsyncOpenAI

        async with httpx.AsyncClient(timeout=self.timeout) as http_client:
            client = AsyncOpenAI(
                api_key=self.openai_api_key,
                http_client=http_client,
                max_retries=self.max_retries,
            )
            try:
                response = await client.chat.completions.create(
                    model=model,
                    messages=[
                        {"role": "system", "content": system_message},
                        {"role": "user", "content": user_message},
                    ],
                    temperature=temperature,
                    max_tokens=max_tokens,
                    response_format={"type": "json_object"},
                )
            except Exception as e:
                logger.error(f"Failed to execute prompt with OpenAI: {e}")
                raise RuntimeError(f"Failed to execute prompt: {str(e)}") from e

        usage = getattr(response, "usage", None)
        return {
            "content": response.choices[0].message.content,
            "tokens_used": usage.total_tokens if usage else 0,
            "model": model,
        }

    async def _execute_anthropic(
        self,
        system_message: str,
        user_message: str,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Dict:
        if not self.anthropic_api_key:
            raise RuntimeError("Anthropic service is not configured. Set ANTHROPIC_API_KEY.")

        from anthropic import AsyncAnthropic

        # Anthropic rejects empty user content
        user_content = (user_message or "").strip() or "Please proceed."
        request_params = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": [{"type": "text", "text": user_content}]}],
        }
        if (system_message or "").strip():
            request_params["system"] = system_message.strip()

        async with httpx.AsyncClient(timeout=self.timeout) as http_client:
            client = AsyncAnthropic(
                api_key=self.anthropic_api_key,
                http_client=http_client,
                max_retries=self.max_retries,
            )
            try:
                response = await client.messages.create(**request_params)
            except Exception as e:
                logger.error(f"Failed to execute prompt with Anthropic: {e}")
                raise RuntimeError(f"Failed to execute prompt: {str(e)}") from e

        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = getattr(response, "usage", None)
        return {
            "content": content,
            "tokens_used": (usage.input_tokens + usage.output_tokens) if usage else 0,
            "model": model,
        }
