"""
OpenRouter API Client

Async client for OpenRouter chat completions with vision content,
retries for rate limiting and transient failures, and token cost
estimation.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx
from pydantic import BaseModel

from src.homematch.utils.exceptions import GenerationError
from src.homematch.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_VIBES_MODEL = "qwen/qwen3-vl-8b-instruct"
FALLBACK_PRICING_MODEL = "openai/gpt-4o-mini"

# USD per 1M tokens
MODEL_PRICING: Dict[str, Dict[str, float]] = {
    "qwen/qwen3-vl-8b-instruct": {"input": 0.064, "output": 0.4},
    "qwen/qwen2.5-vl-32b-instruct": {"input": 0.2, "output": 0.6},
    "meta-llama/llama-3.2-11b-vision-instruct": {"input": 0.05, "output": 0.05},
    "google/gemma-3-27b-it:free": {"input": 0.0, "output": 0.0},
    "openai/gpt-4o-mini": {"input": 0.15, "output": 0.6},
    "openai/gpt-4o": {"input": 2.5, "output": 10.0},
    "anthropic/claude-3-haiku": {"input": 0.25, "output": 1.25},
    "anthropic/claude-3-sonnet": {"input": 3.0, "output": 15.0},
}

DEFAULT_RETRY_AFTER_SECONDS = 5


class UsageInfo(BaseModel):
    """Token usage and estimated cost of one completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0


def calculate_usage(usage: Optional[Dict[str, Any]], model: str) -> UsageInfo:
    """
    Estimate cost from token counts.

    Models missing from the price table are priced as gpt-4o-mini.
    """
    usage = usage or {}
    pricing = MODEL_PRICING.get(model) or MODEL_PRICING[FALLBACK_PRICING_MODEL]

    prompt_tokens = int(usage.get("prompt_tokens") or 0)
    completion_tokens = int(usage.get("completion_tokens") or 0)
    total_tokens = int(usage.get("total_tokens") or prompt_tokens + completion_tokens)

    cost = (
        prompt_tokens / 1_000_000 * pricing["input"]
        + completion_tokens / 1_000_000 * pricing["output"]
    )
    return UsageInfo(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        estimated_cost_usd=cost,
    )


def _retry_after_seconds(response: httpx.Response) -> float:
    try:
        return float(response.headers.get("retry-after", DEFAULT_RETRY_AFTER_SECONDS))
    except ValueError:
        return DEFAULT_RETRY_AFTER_SECONDS


class OpenRouterClient:
    """Client for the OpenRouter chat completions API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        default_model: str = DEFAULT_VIBES_MODEL,
        timeout: float = 120.0,
        max_retries: int = 3,
        referer: str = "https://homematch.pro",
        title: str = "HomeMatch Property Vibes",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key
            base_url: API base URL
            default_model: Model used when a call does not name one
            timeout: Request timeout in seconds
            max_retries: Total attempts per call
            referer: HTTP-Referer header sent for attribution
            title: X-Title header sent for attribution
            transport: Optional httpx transport (tests)
            sleep: Coroutine used to wait between retries
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model or DEFAULT_VIBES_MODEL
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.referer = referer
        self.title = title
        self.transport = transport
        self.sleep = sleep

        logger.debug("openrouter_client_initialized", model=self.default_model)

    @staticmethod
    def create_vision_message(
        prompt: str,
        image_urls: List[str],
        detail: str = "low",
    ) -> Dict[str, Any]:
        """Build a user message carrying the prompt text followed by images."""
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for url in image_urls:
            content.append({
                "type": "image_url",
                "image_url": {"url": url, "detail": detail},
            })
        return {"role": "user", "content": content}

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        response_format: Optional[Dict[str, str]] = None,
    ) -> Tuple[Dict[str, Any], UsageInfo]:
        """
        Send a chat completion request.

        Returns:
            Tuple of (response JSON, usage info)

        Raises:
            GenerationError: On HTTP errors after retries or timeouts
        """
        model = model or self.default_model
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            payload["response_format"] = response_format

        response = await self._post("/chat/completions", payload)
        usage = calculate_usage(response.get("usage"), model)

        logger.debug(
            "openrouter_completion",
            model=model,
            total_tokens=usage.total_tokens,
            cost_usd=round(usage.estimated_cost_usd, 6)
        )
        return response, usage

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.referer,
            "X-Title": self.title,
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            attempt = 1
            while True:
                try:
                    response = await client.post(url, headers=headers, json=payload)
                except httpx.TimeoutException as e:
                    raise GenerationError("Request timed out", status=408, original_error=e) from e
                except httpx.TransportError as e:
                    if attempt < self.max_retries:
                        delay = 2 ** attempt
                        logger.warning(
                            "openrouter_network_error_retry",
                            attempt=attempt,
                            max_retries=self.max_retries,
                            delay_seconds=delay,
                            error=str(e)
                        )
                        await self.sleep(delay)
                        attempt += 1
                        continue
                    raise GenerationError(f"Request failed: {e}", original_error=e) from e

                if response.is_success:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise GenerationError(
                            "Invalid JSON from OpenRouter", status=response.status_code, original_error=e
                        ) from e

                status = response.status_code

                if status == 429 and attempt < self.max_retries:
                    delay = _retry_after_seconds(response)
                    logger.warning(
                        "openrouter_rate_limited",
                        attempt=attempt,
                        max_retries=self.max_retries,
                        delay_seconds=delay
                    )
                    await self.sleep(delay)
                    attempt += 1
                    continue

                if status >= 500 and attempt < self.max_retries:
                    delay = 2 ** attempt
                    logger.warning(
                        "openrouter_server_error_retry",
                        status=status,
                        attempt=attempt,
                        max_retries=self.max_retries,
                        delay_seconds=delay
                    )
                    await self.sleep(delay)
                    attempt += 1
                    continue

                raise GenerationError(
                    f"OpenRouter API error: {status} - {response.text[:500]}",
                    status=status,
                )
