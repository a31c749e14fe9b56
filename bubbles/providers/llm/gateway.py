"""Async LLM provider for the OpenAI-compatible AI gateway chat completion API."""

from __future__ import annotations

import json
import time
import uuid
from typing import Any, Dict, List, Optional

import httpx

from .base import (
    LLMMessage,
    LLMProvider,
    LLMProviderAPIError,
    LLMProviderAuthError,
    LLMProviderError,
    LLMProviderQuotaError,
    LLMProviderRateLimitError,
    LLMResponse,
    ToolCall,
    ToolDefinition,
)


class GatewayProvider(LLMProvider):
    """Chat completions through the AI gateway, with native tool calling.

    One client serves every model the gateway routes to; the orchestrator
    picks the model per call.
    """

    supports_tools = True

    def __init__(
        self,
        api_key: str,
        model: str = "google/gemini-2.5-flash",
        *,
        base_url: str | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        self.base_url = (base_url or "https://ai.gateway.lovable.dev/v1").rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._chat_completions_path = "/chat/completions"
        super().__init__(api_key, model, **kwargs)

    def _setup_client(self, **kwargs: Any) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

    async def _post(self, path: str, json: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.post(path, json=json)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = exc.response.text
            if status in (401, 403):
                raise LLMProviderAuthError(f"Gateway authentication failed: {message}") from exc
            if status == 429:
                raise LLMProviderRateLimitError("Gateway rate limit exceeded") from exc
            if status == 402:
                raise LLMProviderQuotaError("Gateway credits exhausted") from exc
            raise LLMProviderAPIError(f"Gateway API error ({status}): {message}") from exc
        except httpx.RequestError as exc:
            raise LLMProviderAPIError(f"Gateway request error: {exc}") from exc
        except ValueError as exc:
            raise LLMProviderAPIError(f"Gateway returned invalid JSON: {exc}") from exc

    async def generate_response(
        self,
        messages: List[LLMMessage],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        tools: Optional[List[ToolDefinition]] = None,
        model: Optional[str] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        start_time = time.time()

        payload = self._build_payload(
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            tools=tools,
            model=model,
            extra=kwargs,
        )

        data = await self._post(self._chat_completions_path, json=payload)

        choices = data.get("choices", [])
        if not choices:
            raise LLMProviderError("Gateway response missing choices")

        choice = choices[0]
        message = choice.get("message") or {}
        tool_calls = self._parse_tool_calls(message.get("tool_calls"))

        usage = data.get("usage") or {}
        return LLMResponse(
            content=self._normalize_content(message.get("content")) or None,
            tool_calls=tool_calls or None,
            tokens_used=usage.get("total_tokens"),
            model=data.get("model") or payload["model"],
            finish_reason=choice.get("finish_reason"),
            response_time_ms=self._measure_time(start_time),
        )

    async def health_check(self) -> Dict[str, Any]:
        try:
            response = await self.generate_response(
                messages=[LLMMessage(role="user", content="ping")],
                max_tokens=4,
                temperature=0.0,
            )
            return {
                "status": "healthy",
                "provider": "gateway",
                "model": self.model,
                "response_preview": (response.content or "")[:32],
            }
        except LLMProviderAuthError as exc:
            return {"status": "error", "provider": "gateway", "model": self.model, "error": str(exc)}
        except (LLMProviderRateLimitError, LLMProviderQuotaError) as exc:
            return {"status": "degraded", "provider": "gateway", "model": self.model, "error": str(exc)}
        except LLMProviderError as exc:
            return {"status": "error", "provider": "gateway", "model": self.model, "error": str(exc)}

    async def __aenter__(self) -> "GatewayProvider":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._client.aclose()

    async def close(self) -> None:
        await self._client.aclose()

    def _build_payload(
        self,
        *,
        messages: List[LLMMessage],
        max_tokens: Optional[int],
        temperature: Optional[float],
        tools: Optional[List[ToolDefinition]] = None,
        model: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": [msg.to_openai_format() for msg in messages],
        }

        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if temperature is not None:
            payload["temperature"] = temperature
        if tools:
            payload["tools"] = [tool.to_openai_format() for tool in tools]
            payload["tool_choice"] = "auto"

        if extra:
            for key, value in extra.items():
                if value is not None:
                    payload[key] = value

        return payload

    def _parse_tool_calls(self, raw_calls: Any) -> List[ToolCall]:
        calls: List[ToolCall] = []
        for raw in raw_calls or []:
            function = raw.get("function") or {}
            name = function.get("name")
            if not name:
                continue
            arguments = function.get("arguments") or {}
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments) if arguments.strip() else {}
                except json.JSONDecodeError:
                    self.logger.warning("Discarding malformed arguments for tool %s: %r", name, arguments)
                    arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}
            calls.append(ToolCall(id=raw.get("id") or f"call_{uuid.uuid4().hex[:12]}", name=name, arguments=arguments))
        return calls

    def _normalize_content(self, content: Any) -> str:
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: List[str] = []
            for item in content:
                if isinstance(item, str):
                    parts.append(item)
                elif isinstance(item, dict):
                    if "text" in item and item["text"] is not None:
                        parts.append(str(item["text"]))
                    elif "content" in item and item["content"] is not None:
                        parts.append(str(item["content"]))
            return "".join(parts)
        return str(content)
