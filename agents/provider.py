"""Model provider: builds PydanticAI model instances from ``provider/model`` names.

DashScope is reached through its OpenAI-compatible endpoint. Structured
output is delivered as a tool call, so responses go through a small transport
patch that repairs tool calls some DashScope models emit without an id.
"""

from __future__ import annotations

import json
import logging
import uuid

import httpx
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.alibaba import AlibabaProvider
from pydantic_ai.providers.openai import OpenAIProvider

from config.settings import get_settings

logger = logging.getLogger(__name__)

# Provider prefix → (base_url, settings_key_attr)
_PROVIDER_MAP: dict[str, tuple[str, str]] = {
    "dashscope": ("https://dashscope.aliyuncs.com/compatible-mode/v1", "dashscope_api_key"),
    "zai": ("https://open.bigmodel.cn/api/paas/v4/", "zai_api_key"),
}


class _PatchDashScopeTransport(httpx.AsyncBaseTransport):
    """Fill in null ``tool_calls[].id`` values before the OpenAI client validates them."""

    def __init__(self, wrapped: httpx.AsyncBaseTransport):
        self._wrapped = wrapped

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        response = await self._wrapped.handle_async_request(request)
        await response.aread()
        if b'"tool_calls"' not in response.content:
            return response
        try:
            data = json.loads(response.content)
        except json.JSONDecodeError:
            return response
        if not _fill_tool_call_ids(data):
            return response

        body = json.dumps(data).encode("utf-8")
        headers = {k: v for k, v in response.headers.items() if k.lower() != "content-encoding"}
        headers["content-length"] = str(len(body))
        return httpx.Response(
            status_code=response.status_code,
            headers=headers,
            content=body,
            request=request,
        )

    async def aclose(self) -> None:
        await self._wrapped.aclose()


def _fill_tool_call_ids(data: dict) -> bool:
    """Assign synthetic ids to tool calls that lack one. Returns True if anything changed."""
    patched = False
    for choice in data.get("choices") or []:
        message = choice.get("message") or {}
        for call in message.get("tool_calls") or []:
            if call.get("id") is None:
                call["id"] = f"call_{uuid.uuid4().hex[:24]}"
                patched = True
    return patched


def create_model(model_name: str | None = None):
    """Build a PydanticAI model instance.

    Parses the ``"provider/model"`` format (e.g. ``"dashscope/qwen-max"``):

    - ``anthropic/*`` → native :class:`AnthropicModel`
    - ``dashscope/*`` → :class:`OpenAIChatModel` via :class:`AlibabaProvider`
    - ``zai/*`` → :class:`OpenAIChatModel` via the OpenAI-compatible endpoint
    - ``openai/*`` or bare name → :class:`OpenAIChatModel` with the OpenAI API

    Args:
        model_name: Model identifier. Defaults to ``settings.default_model``.
    """
    settings = get_settings()
    name = model_name or settings.default_model

    if "/" in name:
        prefix, model_id = name.split("/", 1)

        if prefix == "anthropic":
            from pydantic_ai.models.anthropic import AnthropicModel
            from pydantic_ai.providers.anthropic import AnthropicProvider

            provider = AnthropicProvider(api_key=settings.anthropic_api_key)
            return AnthropicModel(model_id, provider=provider)

        if prefix == "dashscope":
            base_url, key_attr = _PROVIDER_MAP[prefix]
            http_client = httpx.AsyncClient(
                transport=_PatchDashScopeTransport(httpx.AsyncHTTPTransport())
            )
            provider = AlibabaProvider(
                api_key=getattr(settings, key_attr, ""),
                base_url=base_url,
                http_client=http_client,
            )
            return OpenAIChatModel(model_id, provider=provider)

        if prefix in _PROVIDER_MAP:
            base_url, key_attr = _PROVIDER_MAP[prefix]
            provider = OpenAIProvider(api_key=getattr(settings, key_attr, ""), base_url=base_url)
            return OpenAIChatModel(model_id, provider=provider)

    model_id = name.split("/", 1)[1] if "/" in name else name
    logger.debug("Using OpenAI provider for model %s", model_id)
    provider = OpenAIProvider(api_key=settings.openai_api_key)
    return OpenAIChatModel(model_id, provider=provider)
