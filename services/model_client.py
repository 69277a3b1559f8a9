"""Model client: one structured LLM call, bounded and error-mapped.

Every generative step in the service goes through :class:`ModelClient`, so
the orchestrator and the view generators never touch a provider SDK and tests
can inject a fake.  The production client runs a throwaway pydantic-ai
``Agent`` with ``output_type`` set to the requested pydantic model.

Failure mapping:

- output does not validate against the schema → :class:`SchemaValidationError`
- HTTP error, rate limit, timeout, transport failure → :class:`ModelInvocationError`

A call is a single attempt: output retries are disabled so the caller sees
the first failure.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError
from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError, ModelHTTPError, UnexpectedModelBehavior

from agents.provider import create_model
from config.llm_config import LLMConfig
from config.settings import get_settings
from errors.exceptions import ContentPipelineError, ModelInvocationError, SchemaValidationError
from services.concurrency import rate_limited_llm_call

logger = logging.getLogger(__name__)

OutputT = TypeVar("OutputT", bound=BaseModel)


class ModelClient(ABC):
    """Issue one prompt and get back a validated instance of *output_type*."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        output_type: type[OutputT],
        *,
        system_prompt: str = "",
        config: LLMConfig | None = None,
    ) -> OutputT:
        """Run the prompt.

        Raises:
            SchemaValidationError: The answer does not fit *output_type*.
            ModelInvocationError: The provider could not be reached or refused.
        """


class PydanticAIModelClient(ModelClient):
    """Production client backed by pydantic-ai.

    Args:
        model: A pydantic-ai model instance or a ``provider/model`` name.
            ``None`` resolves the model per call from the merged
            :class:`LLMConfig` (falling back to ``settings.default_model``).
        config: Client-level generation defaults, layered over the .env
            defaults and under per-call overrides.
    """

    def __init__(self, model: Any = None, config: LLMConfig | None = None) -> None:
        self._model = model
        self._config = config

    def _resolve_model(self, config: LLMConfig) -> Any:
        if self._model is None or isinstance(self._model, str):
            return create_model(self._model or config.model)
        return self._model

    async def generate(
        self,
        prompt: str,
        output_type: type[OutputT],
        *,
        system_prompt: str = "",
        config: LLMConfig | None = None,
    ) -> OutputT:
        effective = get_settings().get_default_llm_config().merge(self._config).merge(config)
        output_name = output_type.__name__

        agent = Agent(
            model=self._resolve_model(effective),
            output_type=output_type,
            system_prompt=system_prompt,
            retries=0,
            output_retries=0,
            defer_model_check=True,
        )

        logger.debug("Model call for %s (%d prompt chars)", output_name, len(prompt))
        try:
            result = await asyncio.wait_for(
                rate_limited_llm_call(
                    agent.run, prompt, model_settings=effective.to_model_settings(),
                ),
                timeout=effective.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ModelInvocationError(
                f"model call for {output_name} timed out after {effective.timeout}s"
            ) from exc
        except ModelHTTPError as exc:
            logger.warning("Model HTTP error %s for %s", exc.status_code, output_name)
            raise ModelInvocationError(str(exc), status_code=exc.status_code) from exc
        except UnexpectedModelBehavior as exc:
            raise SchemaValidationError(output_name, str(exc)) from exc
        except ValidationError as exc:
            raise SchemaValidationError(output_name, str(exc)) from exc
        except (AgentRunError, httpx.HTTPError) as exc:
            raise ModelInvocationError(f"{type(exc).__name__}: {exc}") from exc
        except ContentPipelineError:
            raise
        except Exception as exc:
            logger.exception("Unexpected provider failure for %s", output_name)
            raise ModelInvocationError(f"{type(exc).__name__}: {exc}") from exc

        return result.output
