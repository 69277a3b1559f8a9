"""Generation parameters for one model call.

Three layers are merged, later layers winning on every field they set:

    settings defaults  →  pipeline LLMConfig (analysis, tutor, test author)  →  per-call override

The merged config picks the model (``provider/model``), bounds the call with
``timeout`` and becomes pydantic-ai ``ModelSettings`` for the rest.
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_ai.settings import ModelSettings


class LLMConfig(BaseModel):
    """LLM generation parameters.

    All fields are optional.  ``None`` means "use the model's default".
    """

    model: str | None = Field(default=None, description="provider/model identifier")
    max_tokens: int | None = Field(default=None, description="Max tokens to generate")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    seed: int | None = Field(default=None, description="Random seed for reproducibility")
    timeout: float | None = Field(default=None, gt=0, description="Per-call timeout in seconds")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def merge(self, overrides: LLMConfig | None) -> LLMConfig:
        """Return a new LLMConfig: *self* as base, *overrides* wins on non-None fields."""
        if overrides is None:
            return self.model_copy()
        base = self.model_dump(exclude_none=True)
        base.update(overrides.model_dump(exclude_none=True))
        return LLMConfig(**base)

    def to_model_settings(self) -> ModelSettings:
        """Convert to pydantic-ai ``ModelSettings`` (model and timeout excluded)."""
        settings: ModelSettings = {}
        if self.max_tokens is not None:
            settings["max_tokens"] = self.max_tokens
        if self.temperature is not None:
            settings["temperature"] = self.temperature
        if self.top_p is not None:
            settings["top_p"] = self.top_p
        if self.seed is not None:
            settings["seed"] = self.seed
        return settings
