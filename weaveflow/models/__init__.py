"""Language model factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import WeaveflowConfig, load_config
from .base import LanguageModel
from .scripted import ScriptedLanguageModel


def get_language_model(
    backend: Optional[str] = None, config: Optional[WeaveflowConfig] = None
) -> LanguageModel:
    """Factory function to get the configured language model."""

    config = config or load_config()
    backend = (
        backend or os.getenv("WEAVEFLOW_MODEL_BACKEND") or config.model.backend
    ).lower()

    if backend == "scripted":
        return ScriptedLanguageModel(default="{}")
    elif backend == "pydantic-ai":
        from .pydantic_model import PydanticAILanguageModel

        model_conf = config.model
        return PydanticAILanguageModel(
            model_conf.name,
            temperature=model_conf.temperature,
            top_p=model_conf.top_p,
            max_tokens=model_conf.max_tokens,
        )
    else:
        raise ValueError(f"Unsupported model backend: {backend}")


__all__ = ["LanguageModel", "ScriptedLanguageModel", "get_language_model"]
