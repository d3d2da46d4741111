from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .constants import DEFAULT_EXECUTION_RETENTION_SECONDS, DEFAULT_MODEL_NAME


class ModelConfig(BaseModel):
    """Configuration for the language model backend."""

    backend: Literal["pydantic-ai", "scripted"] = "pydantic-ai"
    name: str = DEFAULT_MODEL_NAME
    temperature: float = 0.2
    top_p: float = 0.95
    max_tokens: int = 8192


class ExecutionConfig(BaseModel):
    """Settings for the in-memory execution registry."""

    retention_seconds: float = DEFAULT_EXECUTION_RETENTION_SECONDS


class WeaveflowConfig(BaseModel):
    """Top-level configuration model."""

    model: ModelConfig = ModelConfig()
    execution: ExecutionConfig = ExecutionConfig()
    database_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> WeaveflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to WEAVEFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("WEAVEFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = WeaveflowConfig(**data)
    else:
        config = WeaveflowConfig()

    env_model = os.getenv("WEAVEFLOW_MODEL")
    if env_model:
        config.model.name = env_model

    env_db_url = os.getenv("WEAVEFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
