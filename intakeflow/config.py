from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel


class RedisConfig(BaseModel):
    """Connection settings for the Redis progress store."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class BackendConfig(BaseModel):
    """Remote intake service settings."""

    kind: Literal["inmemory", "http"] = "inmemory"
    base_url: str = "http://localhost:8000"
    timeout: float = 10.0


class StorageConfig(BaseModel):
    """Local progress store settings."""

    database_url: Optional[str] = None
    redis: RedisConfig = RedisConfig()


class CheckoutConfig(BaseModel):
    """Callback targets handed to the payment service."""

    success_url: str = (
        "http://localhost:3000/get-started/success?session_id={CHECKOUT_SESSION_ID}"
    )
    cancel_url: str = "http://localhost:3000/get-started?step=payment"


class IntakeConfig(BaseModel):
    """Top-level configuration model."""

    backend: BackendConfig = BackendConfig()
    storage: StorageConfig = StorageConfig()
    checkout: CheckoutConfig = CheckoutConfig()
    session_id: str = "default"
    consultation_url: str = "http://localhost:3000/consultation"
    download_dir: str = "."
    strict_mapping: bool = False


def load_config(path: Optional[str] = None) -> IntakeConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to INTAKEFLOW_CONFIG env
            variable or 'intakeflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("INTAKEFLOW_CONFIG", "intakeflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = IntakeConfig(**data)
    else:
        config = IntakeConfig()

    env_api_url = os.getenv("INTAKEFLOW_API_URL")
    if env_api_url:
        config.backend.base_url = env_api_url
    env_backend = os.getenv("INTAKEFLOW_BACKEND")
    if env_backend:
        config.backend.kind = env_backend.lower()
    env_db_url = os.getenv("INTAKEFLOW_DATABASE_URL")
    if env_db_url:
        config.storage.database_url = env_db_url
    env_session = os.getenv("INTAKEFLOW_SESSION")
    if env_session:
        config.session_id = env_session
    return config
