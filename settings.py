from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    processing_endpoint: str = "http://localhost:8000/process-pdf"
    connect_timeout: float = 30.0
    read_timeout: float = 600.0
    allow_cancellation: bool = True
    busy_policy: Literal["reject", "restart"] = "reject"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="NBP_",
        env_file_encoding="utf-8",
    )

    @field_validator("processing_endpoint")
    @classmethod
    def endpoint_must_be_http(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("processing_endpoint must be an http:// or https:// URL")
        return v

    @field_validator("connect_timeout", "read_timeout")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be greater than zero")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_upper(cls, v: str) -> str:
        return v.upper()
