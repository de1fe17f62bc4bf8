"""Configuration management for the insight service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AzureOpenAIConfig:
    """Azure OpenAI service configuration."""

    api_key: str
    endpoint: str
    api_version: str = "2024-02-15-preview"
    deployment_name: str = "gpt-4"
    max_concurrent: int = 50


@dataclass(frozen=True)
class OpenAIConfig:
    """Plain OpenAI (or OpenAI-compatible) service configuration."""

    api_key: str
    model: str = "gpt-4o-mini"
    base_url: Optional[str] = None
    max_concurrent: int = 50


@dataclass(frozen=True)
class WarehouseConfig:
    """Connection settings shared by every data-source agent."""

    url: str
    query_timeout_seconds: int = 60


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables."""

    azure_openai: Optional[AzureOpenAIConfig] = None
    openai: Optional[OpenAIConfig] = None
    warehouse: Optional[WarehouseConfig] = None
    environment: str = "development"
    log_level: str = "INFO"
    llm_max_tokens: int = 4096
    collaboration_max_turns: int = 20

    @property
    def model_name(self) -> str:
        """Name under which the completion model is registered in the pool."""
        if self.azure_openai:
            return self.azure_openai.deployment_name
        if self.openai:
            return self.openai.model
        return "gpt-4"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        azure_key = os.getenv("AZURE_OPENAI_KEY")
        azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")

        azure_config = None
        if azure_key and azure_endpoint:
            azure_config = AzureOpenAIConfig(
                api_key=azure_key,
                endpoint=azure_endpoint,
                api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
                deployment_name=os.getenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4"),
                max_concurrent=int(os.getenv("AZURE_OPENAI_MAX_CONCURRENT", "50")),
            )

        openai_config = None
        openai_key = os.getenv("OPENAI_API_KEY")
        if openai_key:
            openai_config = OpenAIConfig(
                api_key=openai_key,
                model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
                base_url=os.getenv("OPENAI_BASE_URL") or None,
                max_concurrent=int(os.getenv("OPENAI_MAX_CONCURRENT", "50")),
            )

        warehouse_config = None
        warehouse_url = os.getenv("WAREHOUSE_URL")
        if warehouse_url:
            warehouse_config = WarehouseConfig(
                url=warehouse_url,
                query_timeout_seconds=int(os.getenv("WAREHOUSE_QUERY_TIMEOUT", "60")),
            )

        return cls(
            azure_openai=azure_config,
            openai=openai_config,
            warehouse=warehouse_config,
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            llm_max_tokens=int(os.getenv("LLM_MAX_TOKENS", "4096")),
            collaboration_max_turns=int(os.getenv("COLLABORATION_MAX_TURNS", "20")),
        )


# Global config instance
config = Config.from_env()
