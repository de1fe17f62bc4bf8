"""LLM client pool and the text-completion service agents talk to."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Protocol, Union

from openai import AsyncAzureOpenAI, AsyncOpenAI

from beacon.config import AzureOpenAIConfig, OpenAIConfig

logger = logging.getLogger(__name__)

ClientConfig = Union[AzureOpenAIConfig, OpenAIConfig]


class CompletionService(Protocol):
    """Prompt in, text out. Nothing provider-specific leaks past this."""

    async def complete(
        self,
        messages: List[Dict[str, str]],
        system_prompt: str,
        max_tokens: int = 4096,
    ) -> str: ...


class LLMPool:
    """Manages shared LLM clients with concurrency limiting."""

    def __init__(self) -> None:
        self._configs: Dict[str, ClientConfig] = {}
        self._clients: Dict[str, Any] = {}
        self._semaphores: Dict[str, asyncio.Semaphore] = {}

    def register_azure_openai(self, name: str, config: AzureOpenAIConfig) -> None:
        """Register an Azure OpenAI model configuration."""
        self._register(name, config)

    def register_openai(self, name: str, config: OpenAIConfig) -> None:
        """Register an OpenAI (or OpenAI-compatible) model configuration."""
        self._register(name, config)

    def _register(self, name: str, config: ClientConfig) -> None:
        self._configs[name] = config
        self._clients.pop(name, None)
        self._semaphores[name] = asyncio.Semaphore(config.max_concurrent)
        logger.info("Registered model '%s' in LLM pool", name)

    @asynccontextmanager
    async def acquire(self, model_name: str) -> AsyncIterator[Any]:
        """Acquire access to a model client with concurrency control."""
        if model_name not in self._configs:
            raise KeyError(f"Model '{model_name}' not registered in LLM pool")

        semaphore = self._semaphores[model_name]
        await semaphore.acquire()

        try:
            # Lazy initialization on first use
            if model_name not in self._clients:
                self._clients[model_name] = self._create_client(self._configs[model_name])
            yield self._clients[model_name]
        finally:
            semaphore.release()

    async def close(self) -> None:
        """Close every client created so far."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.close()

    @staticmethod
    def _create_client(config: ClientConfig) -> Any:
        if isinstance(config, AzureOpenAIConfig):
            return AsyncAzureOpenAI(
                api_key=config.api_key,
                api_version=config.api_version,
                azure_endpoint=config.endpoint,
            )
        kwargs: Dict[str, Any] = {"api_key": config.api_key}
        if config.base_url:
            kwargs["base_url"] = config.base_url
        return AsyncOpenAI(**kwargs)


class OpenAICompletionService:
    """``CompletionService`` backed by a model registered in an ``LLMPool``."""

    def __init__(self, llm_pool: LLMPool, model_name: str, temperature: float = 0.3) -> None:
        self._llm_pool = llm_pool
        self.model_name = model_name
        self.temperature = temperature

    async def complete(
        self,
        messages: List[Dict[str, str]],
        system_prompt: str,
        max_tokens: int = 4096,
    ) -> str:
        # OpenAI: system prompt goes as the first message
        all_messages: List[Dict[str, str]] = [{"role": "system", "content": system_prompt}]
        all_messages.extend(
            {
                "role": "user" if msg.get("role") == "user" else "assistant",
                "content": msg.get("content", ""),
            }
            for msg in messages
        )

        async with self._llm_pool.acquire(self.model_name) as client:
            response = await client.chat.completions.create(
                model=self.model_name,
                messages=all_messages,
                max_tokens=max_tokens,
                temperature=self.temperature,
            )

        content = response.choices[0].message.content or ""
        logger.debug("Completion from %s: %d chars", self.model_name, len(content))
        return content
