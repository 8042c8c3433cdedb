"""
Process-wide provider state with an explicit lifecycle.

    runtime = ProviderRuntime(store)
    await runtime.initialize()            # load persisted config, build provider
    snap = runtime.snapshot()             # (config, provider) for one dispatch
    await runtime.update_config({...})    # validate, persist, rebuild

A dispatch holds on to its snapshot for its whole lifetime, so replacing the
configuration mid-batch never changes the provider or TTL a running dispatch
uses.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from highlightq.classification.models import ConfigurationError, ProviderConfig
from highlightq.classification.providers import (
    LocalSentimentProvider,
    RemoteSentimentProvider,
    SentimentProvider,
    build_provider,
)
from highlightq.config import CONFIG_STORAGE_KEY
from highlightq.observability.logging import get_logger
from highlightq.observability.telemetry import counter, log_event
from highlightq.storage.kv import KeyValueStore, get_value, set_value

logger = get_logger(__name__)


@dataclass(frozen=True)
class RuntimeSnapshot:
    config: ProviderConfig
    provider: SentimentProvider


class ProviderRuntime:
    def __init__(
        self,
        store: KeyValueStore,
        config: ProviderConfig | None = None,
        provider_factory: Callable[[ProviderConfig], SentimentProvider] = build_provider,
    ):
        self._store = store
        self._factory = provider_factory
        self._config = config or ProviderConfig()
        self._provider: SentimentProvider = self._factory(self._config)
        self._fallback = LocalSentimentProvider()

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def provider(self) -> SentimentProvider:
        return self._provider

    async def initialize(self) -> bool:
        """
        Load the persisted configuration (if any) and initialize its provider.

        A persisted config that no longer validates is logged and ignored;
        the current in-memory config stays active.
        """
        stored = get_value(self._store, CONFIG_STORAGE_KEY)
        if isinstance(stored, dict):
            try:
                self._config = self._config.merged(stored)
            except ConfigurationError as exc:
                logger.warning("Ignoring invalid persisted provider config: %s", exc)
                counter("runtime.config.invalid_persisted")
        self._provider = self._factory(self._config)
        await self._fallback.initialize()
        return await self._provider.initialize()

    async def update_config(self, changes: dict[str, Any]) -> ProviderConfig:
        """
        Apply `changes`, persist, and swap in a freshly initialized provider.

        In-flight dispatches keep the snapshot they started with; only later
        snapshots see the new provider. A fresh RemoteSentimentProvider is
        also how a failed remote probe gets retried.

        Raises:
            ConfigurationError: merged config is invalid (e.g. remote mode
                without endpoint/credential); the previous config stays active
        """
        try:
            new_config = self._config.merged(changes)
        except ConfigurationError:
            counter("runtime.config.rejected")
            log_event("runtime.config.rejected", keys=sorted(changes))
            raise

        set_value(self._store, CONFIG_STORAGE_KEY, new_config.to_storage())
        provider = self._factory(new_config)
        await provider.initialize()

        self._config = new_config
        self._provider = provider
        counter("runtime.config.updated")
        log_event("runtime.config.updated", mode=new_config.mode, cache=new_config.cache_enabled)
        return new_config

    def snapshot(self) -> RuntimeSnapshot:
        """
        Config and provider for one dispatch.

        A remote provider whose initialization was attempted and failed is
        replaced by the local scorer for this snapshot.
        """
        provider = self._provider
        if (
            isinstance(provider, RemoteSentimentProvider)
            and provider.initialization_attempted
            and not provider.initialized
        ):
            counter("runtime.remote_fallback")
            provider = self._fallback
        return RuntimeSnapshot(config=self._config, provider=provider)
