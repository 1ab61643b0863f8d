"""Application composition root.

This module wires together configuration, the row store, the text-generation client and the filter
pipeline for the bot runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.config.settings import Settings
from src.llm.client import OllamaClient, llm_config_from_settings
from src.pipeline.cache import FilterCache
from src.pipeline.orchestrator import FilterPipeline, ResolvedFilter
from src.query.dsl import Entity
from src.search.session import SearchSession
from src.store.dataset import load_dataset
from src.store.rows import RowStore


@dataclass
class App:
    """Shared application dependencies for handlers.

    The store and the cache are shared by every chat; each chat gets its own `SearchSession` so that
    sequence numbers and in-flight searches do not interfere across chats.
    """

    settings: Settings
    store: RowStore
    pipeline: FilterPipeline
    cache: FilterCache[ResolvedFilter]
    llm: OllamaClient | None = None
    sessions: dict[int, SearchSession] = field(default_factory=dict)
    entities: dict[int, Entity] = field(default_factory=dict)

    def session_for(self, chat_id: int) -> SearchSession:
        session = self.sessions.get(chat_id)
        if session is None:
            session = SearchSession(
                self.store,
                self.pipeline,
                self.cache,
                max_samples=self.settings.schema_max_samples,
            )
            self.sessions[chat_id] = session
        return session

    def entity_for(self, chat_id: int) -> Entity:
        return self.entities.get(chat_id, Entity.tasks)


def create_app(settings: Settings) -> App:
    """Create the application container (loads the dataset if one is configured)."""

    store = load_dataset(settings.dataset_path) if settings.dataset_path else RowStore()
    llm = OllamaClient(llm_config_from_settings(settings)) if settings.llm_enabled else None
    pipeline = FilterPipeline(llm, timeout_s=settings.llm_timeout_s)
    cache: FilterCache[ResolvedFilter] = FilterCache(max_entries=settings.cache_max_entries)
    return App(settings=settings, store=store, pipeline=pipeline, cache=cache, llm=llm)
