"""
In-memory collaborators for the backfill pipeline tests.
"""
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import AsyncMock

import pytest

from src.homematch.pipelines.enrichment import VibesEnricher
from src.homematch.utils.exceptions import GenerationError
from src.homematch.vibes.hashing import compute_source_hash


class FakeEnricher(VibesEnricher):
    """
    Enricher over a list of entities with a dict of stored hashes.

    A successful enrich stores the entity's hash, like the real upsert.
    """

    entity = "property"

    def __init__(
        self,
        entities: List[Any],
        stored_hashes: Optional[Dict[str, str]] = None,
        failing_ids: Sequence[str] = (),
        cost: float = 0.01,
    ):
        self.entities = entities
        self.stored_hashes = dict(stored_hashes or {})
        self.failing_ids = set(failing_ids)
        self.cost = cost
        self.enriched: List[str] = []
        self.page_calls: List[tuple] = []
        self.id_calls: List[List[str]] = []
        self.page_error: Optional[Exception] = None
        self.prepare_error_ids: set = set()
        self.on_enrich = None

    async def fetch_by_ids(self, ids):
        self.id_calls.append(list(ids))
        by_id = {e.id: e for e in self.entities}
        return [by_id[i] for i in ids if i in by_id]

    async def fetch_page(self, offset, limit):
        self.page_calls.append((offset, limit))
        if self.page_error is not None:
            raise self.page_error
        return self.entities[offset:offset + limit]

    async def fetch_existing_hashes(self, ids):
        return {i: self.stored_hashes[i] for i in ids if i in self.stored_hashes}

    def source_hash(self, entity):
        return compute_source_hash({"content": entity.content})

    async def prepare(self, entity):
        if entity.id in self.prepare_error_ids:
            raise RuntimeError("prepare failed")

    async def enrich(self, entity, source_hash):
        if self.on_enrich is not None:
            self.on_enrich(entity)
        if entity.id in self.failing_ids:
            raise GenerationError("OpenRouter API error: 500", status=500)
        self.enriched.append(entity.id)
        self.stored_hashes[entity.id] = source_hash
        return self.cost

    def failure_details(self, entity):
        return {"content": entity.content}


def make_entities(count: int, prefix: str = "p") -> List[SimpleNamespace]:
    return [SimpleNamespace(id=f"{prefix}{i}", content=f"listing {i}") for i in range(count)]


def current_hash(entity) -> str:
    return compute_source_hash({"content": entity.content})


@pytest.fixture
def entities_factory():
    return make_entities


@pytest.fixture
def enricher_factory():
    return FakeEnricher


@pytest.fixture
def hash_of():
    return current_hash


@pytest.fixture
def fake_sleep():
    return AsyncMock()
