# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides a scripted generation adapter, an in-memory item repository that
enforces the status state machine, and sample wine items.
No external dependencies: every generation call is answered locally.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable

import pytest
from pydantic import BaseModel

from vinenrich.cache.memory_cache import LRUCache
from vinenrich.cache.tiered_cache import TieredCache
from vinenrich.core.errors import IllegalTransitionError, ItemNotFoundError
from vinenrich.core.models import ENRICHMENT_FIELDS, EnrichmentResult, WorkItem
from vinenrich.core.status import EnrichmentStatus, is_legal_transition
from vinenrich.llm.base_client import BaseLLMClient
from vinenrich.llm.generation_client import GenerationClient
from vinenrich.llm.models import LLMResponse, Message
from vinenrich.llm.retry import RetryPolicy
from vinenrich.pipeline.confidence_gate import ConfidenceGate
from vinenrich.pipeline.enrichment_pipeline import EnrichmentPipeline
from vinenrich.pipeline.fallback import FallbackGenerator
from vinenrich.pipeline.processor import ItemProcessor
from vinenrich.storage.base_repository import BaseItemRepository

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# === Scripted adapter ===


class ScriptedLLMClient(BaseLLMClient):
    """Adapter answering by requested schema name ("text" when unstructured).

    A reply may be a dict (sent as JSON), a raw string, an exception
    instance (raised), a callable taking the model name, or a list of any
    of these consumed in order (the last one repeats).
    """

    def __init__(
        self, responses: dict[str, Any] | None = None, model: str = "fake-model"
    ) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[dict[str, Any]] = []
        # schema name -> event the call waits on before answering
        self.blocks: dict[str, asyncio.Event] = {}
        self._model = model

    async def complete(
        self,
        messages: list[Message],
        model: str | None = None,
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        model = model or self._model
        schema = response_format.__name__ if response_format is not None else "text"
        self.calls.append({
            "schema": schema,
            "model": model,
            "prompt": messages[-1].content,
            "system": system,
            "temperature": temperature,
        })
        if schema in self.blocks:
            await self.blocks[schema].wait()

        reply = self.responses.get(schema, "")
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(model)
            if isinstance(reply, BaseException):
                raise reply
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return LLMResponse(content=content, model=model, provider="fake")

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def default_model(self) -> str:
        return self._model

    @property
    def schemas(self) -> list[str]:
        return [c["schema"] for c in self.calls]


# === In-memory repository ===


class InMemoryItemRepository(BaseItemRepository):
    """Dict-backed repository that records every status transition."""

    def __init__(self, items: list[WorkItem] | None = None) -> None:
        self.items: dict[int, WorkItem] = {i.id: i.model_copy() for i in items or []}
        self.transitions: list[tuple[int, str, str]] = []
        self.max_processing = 0

    @property
    def processing_now(self) -> int:
        return sum(1 for i in self.items.values() if i.status is EnrichmentStatus.PROCESSING)

    async def get_pending(self, limit: int) -> list[WorkItem]:
        pending = [
            i.model_copy() for _, i in sorted(self.items.items())
            if i.status is EnrichmentStatus.PENDING
        ]
        return pending[: max(0, limit)]

    async def claim(self, item_id: int) -> bool:
        item = self.items.get(item_id)
        if item is None or item.status is not EnrichmentStatus.PENDING:
            return False
        self._move(
            item_id, EnrichmentStatus.PROCESSING,
            started_at=FIXED_NOW, completed_at=None,
            attempt_count=item.attempt_count + 1,
        )
        self.max_processing = max(self.max_processing, self.processing_now)
        return True

    async def update_status(self, item_id, status, started_at=None, completed_at=None):
        if status is EnrichmentStatus.PROCESSING:
            raise IllegalTransitionError(item_id, self._current(item_id), status.value)
        self._move(item_id, status, completed_at=completed_at or FIXED_NOW)

    async def commit_result(
        self, item_id: int, result: EnrichmentResult, status: EnrichmentStatus
    ) -> None:
        updates: dict[str, Any] = {n: getattr(result, n) for n in ENRICHMENT_FIELDS}
        updates.update(
            wine_rating=result.wine_rating, source=result.source, completed_at=FIXED_NOW
        )
        self._move(item_id, status, **updates)

    async def get(self, item_id: int) -> WorkItem:
        if item_id not in self.items:
            raise ItemNotFoundError(f"Work item {item_id} not found")
        return self.items[item_id].model_copy()

    async def reset_failed(self) -> int:
        failed = [i for i, w in self.items.items() if w.status is EnrichmentStatus.FAILED]
        for item_id in failed:
            self._move(item_id, EnrichmentStatus.PENDING, attempt_count=0)
        return len(failed)

    async def count_by_status(self) -> dict[str, int]:
        counts = {s.value: 0 for s in EnrichmentStatus}
        for item in self.items.values():
            counts[item.status.value] += 1
        return counts

    def statuses_of(self, item_id: int) -> list[str]:
        return [to for i, _, to in self.transitions if i == item_id]

    def _current(self, item_id: int) -> str | None:
        item = self.items.get(item_id)
        return item.status.value if item else None

    def _move(self, item_id: int, status: EnrichmentStatus, **updates: Any) -> None:
        if item_id not in self.items:
            raise ItemNotFoundError(f"Work item {item_id} not found")
        current = self.items[item_id].status
        if not is_legal_transition(current, status):
            raise IllegalTransitionError(item_id, current.value, status.value)
        self.transitions.append((item_id, current.value, status.value))
        self.items[item_id] = self.items[item_id].model_copy(
            update={"status": status, **updates}
        )


# === Sample data ===

GUEST_EXPERIENCE = (
    "Deep garnet in the glass with a narrow purple rim. The nose opens slowly, "
    "giving cassis, violet and graphite before cedar and fine tobacco emerge. "
    "On the palate the entry is silky and precise, the mid-palate layered and "
    "long, and the finish lingers for well over a minute with fine-grained tannin."
)
AROMA_NOTES = (
    "Cassis, blackberry and violet lead the nose, the classic signature of "
    "Cabernet Sauvignon grown on deep Margaux gravel. Ripe Merlot adds plum and "
    "a touch of mocha, while new oak contributes cedar, vanilla and tobacco leaf."
)
FLAVOR_NOTES = (
    "Blackcurrant and black cherry dominate the attack, framed by graphite and "
    "crushed stone. Merlot lends a plush plum core through the mid-palate, and "
    "Cabernet Sauvignon drives a savoury finish of cedar, cocoa and sweet spice."
)
BODY_DESCRIPTION = (
    "Full-bodied yet weightless, with bright acidity carrying the fruit. The "
    "tannins are abundant but polished, alcohol is seamlessly integrated and the "
    "texture is silky from entry to finish, giving the wine remarkable poise."
)


def good_payloads() -> dict[str, Any]:
    """A full set of valid replies for a Bordeaux item."""
    return {
        "ConfidenceAssessment": {
            "knowledge_exists": True,
            "confidence": "high",
            "hallucination_risk": False,
            "recommendation": "use_generated",
            "concerns": None,
        },
        "InitialResearchOutput": {
            "wine_rating": "96 points - Wine Advocate praised its purity",
            "producer_reputation": "First Growth since the 1855 classification.",
            "vintage_conditions": "A warm, dry summer with a cool September.",
            "basic_profile": "Perfumed, structured left-bank blend.",
        },
        "ClassificationOutput": {
            "appellation_classification": "Margaux AOC, Premier Grand Cru Classé",
            "producer_standing": "One of the five First Growths",
            "site_classification": "Classified 1855",
            "production_scope": "About 130,000 bottles of the grand vin",
        },
        "DeepMiningOutput": {
            "terroir_characteristics": "Deep Günzian gravel over clay-limestone",
            "winemaking_techniques": "Gravity-fed vats and 100% new oak",
            "critical_acclaim": "Multiple 100-point scores",
            "scarcity_factors": "Strict allocation through the Place de Bordeaux",
        },
        "NarrativeOutput": {
            "what_makes_special": "A First Growth since 1855 grown on deep gravel.",
        },
        "DetailedProfileOutput": {
            "general_guest_experience": GUEST_EXPERIENCE,
            "aroma_notes": AROMA_NOTES,
            "flavor_notes": FLAVOR_NOTES,
            "body_description": BODY_DESCRIPTION,
        },
        "ApplicationOutput": {
            "food_pairing": "Roast lamb with rosemary jus.",
            "serving_temp": "16-18°C, decant one hour.",
            "aging_potential": "Drink 2030-2060.",
        },
        "TheoreticalOutput": {
            "general_guest_experience": "Theoretical guest experience.",
            "flavor_notes": "Theoretical flavors.",
            "aroma_notes": "Theoretical aromas.",
            "what_makes_special": "Little is documented.",
            "body_description": "Medium body.",
            "food_pairing": "Grilled meats.",
            "serving_temp": "16°C.",
            "aging_potential": "Drink now.",
        },
    }


LOW_CONFIDENCE = {
    "knowledge_exists": False,
    "confidence": "low",
    "hallucination_risk": True,
    "recommendation": "seek_other_sources",
    "concerns": "Unknown producer",
}


def make_item(item_id: int = 1, **overrides: Any) -> WorkItem:
    fields: dict[str, Any] = {
        "id": item_id,
        "wine_name": "Château Margaux",
        "producer": "Château Margaux",
        "vintage": "2015",
        "region": "Margaux",
        "country": "France",
        "varietals": "Cabernet Sauvignon, Merlot",
        "wine_type": "Red",
    }
    fields.update(overrides)
    return WorkItem(**fields)


# === FIXTURES ===


@pytest.fixture
def bordeaux_item() -> WorkItem:
    return make_item()


@pytest.fixture
def champagne_item() -> WorkItem:
    return make_item(
        2,
        wine_name="Krug Grande Cuvée",
        producer="Krug",
        vintage=None,
        region="Champagne",
        varietals=None,
        wine_type="Sparkling",
    )


@pytest.fixture
def payloads() -> dict[str, Any]:
    return good_payloads()


@pytest.fixture
def adapter(payloads: dict[str, Any]) -> ScriptedLLMClient:
    return ScriptedLLMClient(payloads)


@pytest.fixture
def memory_cache() -> TieredCache:
    return TieredCache(memory=LRUCache(capacity=100))


@pytest.fixture
def make_client() -> Callable[..., GenerationClient]:
    """Factory for a generation client with instant, bounded retries."""

    def _make(
        adapter: BaseLLMClient,
        cache: TieredCache | None = None,
        models: list[str] | None = None,
        max_retries: int = 0,
        timeout_s: float = 5.0,
    ) -> GenerationClient:
        return GenerationClient(
            adapter,
            models=models,
            cache=cache,
            retry_policy=RetryPolicy(max_retries=max_retries, base_delay_s=0, jitter=False),
            timeout_s=timeout_s,
        )

    return _make


@pytest.fixture
def make_processor(make_client) -> Callable[..., ItemProcessor]:
    """Factory wiring gate, pipeline and fallback around one adapter."""

    def _make(
        repository: BaseItemRepository,
        adapter: BaseLLMClient,
        max_item_attempts: int = 5,
        cache: TieredCache | None = None,
    ) -> ItemProcessor:
        client = make_client(adapter, cache=cache)
        return ItemProcessor(
            repository=repository,
            gate=ConfidenceGate(client),
            pipeline=EnrichmentPipeline(client),
            fallback=FallbackGenerator(client, clock=lambda: FIXED_NOW),
            max_item_attempts=max_item_attempts,
        )

    return _make


@pytest.fixture
def item_factory() -> Callable[..., WorkItem]:
    return make_item


@pytest.fixture
def low_confidence() -> dict[str, Any]:
    return dict(LOW_CONFIDENCE)


@pytest.fixture
def scripted() -> type[ScriptedLLMClient]:
    """The scripted adapter class, for tests that need their own replies."""
    return ScriptedLLMClient


@pytest.fixture
def in_memory_repository() -> type[InMemoryItemRepository]:
    return InMemoryItemRepository
