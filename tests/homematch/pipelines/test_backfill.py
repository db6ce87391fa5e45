"""
Tests for the Backfill Controller

Skip decisions, failure isolation, offset resumption, cancellation and
cursor emission.
"""
import pytest

from src.homematch.pipelines.backfill import (
    BackfillController,
    BatchParams,
    failure_code,
)
from src.homematch.utils.exceptions import DataSourceError, GenerationError


class TestSkipDecision:
    """Tests for hash-based skipping."""

    async def test_current_entities_are_skipped(self, entities_factory, enricher_factory, hash_of, fake_sleep):
        """Entities whose stored hash matches are skipped, the rest attempted."""
        entities = entities_factory(3)
        enricher = enricher_factory(
            entities,
            stored_hashes={"p0": hash_of(entities[0]), "p2": hash_of(entities[2])},
        )

        result = await BackfillController(enricher, sleep=fake_sleep).run(BatchParams(limit=10))

        assert result.skipped == 2
        assert result.attempted == 1
        assert result.success == 1
        assert enricher.enriched == ["p1"]

    async def test_stale_hash_is_regenerated(self, entities_factory, enricher_factory, fake_sleep):
        """A stored hash that differs from the current content is attempted."""
        entities = entities_factory(1)
        enricher = enricher_factory(entities, stored_hashes={"p0": "outdated"})

        result = await BackfillController(enricher, sleep=fake_sleep).run(BatchParams(limit=10))

        assert result.attempted == 1
        assert result.skipped == 0

    async def test_force_regenerates_current_entities(self, entities_factory, enricher_factory, hash_of, fake_sleep):
        """Force attempts every entity regardless of stored hashes."""
        entities = entities_factory(3)
        enricher = enricher_factory(entities, stored_hashes={e.id: hash_of(e) for e in entities})

        result = await BackfillController(enricher, sleep=fake_sleep).run(
            BatchParams(limit=10, force=True)
        )

        assert result.attempted == 3
        assert result.skipped == 0
        assert enricher.enriched == ["p0", "p1", "p2"]

    async def test_second_pass_skips_everything(self, entities_factory, enricher_factory, fake_sleep):
        """After a full pass, a rerun without changes attempts nothing."""
        enricher = enricher_factory(entities_factory(4))
        controller = BackfillController(enricher, sleep=fake_sleep)

        first = await controller.run(BatchParams(limit=None))
        second = await controller.run(BatchParams(limit=None))

        assert first.success == 4
        assert second.attempted == 0
        assert second.skipped == 4

    async def test_skipped_entities_do_not_count_toward_limit(
        self, entities_factory, enricher_factory, hash_of, fake_sleep
    ):
        """The limit counts attempts only; skipped entities still advance the offset."""
        entities = entities_factory(6)
        enricher = enricher_factory(entities, stored_hashes={e.id: hash_of(e) for e in entities[:3]})

        result = await BackfillController(enricher, sleep=fake_sleep).run(BatchParams(limit=2))

        assert result.skipped == 3
        assert result.attempted == 2
        assert enricher.enriched == ["p3", "p4"]
        assert result.next_offset == 5


class TestFailureIsolation:
    """Tests for per-entity failure handling."""

    async def test_one_failure_does_not_abort_the_run(self, entities_factory, enricher_factory, fake_sleep):
        """Three attempts with one failure give 3 attempted, 2 success, 1 failed."""
        enricher = enricher_factory(entities_factory(3), failing_ids=["p1"])

        result = await BackfillController(enricher, sleep=fake_sleep).run(BatchParams(limit=10))

        assert result.attempted == 3
        assert result.success == 2
        assert result.failed == 1
        assert len(result.failures) == 1
        assert "p1" not in enricher.stored_hashes
        assert set(enricher.stored_hashes) == {"p0", "p2"}

        failure = result.failures[0]
        assert failure.entity_id == "p1"
        assert failure.code == "500"
        assert "500" in failure.error
        assert failure.details == {"content": "listing 1"}

    async def test_prepare_error_counts_as_failed_attempt(self, entities_factory, enricher_factory, fake_sleep):
        """An error while preparing an entity is recorded as a failure."""
        enricher = enricher_factory(entities_factory(2))
        enricher.prepare_error_ids = {"p0"}

        result = await BackfillController(enricher, sleep=fake_sleep).run(BatchParams(limit=10))

        assert result.attempted == 2
        assert result.failed == 1
        assert result.success == 1
        assert result.failures[0].code == "RuntimeError"

    async def test_cost_counts_successes_only(self, entities_factory, enricher_factory, fake_sleep):
        """Failed attempts add no cost."""
        enricher = enricher_factory(entities_factory(4), failing_ids=["p0", "p3"], cost=0.25)

        result = await BackfillController(enricher, sleep=fake_sleep).run(BatchParams(limit=10))

        assert result.total_cost_usd == pytest.approx(0.5)

    async def test_page_fetch_error_propagates(self, entities_factory, enricher_factory, fake_sleep):
        """Data source errors are fatal to the run."""
        enricher = enricher_factory(entities_factory(3))
        enricher.page_error = DataSourceError("connection refused")

        with pytest.raises(DataSourceError):
            await BackfillController(enricher, sleep=fake_sleep).run(BatchParams(limit=10))

    def test_failure_code(self):
        """Generation errors with a status use it; everything else uses the class name."""
        assert failure_code(GenerationError("rate limited", status=429)) == "429"
        assert failure_code(GenerationError("Empty response from LLM")) == "GenerationError"
        assert failure_code(ValueError("bad")) == "ValueError"


class TestResumption:
    """Tests for offset advancement across runs."""

    async def test_runs_resume_without_gaps_or_duplicates(self, entities_factory, enricher_factory, fake_sleep):
        """Chaining next_offset visits every entity exactly once."""
        enricher = enricher_factory(entities_factory(10))
        controller = BackfillController(enricher, sleep=fake_sleep)

        offsets = []
        offset = 0
        while True:
            result = await controller.run(BatchParams(limit=4, page_size=3, offset=offset))
            if result.attempted == 0:
                break
            offsets.append(result.next_offset)
            offset = result.next_offset

        assert offsets == [4, 8, 10]
        assert enricher.enriched == [f"p{i}" for i in range(10)]

    async def test_short_page_ends_the_scan(self, entities_factory, enricher_factory, fake_sleep):
        """A page shorter than page_size is the last page."""
        enricher = enricher_factory(entities_factory(5))

        result = await BackfillController(enricher, sleep=fake_sleep).run(
            BatchParams(limit=None, page_size=3)
        )

        assert result.attempted == 5
        assert enricher.page_calls == [(0, 3), (3, 3)]
        assert result.next_offset == 5

    async def test_cursor_emitted_after_every_entity(
        self, entities_factory, enricher_factory, hash_of, fake_sleep
    ):
        """Skipped and attempted entities both advance the emitted offset."""
        entities = entities_factory(3)
        enricher = enricher_factory(entities, stored_hashes={"p1": hash_of(entities[1])})
        cursors = []

        await BackfillController(enricher, sleep=fake_sleep).run(
            BatchParams(limit=10, offset=0), on_cursor=cursors.append
        )

        assert [c.offset for c in cursors] == [1, 2, 3]
        assert [c.last_entity_id for c in cursors] == ["p0", "p1", "p2"]
        assert cursors[-1].attempted == 2
        assert cursors[-1].skipped == 1

    async def test_cursor_callback_errors_are_ignored(self, entities_factory, enricher_factory, fake_sleep):
        """A failing cursor write does not stop the run."""
        enricher = enricher_factory(entities_factory(2))

        def broken(cursor):
            raise OSError("disk full")

        result = await BackfillController(enricher, sleep=fake_sleep).run(
            BatchParams(limit=10), on_cursor=broken
        )

        assert result.success == 2


class TestExplicitIds:
    """Tests for id list mode."""

    async def test_id_list_processes_only_those_entities(self, entities_factory, enricher_factory, fake_sleep):
        """Only listed entities are processed and no offset is reported."""
        enricher = enricher_factory(entities_factory(5))
        cursors = []

        result = await BackfillController(enricher, sleep=fake_sleep).run(
            BatchParams(entity_ids=["p3", "p1"]), on_cursor=cursors.append
        )

        assert enricher.enriched == ["p3", "p1"]
        assert enricher.page_calls == []
        assert enricher.id_calls == [["p3", "p1"]]
        assert result.next_offset is None
        assert cursors == []

    async def test_unknown_ids_are_ignored(self, entities_factory, enricher_factory, fake_sleep):
        """Ids with no entity simply yield nothing."""
        enricher = enricher_factory(entities_factory(2))

        result = await BackfillController(enricher, sleep=fake_sleep).run(
            BatchParams(entity_ids=["missing"])
        )

        assert result.attempted == 0
        assert result.skipped == 0


class TestCancellationAndPacing:
    """Tests for cooperative stop and inter-item delays."""

    async def test_stop_requested_mid_run(self, entities_factory, enricher_factory, fake_sleep):
        """The in-flight entity finishes and no further entities start."""
        enricher = enricher_factory(entities_factory(5))
        stop = {"requested": False}

        def request_stop(entity):
            stop["requested"] = True

        enricher.on_enrich = request_stop

        result = await BackfillController(enricher, sleep=fake_sleep).run(
            BatchParams(limit=10), should_stop=lambda: stop["requested"]
        )

        assert result.canceled is True
        assert result.attempted == 1
        assert result.success == 1
        assert result.next_offset == 1

    async def test_stop_before_first_page(self, entities_factory, enricher_factory, fake_sleep):
        """A stop requested up front fetches nothing."""
        enricher = enricher_factory(entities_factory(3))

        result = await BackfillController(enricher, sleep=fake_sleep).run(
            BatchParams(limit=10), should_stop=lambda: True
        )

        assert result.canceled is True
        assert enricher.page_calls == []
        assert result.next_offset == 0

    async def test_delay_follows_attempts_only(self, entities_factory, enricher_factory, hash_of, fake_sleep):
        """No delay after skips or after the attempt that reaches the target."""
        entities = entities_factory(3)
        enricher = enricher_factory(entities, stored_hashes={"p0": hash_of(entities[0])})

        await BackfillController(enricher, sleep=fake_sleep).run(
            BatchParams(limit=2, delay_seconds=1.5)
        )

        fake_sleep.assert_awaited_once_with(1.5)

    async def test_zero_delay_never_sleeps(self, entities_factory, enricher_factory, fake_sleep):
        """A zero delay skips the pause entirely."""
        enricher = enricher_factory(entities_factory(3))

        await BackfillController(enricher, sleep=fake_sleep).run(BatchParams(limit=10))

        fake_sleep.assert_not_awaited()
