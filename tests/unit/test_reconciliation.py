"""Unit tests for the reconciliation engine."""

from __future__ import annotations

import random
import threading

import pytest

from orphan_sweeper.adapters.outbound.memory_store import MemoryKVStore
from orphan_sweeper.domain.entities import BucketInfo, MultipartPart, MultipartUpload, ObjectInfo
from orphan_sweeper.domain.services.bucket_repository import BucketRepository
from orphan_sweeper.domain.services.multipart_repository import MultipartRepository
from orphan_sweeper.domain.services.object_repository import ObjectRepository
from orphan_sweeper.domain.services.reconciliation import (
    OrphanFragment,
    ReconciliationCancelled,
    ReconciliationEngine,
    ReconciliationReport,
)
from orphan_sweeper.domain.value_objects.keys import KeyCodec
from orphan_sweeper.infrastructure.metrics import MetricsRegistry
from orphan_sweeper.ports.inbound import DecodeError
from orphan_sweeper.ports.outbound.kv_store import StoreError


def _large(name: str, upload_id: str, parts: int, bucket: str = "b1") -> ObjectInfo:
    return ObjectInfo(name=name, bucket=bucket, type="large", upload_id=upload_id, part_total=parts)


@pytest.fixture
def engine(
    buckets: BucketRepository,
    objects: ObjectRepository,
    multiparts: MultipartRepository,
    codec: KeyCodec,
    metrics_registry: MetricsRegistry,
) -> ReconciliationEngine:
    return ReconciliationEngine(buckets, objects, multiparts, codec, metrics=metrics_registry)


@pytest.mark.unit
class TestScenarios:
    """End-to-end passes over small metadata sets."""

    def test_unreferenced_fragment_is_orphaned(
        self, engine, buckets, objects, multiparts
    ) -> None:
        """Test that a fragment no object names is reported."""
        buckets.create(BucketInfo(name="b1"))
        objects.save(_large("big", "u1", 3))
        for i in range(3):
            multiparts.create("b1", "u1", i, MultipartPart(size=1000))
        multiparts.create("b1", "u2", 0, MultipartPart(size=4242))

        report = engine.run()

        assert report.orphan_count == 1
        assert report.orphan_bytes == 4242
        [orphan] = report.orphans
        assert orphan.key == b"MULTIPART#b1#u2#00000"
        assert orphan.bucket == "b1"
        assert orphan.name == "u2#00000"

    def test_tombstoned_object_keeps_fragments_reachable(
        self, engine, buckets, objects, multiparts
    ) -> None:
        """Test that fragments of a deleted object are not reported."""
        buckets.create(BucketInfo(name="b1"))
        objects.save(_large("big", "u1", 2))
        objects.mark_deleted("b1", "big")
        for i in range(2):
            multiparts.create("b1", "u1", i, MultipartPart(size=10))

        report = engine.run()

        assert report.orphan_count == 0
        assert report.deleted_objects_scanned == 1

    def test_overwritten_object_keeps_old_fragments_reachable(
        self, engine, buckets, objects, multiparts
    ) -> None:
        """Test that the tombstone of an overwrite keeps the old upload reachable."""
        buckets.create(BucketInfo(name="b1"))
        objects.save(_large("big", "u1", 1))
        objects.save(_large("big", "u2", 1))
        multiparts.create("b1", "u1", 0, MultipartPart(size=10))
        multiparts.create("b1", "u2", 0, MultipartPart(size=10))

        assert engine.run().orphan_count == 0

    def test_empty_store(self, engine) -> None:
        """Test a pass over an empty store."""
        report = engine.run()

        assert report.orphan_count == 0
        assert report.orphan_bytes == 0
        assert report.buckets_scanned == 0

    def test_empty_bucket(self, engine, buckets) -> None:
        """Test that a bucket with no objects is still counted."""
        buckets.create(BucketInfo(name="empty"))

        report = engine.run()

        assert report.buckets_scanned == 1
        assert report.reachable_fragments == 0

    def test_fragments_of_other_bucket_are_not_confused(
        self, engine, buckets, objects, multiparts
    ) -> None:
        """Test that an upload id reused in another bucket is not marked."""
        buckets.create(BucketInfo(name="b1"))
        buckets.create(BucketInfo(name="b2"))
        objects.save(_large("big", "u1", 1, bucket="b1"))
        multiparts.create("b2", "u1", 0, MultipartPart(size=5))

        report = engine.run()

        assert [o.key for o in report.orphans] == [b"MULTIPART#b2#u1#00000"]

    def test_small_objects_own_no_fragments(self, engine, buckets, objects, multiparts) -> None:
        """Test that a non-large object marks nothing."""
        buckets.create(BucketInfo(name="b1"))
        objects.save(ObjectInfo(name="small", bucket="b1", type="normal", upload_id="u1", part_total=1))
        multiparts.create("b1", "u1", 0, MultipartPart(size=5))

        assert engine.run().orphan_count == 1

    def test_bucket_names_sharing_a_prefix_are_not_confused(
        self, engine, buckets, objects, multiparts
    ) -> None:
        """Test that orphans of bucket ``ab`` are attributed to ``ab``, not ``a``."""
        buckets.create(BucketInfo(name="a"))
        buckets.create(BucketInfo(name="ab"))
        objects.save(_large("x", "u", 1, bucket="a"))
        multiparts.create("a", "u", 0, MultipartPart(size=1))
        multiparts.create("ab", "u", 0, MultipartPart(size=2))

        report = engine.run()

        [orphan] = report.orphans
        assert (orphan.bucket, orphan.name) == ("ab", "u#00000")
        assert report.live_objects_scanned == 1

    def test_bucket_with_separator_is_refused(self, buckets, multiparts) -> None:
        """Test that no bucket or fragment can be recorded under a name holding the separator."""
        with pytest.raises(ValueError):
            buckets.create(BucketInfo(name="a#b"))
        with pytest.raises(ValueError):
            multiparts.create("a#b", "u", 0, MultipartPart(size=1))

    def test_wide_fragment_index_is_swept(self, engine, buckets, objects, multiparts) -> None:
        """Test that fragments past index 99999 are marked and swept like any other."""
        buckets.create(BucketInfo(name="b1"))
        objects.save(_large("huge", "u1", 100001))
        multiparts.create("b1", "u1", 100000, MultipartPart(size=3))
        multiparts.create("b1", "u2", 100000, MultipartPart(size=5))

        report = engine.run()

        assert [o.name for o in report.orphans] == ["u2#100000"]
        assert report.non_fragment_records == 0
        assert report.reachable_fragments == 100001
        assert engine.run().orphan_count == 1


@pytest.mark.unit
class TestSweepSkips:
    """Records the sweep must not report."""

    def test_undecodable_fragment_is_skipped(
        self, engine, buckets, multiparts, store: MemoryKVStore
    ) -> None:
        """Test that a fragment that does not decode is counted, not reported."""
        buckets.create(BucketInfo(name="b1"))
        multiparts.create("b1", "u1", 0, MultipartPart(size=5))
        txn = store.begin()
        txn.set(b"MULTIPART#b1#u9#00000", b"{not json")
        txn.commit()

        report = engine.run()

        assert [o.name for o in report.orphans] == ["u1#00000"]
        assert report.undecodable_records == 1
        assert report.multipart_records_scanned == 2

    def test_upload_records_are_not_fragments(self, engine, buckets, multiparts) -> None:
        """Test that upload records sharing the prefix are skipped."""
        buckets.create(BucketInfo(name="b1"))
        multiparts.create_upload("u1", MultipartUpload(bucket="b1", object="big"))

        report = engine.run()

        assert report.orphan_count == 0
        assert report.non_fragment_records == 1

    def test_undecodable_object_is_skipped(
        self, engine, buckets, objects, multiparts, store: MemoryKVStore
    ) -> None:
        """Test that an object that does not decode is counted and skipped."""
        buckets.create(BucketInfo(name="b1"))
        objects.save(_large("good", "u1", 1))
        txn = store.begin()
        txn.set(b"OBJECT#b1#bad", b"garbage")
        txn.commit()
        multiparts.create("b1", "u1", 0, MultipartPart(size=5))

        report = engine.run()

        assert report.orphan_count == 0
        assert report.live_objects_scanned == 2
        assert report.undecodable_records == 1

    def test_tombstoned_fragments_are_not_swept(self, engine, buckets, multiparts) -> None:
        """Test that fragment tombstones are outside the sweep."""
        buckets.create(BucketInfo(name="b1"))
        multiparts.create("b1", "u1", 0, MultipartPart(size=5))
        multiparts.mark_deleted("b1", "u1#00000")

        assert engine.run().multipart_records_scanned == 0


@pytest.mark.unit
class TestFailures:
    """Errors and cancellation end the pass without a report."""

    def test_store_error_propagates(self, faulty_store, codec: KeyCodec) -> None:
        """Test that a failing scan ends the pass with StoreError."""
        buckets = BucketRepository(faulty_store, codec)
        objects = ObjectRepository(faulty_store, codec)
        multiparts = MultipartRepository(faulty_store, codec)
        buckets.create(BucketInfo(name="b1"))
        engine = ReconciliationEngine(buckets, objects, multiparts, codec)

        faulty_store.fail_scans = True
        with pytest.raises(StoreError):
            engine.run()

    def test_malformed_bucket_aborts(self, engine, store: MemoryKVStore) -> None:
        """Test that a bucket record that does not decode ends the pass."""
        txn = store.begin()
        txn.set(b"BUCKET#b1", b"garbage")
        txn.commit()

        with pytest.raises(DecodeError):
            engine.run()

    def test_cancelled_before_start(self, engine, buckets) -> None:
        """Test that a set event stops the pass in the mark phase."""
        buckets.create(BucketInfo(name="b1"))
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ReconciliationCancelled) as exc_info:
            engine.run(cancel)
        assert exc_info.value.phase == "mark"

    def test_cancel_closes_cursors(self, buckets, objects, multiparts, codec, store) -> None:
        """Test that cancelling mid-sweep still closes the open cursor."""
        class CancellingMultiparts:
            """Sets the cancel event as soon as the sweep opens its cursor."""

            def __init__(self, inner, event):
                self.inner = inner
                self.event = event
                self.cursor = None

            def iterate(self):
                self.event.set()
                self.cursor = self.inner.iterate()
                return self.cursor

        buckets.create(BucketInfo(name="b1"))
        multiparts.create("b1", "u1", 0, MultipartPart(size=1))
        cancel = threading.Event()
        wrapper = CancellingMultiparts(multiparts, cancel)
        engine = ReconciliationEngine(buckets, objects, wrapper, codec)

        with pytest.raises(ReconciliationCancelled) as exc_info:
            engine.run(cancel)

        assert exc_info.value.phase == "sweep"
        assert wrapper.cursor.closed


@pytest.mark.unit
class TestReport:
    """Tests for ReconciliationReport."""

    def test_summary_line(self) -> None:
        """Test the one-line summary with sizes in GB."""
        report = ReconciliationReport(
            orphans=[
                OrphanFragment(key=b"k1", bucket="b", name="u#00000", size=3 * 1024**3),
                OrphanFragment(key=b"k2", bucket="b", name="u#00001", size=1024**3 // 2),
            ]
        )

        assert report.summary_line() == "clean finished, multiparts count is 2, multiparts size is 3.50GB"

    def test_summary_line_empty(self) -> None:
        """Test the summary of a pass with no orphans."""
        assert ReconciliationReport().summary_line() == (
            "clean finished, multiparts count is 0, multiparts size is 0.00GB"
        )

    def test_to_dict(self) -> None:
        """Test the JSON form of a report."""
        report = ReconciliationReport(
            buckets_scanned=1,
            orphans=[OrphanFragment(key=b"MULTIPART#b#u#00000", bucket="b", name="u#00000", size=9)],
        )
        data = report.to_dict()

        assert data["orphan_count"] == 1
        assert data["orphan_bytes"] == 9
        assert data["orphans"][0]["key"] == "MULTIPART#b#u#00000"
        assert "orphans" not in report.to_dict(include_orphans=False)

    def test_metrics_updated(self, engine, buckets, objects, multiparts, metrics_registry) -> None:
        """Test that a pass updates the result gauges and scan counters."""
        buckets.create(BucketInfo(name="b1"))
        objects.save(_large("big", "u1", 2))
        multiparts.create("b1", "u1", 0, MultipartPart(size=1))
        multiparts.create("b1", "u1", 1, MultipartPart(size=1))
        multiparts.create("b1", "u3", 0, MultipartPart(size=7))

        engine.run()

        registry = metrics_registry._registry
        assert registry.get_sample_value("orphan_sweeper_orphan_fragments") == 1
        assert registry.get_sample_value("orphan_sweeper_orphan_bytes") == 7
        assert registry.get_sample_value("orphan_sweeper_reachable_fragments") == 2
        assert registry.get_sample_value("orphan_sweeper_buckets_scanned_total") == 1
        assert registry.get_sample_value(
            "orphan_sweeper_objects_scanned_total", {"kind": "live"}
        ) == 1
        assert registry.get_sample_value("orphan_sweeper_multipart_records_scanned_total") == 3


@pytest.mark.property
class TestReconciliationProperty:
    """The orphan set equals all fragments minus those reachable from objects."""

    @pytest.mark.parametrize("seed", [1, 7, 42, 2024])
    def test_orphans_are_unreachable_fragments(self, seed: int) -> None:
        """Test the orphan set against an independently computed expectation."""
        rng = random.Random(seed)
        store = MemoryKVStore()
        codec = KeyCodec()
        buckets = BucketRepository(store, codec)
        objects = ObjectRepository(store, codec)
        multiparts = MultipartRepository(store, codec)

        bucket_names = [f"bkt{i}" for i in range(rng.randint(1, 4))]
        for name in bucket_names:
            buckets.create(BucketInfo(name=name))

        reachable: set[bytes] = set()
        all_fragments: dict[bytes, int] = {}

        for n in range(rng.randint(0, 30)):
            bucket = rng.choice(bucket_names)
            upload_id = f"up{rng.randint(0, 20)}"
            parts = rng.randint(1, 4)
            obj = _large(f"obj{n}", upload_id, parts, bucket=bucket)
            objects.save(obj)
            if rng.random() < 0.3:
                objects.mark_deleted(bucket, obj.name)
            reachable.update(codec.fragment_key(bucket, upload_id, i) for i in range(parts))

        for _ in range(rng.randint(0, 60)):
            bucket = rng.choice(bucket_names)
            upload_id = f"up{rng.randint(0, 25)}"
            index = rng.randint(0, 5)
            key = codec.fragment_key(bucket, upload_id, index)
            if key in all_fragments:
                continue
            size = rng.randint(1, 10_000)
            multiparts.create(bucket, upload_id, index, MultipartPart(size=size))
            all_fragments[key] = size

        engine = ReconciliationEngine(buckets, objects, multiparts, codec)
        report = engine.run()

        expected = set(all_fragments) - reachable
        assert report.orphan_keys() == expected
        assert report.orphan_bytes == sum(all_fragments[k] for k in expected)
        assert report.orphan_count == len(expected)
