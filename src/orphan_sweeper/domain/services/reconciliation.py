"""Mark-and-sweep reconciliation of multipart fragment records.

The mark phase walks every bucket's live objects and every tombstoned
object, and collects the fragment keys each large object owns. The sweep
phase walks all multipart records and reports those nobody marked.

Nothing is written to the store. The report is a best-effort view as of
the start of the scan: an upload completing between mark and sweep can be
reported as orphaned, so a deletion pass must re-check reachability (or
require a minimum fragment age) before reclaiming anything.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any

from opentelemetry import trace

from orphan_sweeper.domain.entities.common import FragmentLocation
from orphan_sweeper.domain.entities.multipart import MultipartPart
from orphan_sweeper.domain.entities.object import ObjectInfo
from orphan_sweeper.domain.value_objects.keys import KeyCodec, parse_fragment_name
from orphan_sweeper.infrastructure.logging import get_logger
from orphan_sweeper.infrastructure.metrics import MetricsRegistry
from orphan_sweeper.infrastructure.tracing import trace_span
from orphan_sweeper.ports.inbound import (
    BucketRepositoryPort,
    MultipartRepositoryPort,
    ObjectRepositoryPort,
    RecordCursor,
)

GIB = 1024**3

logger = get_logger(__name__)


class ReconciliationCancelled(Exception):
    """Raised when a pass is cancelled; no report is produced."""

    def __init__(self, phase: str) -> None:
        self.phase = phase
        super().__init__(f"reconciliation cancelled during {phase}")


@dataclass(frozen=True)
class OrphanFragment:
    """A fragment record that no live or tombstoned object references."""

    key: bytes
    bucket: str
    name: str
    size: int
    locations: tuple[FragmentLocation, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key.decode(errors="replace"),
            "bucket": self.bucket,
            "name": self.name,
            "size": self.size,
            "locations": [loc.model_dump(by_alias=True) for loc in self.locations],
        }


@dataclass
class ReconciliationReport:
    """Outcome of one complete pass."""

    buckets_scanned: int = 0
    live_objects_scanned: int = 0
    deleted_objects_scanned: int = 0
    fragmented_objects: int = 0
    reachable_fragments: int = 0
    multipart_records_scanned: int = 0
    non_fragment_records: int = 0
    undecodable_records: int = 0
    orphans: list[OrphanFragment] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def orphan_count(self) -> int:
        return len(self.orphans)

    @property
    def orphan_bytes(self) -> int:
        return sum(orphan.size for orphan in self.orphans)

    @property
    def orphan_gigabytes(self) -> float:
        return self.orphan_bytes / GIB

    def orphan_keys(self) -> set[bytes]:
        return {orphan.key for orphan in self.orphans}

    def summary_line(self) -> str:
        """One-line human-readable result."""
        return (
            f"clean finished, multiparts count is {self.orphan_count}, "
            f"multiparts size is {self.orphan_gigabytes:.2f}GB"
        )

    def to_dict(self, include_orphans: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "buckets_scanned": self.buckets_scanned,
            "live_objects_scanned": self.live_objects_scanned,
            "deleted_objects_scanned": self.deleted_objects_scanned,
            "fragmented_objects": self.fragmented_objects,
            "reachable_fragments": self.reachable_fragments,
            "multipart_records_scanned": self.multipart_records_scanned,
            "non_fragment_records": self.non_fragment_records,
            "undecodable_records": self.undecodable_records,
            "orphan_count": self.orphan_count,
            "orphan_bytes": self.orphan_bytes,
            "orphan_gigabytes": round(self.orphan_gigabytes, 2),
            "duration_seconds": round(self.duration_seconds, 3),
        }
        if include_orphans:
            data["orphans"] = [orphan.to_dict() for orphan in self.orphans]
        return data


class ReconciliationEngine:
    """Computes the orphaned multipart fragments of a metadata store.

    The engine is sequential and holds no locks. Any store or repository
    error raised while listing buckets, opening a cursor or advancing one
    propagates and ends the pass without a report.

    Example:
        engine = ReconciliationEngine(buckets, objects, multiparts, codec)
        report = engine.run()
        print(report.summary_line())
    """

    def __init__(
        self,
        buckets: BucketRepositoryPort,
        objects: ObjectRepositoryPort,
        multiparts: MultipartRepositoryPort,
        codec: KeyCodec,
        metrics: MetricsRegistry | None = None,
        tracer: trace.Tracer | None = None,
    ) -> None:
        self._buckets = buckets
        self._objects = objects
        self._multiparts = multiparts
        self._codec = codec
        self._metrics = metrics
        self._tracer = tracer

    def run(self, cancel: threading.Event | None = None) -> ReconciliationReport:
        """Run a full mark-and-sweep pass.

        Args:
            cancel: Optional event; once set, the pass stops at the next
                record and raises ReconciliationCancelled.

        Returns:
            The report of the completed pass.
        """
        report = ReconciliationReport()
        started = time.monotonic()
        logger.info("reconciliation_started")

        with trace_span("reconcile", tracer=self._tracer) as span:
            reachable = self.mark(report, cancel)
            self.sweep(reachable, report, cancel)
            report.duration_seconds = time.monotonic() - started
            span.set_attribute("orphan.count", report.orphan_count)
            span.set_attribute("orphan.bytes", report.orphan_bytes)

        if self._metrics is not None:
            self._metrics.reachable_fragments.set(report.reachable_fragments)
            self._metrics.orphan_fragments.set(report.orphan_count)
            self._metrics.orphan_bytes.set(report.orphan_bytes)

        logger.info(
            "reconciliation_finished",
            buckets=report.buckets_scanned,
            reachable_fragments=report.reachable_fragments,
            orphan_count=report.orphan_count,
            orphan_bytes=report.orphan_bytes,
            duration_seconds=round(report.duration_seconds, 3),
        )
        return report

    # -- mark ---------------------------------------------------------------

    def mark(
        self,
        report: ReconciliationReport,
        cancel: threading.Event | None = None,
    ) -> set[bytes]:
        """Collect the fragment keys owned by live and tombstoned objects."""
        reachable: set[bytes] = set()

        with trace_span("mark", tracer=self._tracer) as span:
            for bucket in self._buckets.list():
                self._check_cancelled(cancel, "mark")
                with trace_span("mark_bucket", {"bucket": bucket.name}, tracer=self._tracer):
                    before = len(reachable)
                    with self._objects.iterate_bucket(bucket.name) as cursor:
                        report.live_objects_scanned += self._mark_cursor(
                            cursor, reachable, report, "live", cancel
                        )
                    report.buckets_scanned += 1
                    if self._metrics is not None:
                        self._metrics.buckets_scanned_total.inc()
                    logger.debug(
                        "bucket_marked",
                        bucket=bucket.name,
                        fragments=len(reachable) - before,
                    )

            # Tombstones are not grouped by bucket in the key space, so a
            # single walk covers all of them.
            with self._objects.iterate_deleted() as cursor:
                report.deleted_objects_scanned += self._mark_cursor(
                    cursor, reachable, report, "deleted", cancel
                )

            report.reachable_fragments = len(reachable)
            span.set_attribute("reachable.fragments", len(reachable))

        return reachable

    def _mark_cursor(
        self,
        cursor: RecordCursor[ObjectInfo],
        reachable: set[bytes],
        report: ReconciliationReport,
        kind: str,
        cancel: threading.Event | None,
    ) -> int:
        scanned = 0
        while cursor.valid():
            self._check_cancelled(cancel, "mark")
            obj = cursor.value()
            scanned += 1
            if obj is None:
                report.undecodable_records += 1
                if self._metrics is not None:
                    self._metrics.undecodable_records_total.labels(kind=kind).inc()
            elif obj.is_fragmented():
                report.fragmented_objects += 1
                bucket = obj.bucket or self._bucket_of(cursor.key(), kind)
                for name in obj.fragment_names():
                    reachable.add(self._codec.multipart_key(bucket, name))
            cursor.next()

        if self._metrics is not None:
            self._metrics.objects_scanned_total.labels(kind=kind).inc(scanned)
        return scanned

    def _bucket_of(self, key: bytes, kind: str) -> str:
        if kind == "deleted":
            parsed = self._codec.parse_deleted_object_key(key)
        else:
            parsed = self._codec.parse_object_key(key)
        return parsed.bucket if parsed is not None else ""

    # -- sweep --------------------------------------------------------------

    def sweep(
        self,
        reachable: set[bytes],
        report: ReconciliationReport,
        cancel: threading.Event | None = None,
    ) -> list[OrphanFragment]:
        """Record every fragment whose key is not in ``reachable``.

        Records that do not decode, and records that are not fragments
        (upload-level records sharing the prefix), are skipped rather than
        reported.
        """
        orphans: list[OrphanFragment] = []

        with trace_span("sweep", tracer=self._tracer) as span:
            with self._multiparts.iterate() as cursor:
                while cursor.valid():
                    self._check_cancelled(cancel, "sweep")
                    key = cursor.key()
                    report.multipart_records_scanned += 1
                    orphan = self._classify(key, cursor.value(), reachable, report)
                    if orphan is not None:
                        orphans.append(orphan)
                    cursor.next()

            if self._metrics is not None:
                self._metrics.multipart_records_scanned_total.inc(report.multipart_records_scanned)
            span.set_attribute("orphan.count", len(orphans))

        report.orphans.extend(orphans)
        return orphans

    def _classify(
        self,
        key: bytes,
        part: MultipartPart | None,
        reachable: set[bytes],
        report: ReconciliationReport,
    ) -> OrphanFragment | None:
        parsed = self._codec.parse_multipart_key(key)
        if parsed is None or parse_fragment_name(parsed.name) is None:
            report.non_fragment_records += 1
            logger.debug("multipart_record_skipped", key=key.decode(errors="replace"))
            return None
        if part is None:
            report.undecodable_records += 1
            if self._metrics is not None:
                self._metrics.undecodable_records_total.labels(kind="multipart").inc()
            return None
        if key in reachable:
            return None
        return OrphanFragment(
            key=key,
            bucket=parsed.bucket,
            name=parsed.name,
            size=part.size,
            locations=tuple(part.locations or ()),
        )

    @staticmethod
    def _check_cancelled(cancel: threading.Event | None, phase: str) -> None:
        if cancel is not None and cancel.is_set():
            raise ReconciliationCancelled(phase)
