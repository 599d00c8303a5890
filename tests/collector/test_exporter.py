"""Tests for the concurrent collection coordinator.

Covers per-source failure isolation, the liveness reduction after the
join, scrape deadlines and sink failure propagation.
"""

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List

import pytest
from hypothesis import given, settings as hyp_settings, strategies as st
from structlog.testing import capture_logs

from barman_exporter.collector import scraper as scraper_module
from barman_exporter.collector.backup import BarmanCloudBackup
from barman_exporter.collector.exporter import Exporter
from barman_exporter.collector.scraper import Scraper
from barman_exporter.collector.sink import SampleSink, SinkError
from barman_exporter.collector.wal import BarmanCloudWal

NOW = 1_700_010_000

BACKUP_LOG = b"1700000000\tbkt-a\t0\t120\t2048\tid-1\n1700003600\tbkt-a\t1\t60\t4096\tid-2\n"
WAL_LOG = b"1700008000\tbkt-w\twal-1\t100\t0\t1\n1700009000\tbkt-w\twal-2\t200\t1\t2\n"


def run_async(coro):
    return asyncio.run(coro)


class StaticScraper(Scraper):
    """Scraper that emits one sample, optionally after a delay or failing."""

    def __init__(self, name: str, fail: bool = False, delay: float = 0.0):
        self.name = name
        self.fail = fail
        self.delay = delay

    async def scrape(self, sink, descriptors, log):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError(f"{self.name} broke")
        sink.emit(descriptors.wal_latest_bytes, 1, self.name)


class BadLabelScraper(Scraper):
    name = "bad_labels"

    async def scrape(self, sink, descriptors, log):
        sink.emit(descriptors.wal_latest_bytes, 1, "a", "b")


class RendezvousScraper(Scraper):
    """Completes only if its partner runs at the same time."""

    def __init__(self, name: str, mine: asyncio.Event, theirs: asyncio.Event):
        self.name = name
        self.mine = mine
        self.theirs = theirs

    async def scrape(self, sink, descriptors, log):
        self.mine.set()
        await asyncio.wait_for(self.theirs.wait(), timeout=2)


def _names(sink: SampleSink) -> List[str]:
    return [s.descriptor.name for s in sink.samples()]


def _value(sink: SampleSink, name: str, **labels) -> float:
    matches = [
        s.value for s in sink.find(name) if s.labels == labels
    ]
    assert len(matches) == 1, (name, labels, sink.samples())
    return matches[0]


class TestCollectFromFiles:
    def test_all_sources_healthy(self, write_log):
        backup = write_log("backup.tsv", BACKUP_LOG)
        wal = write_log("wal.tsv", WAL_LOG)
        exporter = Exporter([BarmanCloudBackup(backup), BarmanCloudWal(wal, clock=lambda: NOW)])
        sink = SampleSink()

        result = run_async(exporter.collect(sink))

        assert result.up == 1.0
        assert result.failed == []
        assert _value(sink, "barman_cloud_up") == 1.0
        assert _value(sink, "barman_cloud_backup_latest_bytes", bucket_name="bkt-a", backup_id="id-2") == 4096
        assert _value(sink, "barman_cloud_wal_latest_bytes", bucket_name="bkt-w") == 200
        assert _value(sink, "barman_cloud_wal_failures_in_window", bucket_name="bkt-w") == 1
        assert _value(sink, "barman_cloud_scrape_collector_success", collector="barman_cloud_backup") == 1
        assert _value(sink, "barman_cloud_scrape_collector_success", collector="barman_cloud_wal") == 1
        assert len(sink.find("barman_cloud_scrape_duration_seconds")) == 1

    def test_missing_source_is_isolated(self, write_log, tmp_path):
        wal = write_log("wal.tsv", WAL_LOG)
        exporter = Exporter(
            [
                BarmanCloudBackup(tmp_path / "missing.tsv"),
                BarmanCloudWal(wal, clock=lambda: NOW),
            ]
        )
        sink = SampleSink()

        with capture_logs() as logs:
            result = run_async(exporter.collect(sink))

        assert result.up == 0.0
        assert [o.name for o in result.failed] == ["barman_cloud_backup"]
        assert sink.find("barman_cloud_backup_latest_bytes") == []
        assert _value(sink, "barman_cloud_wal_latest_bytes", bucket_name="bkt-w") == 200
        assert _value(sink, "barman_cloud_up") == 0.0
        assert _value(sink, "barman_cloud_scrape_collector_success", collector="barman_cloud_backup") == 0
        errors = [e for e in logs if e["log_level"] == "error"]
        assert errors[0]["scraper"] == "barman_cloud_backup"

    def test_source_without_valid_rows_fails_alone(self, write_log):
        backup = write_log("backup.tsv", "not\ta\tbackup\n")
        wal = write_log("wal.tsv", WAL_LOG)
        exporter = Exporter([BarmanCloudBackup(backup), BarmanCloudWal(wal, clock=lambda: NOW)])
        sink = SampleSink()

        with capture_logs():
            result = run_async(exporter.collect(sink))

        assert result.up == 0.0
        assert "No values in backup TSV file" in result.failed[0].error
        assert sink.find("barman_cloud_wal_latest_bytes")

    def test_repeated_scrapes_are_identical(self, write_log):
        backup = write_log("backup.tsv", BACKUP_LOG)
        wal = write_log("wal.tsv", WAL_LOG)
        exporter = Exporter([BarmanCloudBackup(backup), BarmanCloudWal(wal, clock=lambda: NOW)])

        def snapshot():
            sink = SampleSink()
            run_async(exporter.collect(sink))
            return sorted(
                (s.descriptor.name, s.label_values, s.value)
                for s in sink.samples()
                if "duration" not in s.descriptor.name
            )

        assert snapshot() == snapshot()


class TestCoordination:
    def test_scrapers_run_concurrently(self):
        first, second = asyncio.Event(), asyncio.Event()
        exporter = Exporter(
            [
                RendezvousScraper("first", first, second),
                RendezvousScraper("second", second, first),
            ]
        )

        result = run_async(exporter.collect(SampleSink()))

        assert result.up == 1.0

    def test_failure_does_not_stop_other_scrapers(self):
        exporter = Exporter(
            [
                StaticScraper("broken", fail=True),
                StaticScraper("slow", delay=0.05),
                StaticScraper("fast"),
            ]
        )
        sink = SampleSink()

        with capture_logs():
            result = run_async(exporter.collect(sink))

        assert result.up == 0.0
        assert {s.label_values for s in sink.find("barman_cloud_wal_latest_bytes")} == {
            ("slow",),
            ("fast",),
        }
        assert [o.success for o in result.outcomes] == [False, True, True]

    def test_deadline_abandons_slow_scraper(self):
        exporter = Exporter(
            [StaticScraper("hung", delay=30), StaticScraper("fast")]
        )
        sink = SampleSink()

        with capture_logs() as logs:
            result = run_async(exporter.collect(sink, timeout=0.1))

        assert result.deadline_exceeded is True
        assert result.up == 0.0
        assert result.duration_seconds < 5
        assert {s.label_values for s in sink.find("barman_cloud_wal_latest_bytes")} == {("fast",)}
        assert _value(sink, "barman_cloud_scrape_collector_success", collector="hung") == 0
        assert any(e["event"] == "Scraper abandoned at scrape deadline" for e in logs)

    def test_sink_error_propagates(self):
        exporter = Exporter([BadLabelScraper(), StaticScraper("fine")])

        with pytest.raises(SinkError):
            run_async(exporter.collect(SampleSink()))

    def test_no_scrapers_reports_up(self):
        sink = SampleSink()

        result = run_async(Exporter([]).collect(sink))

        assert result.up == 1.0
        assert _names(sink) == ["barman_cloud_up", "barman_cloud_scrape_duration_seconds"]

    def test_duplicate_scraper_names_rejected(self):
        with pytest.raises(ValueError):
            Exporter([StaticScraper("same"), StaticScraper("same")])

    def test_custom_namespace(self):
        sink = SampleSink()

        run_async(Exporter([StaticScraper("x")], namespace="pg").collect(sink))

        assert "pg_up" in _names(sink)
        assert "pg_wal_latest_bytes" in _names(sink)


@pytest.fixture
def hung_wal_read(monkeypatch):
    """Make every read of wal.tsv block until the returned event is set."""
    release = threading.Event()
    real_read_tail = scraper_module.read_tail

    def read_tail(path, max_bytes):
        if Path(path).name == "wal.tsv":
            release.wait(timeout=10)
        return real_read_tail(path, max_bytes)

    monkeypatch.setattr(scraper_module, "read_tail", read_tail)
    yield release
    release.set()


class TestHungRead:
    """A file read that never returns must only fail its own source."""

    def _collect(self, exporter):
        async def scrape():
            # Leave no spare threads in the loop's default pool.
            asyncio.get_running_loop().set_default_executor(
                ThreadPoolExecutor(max_workers=1)
            )
            return await exporter.collect(SampleSink(), timeout=0.2)

        return run_async(scrape())

    def _exporter(self, write_log):
        backup = BarmanCloudBackup(write_log("backup.tsv", BACKUP_LOG))
        wal = BarmanCloudWal(write_log("wal.tsv", WAL_LOG), clock=lambda: NOW)
        return Exporter([backup, wal]), wal

    def test_hung_read_does_not_starve_healthy_source(self, write_log, hung_wal_read):
        exporter, _ = self._exporter(write_log)

        with capture_logs():
            results = [self._collect(exporter) for _ in range(5)]

        for result in results:
            outcomes = {o.name: o for o in result.outcomes}
            assert outcomes["barman_cloud_backup"].success is True
            assert outcomes["barman_cloud_wal"].success is False
            assert result.up == 0.0
        assert results[0].deadline_exceeded is True
        for result in results[1:]:
            outcomes = {o.name: o for o in result.outcomes}
            assert result.deadline_exceeded is False
            assert "still in progress" in outcomes["barman_cloud_wal"].error

    def test_source_recovers_when_read_returns(self, write_log, hung_wal_read):
        exporter, wal = self._exporter(write_log)
        with capture_logs():
            first = self._collect(exporter)
        assert first.deadline_exceeded is True
        assert wal.read_in_progress

        hung_wal_read.set()
        give_up = time.monotonic() + 5
        while wal.read_in_progress and time.monotonic() < give_up:
            time.sleep(0.01)
        second = self._collect(exporter)

        assert second.up == 1.0


@hyp_settings(max_examples=50, deadline=None)
@given(failures=st.lists(st.booleans(), min_size=1, max_size=8))
def test_liveness_reflects_any_failure(failures):
    """Property: up is 1 exactly when no scraper failed, and every healthy
    scraper's samples are present regardless of the others."""
    scrapers = [StaticScraper(f"s{i}", fail=fail) for i, fail in enumerate(failures)]
    sink = SampleSink()

    with capture_logs():
        result = run_async(Exporter(scrapers).collect(sink))

    assert result.up == (0.0 if any(failures) else 1.0)
    emitted = {s.label_values[0] for s in sink.find("barman_cloud_wal_latest_bytes")}
    assert emitted == {f"s{i}" for i, fail in enumerate(failures) if not fail}
    assert len(result.outcomes) == len(failures)
