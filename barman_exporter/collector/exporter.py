"""Concurrent collection across all configured scrapers.

The Exporter drives one scrape:

    Idle → Fanned-out → (per scraper: Reading → Parsing → Aggregating
    → Emitted | Failed) → Joined → Reported

Each scraper runs as its own asyncio task and writes its samples to the
shared sink as soon as they are ready. The exporter waits for every task
(or for the deadline), then reduces the per-task outcomes into the
``up`` and duration samples. Tasks never share mutable state; each one
returns a ScraperOutcome that is only read after the join.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import structlog

from barman_exporter.collector.descriptors import NAMESPACE, build_descriptor_set
from barman_exporter.collector.scraper import Scraper
from barman_exporter.collector.sink import MetricsSink, SinkError

logger = structlog.get_logger(__name__)


@dataclass
class ScraperOutcome:
    """Result of one scraper within a scrape.

    Attributes:
        name: Scraper name, used as the ``collector`` label.
        success: True when the scraper emitted its samples.
        duration_seconds: Time spent in the scraper.
        error: Description of the failure, if any.
    """

    name: str
    success: bool
    duration_seconds: float
    error: Optional[str] = None


@dataclass
class ScrapeResult:
    """Summary of a complete scrape."""

    outcomes: List[ScraperOutcome] = field(default_factory=list)
    up: float = 1.0
    duration_seconds: float = 0.0
    deadline_exceeded: bool = False

    @property
    def failed(self) -> List[ScraperOutcome]:
        return [o for o in self.outcomes if not o.success]


class Exporter:
    """Coordinates one scrape across every configured scraper.

    The descriptor set is built once here and shared read-only with all
    scrapers.

    Attributes:
        scrapers: Sources to collect from, one task each per scrape.
        descriptors: Immutable metric descriptors.
    """

    def __init__(self, scrapers: Iterable[Scraper], namespace: str = NAMESPACE):
        self.scrapers = list(scrapers)
        names = [s.name for s in self.scrapers]
        if len(names) != len(set(names)):
            raise ValueError(f"Scraper names must be unique: {names}")
        self.descriptors = build_descriptor_set(namespace)

    async def collect(
        self, sink: MetricsSink, timeout: Optional[float] = None
    ) -> ScrapeResult:
        """Run every scraper concurrently and emit the summary samples.

        Source-local failures (unreadable file, no valid rows, malformed
        data) are logged and reported through ``up``. When ``timeout``
        expires, unfinished scrapers are cancelled and counted as failed.

        Args:
            sink: Receiver of all samples of this scrape.
            timeout: Optional deadline in seconds for the whole fan-out.

        Returns:
            ScrapeResult with one outcome per scraper.

        Raises:
            SinkError: If a scraper could not write to the sink.
        """
        started = time.monotonic()
        logger.debug("Scraping barman cloud logs", scrapers=len(self.scrapers))

        tasks: Dict[asyncio.Task, Scraper] = {
            asyncio.create_task(self._run_scraper(scraper, sink)): scraper
            for scraper in self.scrapers
        }

        pending = set()
        try:
            if tasks:
                _, pending = await asyncio.wait(tasks, timeout=timeout)
        finally:
            # Also reached when the scrape itself is cancelled.
            abandoned = pending or {t for t in tasks if not t.done()}
            for task in abandoned:
                task.cancel()
            if abandoned:
                await asyncio.gather(*abandoned, return_exceptions=True)

        elapsed = time.monotonic() - started
        result = ScrapeResult(deadline_exceeded=bool(pending))

        for task, scraper in tasks.items():
            if task in pending:
                logger.warning(
                    "Scraper abandoned at scrape deadline",
                    scraper=scraper.name,
                    timeout=timeout,
                )
                result.outcomes.append(
                    ScraperOutcome(scraper.name, False, elapsed, "deadline exceeded")
                )
                continue
            # Sink failures are scrape-level errors.
            error = task.exception()
            if isinstance(error, SinkError):
                raise error
            result.outcomes.append(task.result())

        result.duration_seconds = time.monotonic() - started
        result.up = 0.0 if result.failed or result.deadline_exceeded else 1.0

        for outcome in result.outcomes:
            sink.emit(
                self.descriptors.collector_success,
                1 if outcome.success else 0,
                outcome.name,
            )
            sink.emit(
                self.descriptors.collector_duration,
                outcome.duration_seconds,
                outcome.name,
            )
        sink.emit(self.descriptors.up, result.up)
        sink.emit(self.descriptors.scrape_duration, result.duration_seconds)

        logger.debug(
            "Scrape finished",
            up=result.up,
            duration_seconds=result.duration_seconds,
            failed=[o.name for o in result.failed],
        )
        return result

    async def _run_scraper(self, scraper: Scraper, sink: MetricsSink) -> ScraperOutcome:
        """Run a single scraper, converting its failures into an outcome."""
        log = logger.bind(scraper=scraper.name)
        started = time.monotonic()
        try:
            await scraper.scrape(sink, self.descriptors, log)
        except SinkError:
            raise
        except Exception as e:
            log.error(
                "Error from scraper",
                error=str(e),
                error_type=type(e).__name__,
            )
            return ScraperOutcome(
                scraper.name, False, time.monotonic() - started, str(e)
            )
        return ScraperOutcome(scraper.name, True, time.monotonic() - started)
