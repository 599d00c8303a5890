"""Destination for samples produced during a scrape.

Scrapers running concurrently write into the same sink, so ``emit`` is
guarded by a lock. ``SinkCollector`` adapts the collected samples to the
prometheus_client custom collector interface for encoding.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

from prometheus_client.core import GaugeMetricFamily

from barman_exporter.collector.descriptors import MetricDescriptor


class SinkError(Exception):
    """Raised when a sample cannot be written to the sink."""


@dataclass(frozen=True)
class Sample:
    """One labelled gauge value."""

    descriptor: MetricDescriptor
    label_values: Tuple[str, ...]
    value: float

    @property
    def labels(self) -> Dict[str, str]:
        return dict(zip(self.descriptor.label_names, self.label_values))


class MetricsSink(ABC):
    """Abstract receiver of samples.

    Implementations must be safe to call from concurrent scrapers.
    """

    @abstractmethod
    def emit(self, descriptor: MetricDescriptor, value: float, *label_values: str) -> None:
        """Record one sample.

        Args:
            descriptor: Metric family the sample belongs to.
            value: Gauge value.
            *label_values: Values for ``descriptor.label_names`` in order.

        Raises:
            SinkError: If the sample cannot be recorded.
        """


class SampleSink(MetricsSink):
    """In-memory sink that keeps samples in emission order."""

    def __init__(self):
        self._lock = threading.Lock()
        self._samples: List[Sample] = []

    def emit(self, descriptor: MetricDescriptor, value: float, *label_values: str) -> None:
        if len(label_values) != len(descriptor.label_names):
            raise SinkError(
                f"{descriptor.name} expects {len(descriptor.label_names)} "
                f"label values, got {len(label_values)}"
            )
        sample = Sample(
            descriptor=descriptor,
            label_values=tuple(str(v) for v in label_values),
            value=float(value),
        )
        with self._lock:
            self._samples.append(sample)

    def samples(self) -> List[Sample]:
        """Return a snapshot of the samples emitted so far."""
        with self._lock:
            return list(self._samples)

    def find(self, name: str) -> List[Sample]:
        """Return the samples of one metric family."""
        return [s for s in self.samples() if s.descriptor.name == name]


class SinkCollector:
    """prometheus_client collector exposing the contents of a SampleSink."""

    def __init__(self, sink: SampleSink):
        self._sink = sink

    def collect(self) -> Iterator[GaugeMetricFamily]:
        families: Dict[MetricDescriptor, GaugeMetricFamily] = {}
        for sample in self._sink.samples():
            family = families.get(sample.descriptor)
            if family is None:
                family = GaugeMetricFamily(
                    sample.descriptor.name,
                    sample.descriptor.help,
                    labels=list(sample.descriptor.label_names),
                )
                families[sample.descriptor] = family
            family.add_metric(list(sample.label_values), sample.value)
        yield from families.values()
