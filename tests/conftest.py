"""Pytest configuration and shared fixtures."""

import pytest

from barman_exporter.collector.descriptors import build_descriptor_set
from barman_exporter.collector.sink import SampleSink


@pytest.fixture
def descriptors():
    return build_descriptor_set()


@pytest.fixture
def sink():
    return SampleSink()


@pytest.fixture
def write_log(tmp_path):
    """Write a result log into tmp_path and return its path."""

    def _write(name: str, content):
        path = tmp_path / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)
        return path

    return _write
