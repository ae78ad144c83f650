#!/usr/bin/env python3
"""Shared pytest fixtures for dump-lite test suite."""

import pytest
import io
import pathlib
import sys
from typing import Any, Dict, List

# Add parent directory to path for imports
sys.path.insert(0, str(pathlib.Path(__file__).parent.parent))

from tests.fixtures.generate_test_data import (
    generate_entities,
    generate_unicode_entities,
    write_dump,
)
from shared.output_sink import OutputSink


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def two_entity_text() -> str:
    """The smallest realistic dump: two entities."""
    return '[\n{"id":"Q1"},\n{"id":"Q2"}\n]'


@pytest.fixture
def entities() -> List[Dict[str, Any]]:
    return generate_entities(25)


@pytest.fixture
def unicode_entities() -> List[Dict[str, Any]]:
    return generate_unicode_entities(30)


# ============================================================================
# File Fixtures
# ============================================================================

@pytest.fixture
def entity_dump(tmp_path, entities) -> pathlib.Path:
    """A bz2 dump of 25 entities."""
    return write_dump(entities, tmp_path / "entities.json.bz2")


@pytest.fixture
def dump_factory(tmp_path):
    """Write arbitrary records to a compressed dump under tmp_path."""
    counter = {"n": 0}

    def make(records, compression="bz2"):
        counter["n"] += 1
        return write_dump(records, tmp_path / f"dump_{counter['n']}.json.{compression}", compression)

    return make


# ============================================================================
# Sink Fixtures
# ============================================================================

@pytest.fixture
def memory_sink():
    """An OutputSink over an in-memory buffer that stays readable after close."""
    buf = io.BytesIO()
    sink = OutputSink(buf, close_stream=False, name="<memory>")
    sink.buffer = buf
    return sink


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Ensure a clean environment for tests."""
    # Remove any existing environment variables that might affect tests
    env_vars_to_remove = ['DUMP_CHUNK_SIZE', 'DUMP_PROGRESS_EVERY', 'DEBUG']
    for var in env_vars_to_remove:
        monkeypatch.delenv(var, raising=False)

    yield


# ============================================================================
# Performance Testing Fixtures
# ============================================================================

@pytest.fixture
def memory_profiler():
    """Setup memory profiling for tests."""
    try:
        from memory_profiler import memory_usage
    except ImportError:
        pytest.skip("memory_profiler not installed")

    def profile_memory(func, *args, **kwargs):
        """Profile memory usage of a function, in MiB."""
        mem_usage, result = memory_usage((func, args, kwargs), interval=0.05, retval=True)
        return {
            "min": min(mem_usage),
            "max": max(mem_usage),
            "start": mem_usage[0],
            "result": result,
        }

    return profile_memory


# ============================================================================
# Test Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")
    config.addinivalue_line("markers", "benchmark: marks benchmark tests")
