# tests/conftest.py
"""Shared test fixtures.

Fixtures:
- memory_exporter: InMemoryExporter, already configured
- provider: TracerProvider wired to memory_exporter through a SimpleSpanProcessor
- tracer: Tracer from that provider
- ambient context is reset around every test

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings

from spanline.telemetry.exporters.memory import InMemoryExporter
from spanline.telemetry.processors import SimpleSpanProcessor
from spanline.trace.context import EMPTY_CONTEXT, _CURRENT_CONTEXT
from spanline.trace.resource import Resource
from spanline.trace.tracer import Tracer, TracerProvider

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_ambient_context() -> Iterator[None]:
    """Every test starts with no ambient span."""
    token = _CURRENT_CONTEXT.set(EMPTY_CONTEXT)
    yield
    _CURRENT_CONTEXT.reset(token)


@pytest.fixture
def memory_exporter() -> InMemoryExporter:
    exporter = InMemoryExporter()
    exporter.configure({})
    return exporter


@pytest.fixture
def provider(memory_exporter: InMemoryExporter) -> Iterator[TracerProvider]:
    tracer_provider = TracerProvider(Resource.create({"service.name": "todo-app", "service.version": "1.0.0"}))
    tracer_provider.add_span_processor(SimpleSpanProcessor(memory_exporter))
    yield tracer_provider
    tracer_provider.shutdown()


@pytest.fixture
def tracer(provider: TracerProvider) -> Tracer:
    return provider.get_tracer("todo-app", "1.0.0")
