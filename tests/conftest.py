# tests/conftest.py
"""Shared test fixtures.

Backends used by most tests are in-process: MemoryStorage, MemoryObjectStore
and LocalKeyManagementClient. Cloud adapters are tested against
MagicMock SDK clients in tests/unit/backends.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from strata.backends.kms import LocalKeyManagementClient
from strata.backends.memory import MemoryStorage
from strata.backends.objectstore import MemoryObjectStore

TEST_BUCKET = "test-bucket"
EPOCH = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


class IncrementingClock:
    """Deterministic clock: each call is one millisecond after the last."""

    def __init__(self, start: datetime = EPOCH, step: timedelta = timedelta(milliseconds=1)) -> None:
        self.current = start - step
        self.step = step

    def __call__(self) -> datetime:
        self.current += self.step
        return self.current


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def object_store() -> MemoryObjectStore:
    return MemoryObjectStore(buckets=[TEST_BUCKET])


@pytest.fixture
def kms() -> LocalKeyManagementClient:
    return LocalKeyManagementClient(bytes(range(32)))


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return IncrementingClock()


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Keep structlog configuration from leaking between tests."""
    yield
    structlog.reset_defaults()


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
