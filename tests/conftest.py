# tests/conftest.py
"""Shared test fixtures.

Fixtures:
- workspace: InMemoryWorkspace with four samples across two patients
- registry: MethodRegistry with the sample methods from cytogate.testing
- build: validate raw rows and build a frozen template in one call

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Callable, Mapping
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from cytogate.core.dag.graph import GatingTemplate
from cytogate.core.template.rows import validate_rows
from cytogate.plugins.registry import MethodRegistry
from cytogate.testing import InMemoryWorkspace, count_events, describe_call, failing_method

SAMPLES: dict[str, list[float]] = {
    "s1": [0.1, 0.4, 0.9],
    "s2": [0.2, 0.8],
    "s3": [0.5, 0.6, 0.7, 0.3],
    "s4": [0.9],
}

METADATA: dict[str, dict[str, Any]] = {
    "s1": {"PTID": "p1", "VISIT": "v1"},
    "s2": {"PTID": "p1", "VISIT": "v2"},
    "s3": {"PTID": "p2", "VISIT": "v1"},
    "s4": {"PTID": "p2", "VISIT": "v2"},
}


@pytest.fixture
def workspace() -> InMemoryWorkspace:
    return InMemoryWorkspace(SAMPLES, metadata=METADATA, channels={"CD3": "V450-A", "CD4": "B710-A"})


@pytest.fixture
def registry() -> MethodRegistry:
    registry = MethodRegistry()
    registry.register("mindensity", count_events)
    registry.register("tailgate", count_events)
    registry.register("boolGate", count_events)
    registry.register("refGate", count_events)
    registry.register("describe", describe_call)
    registry.register("broken", failing_method)
    return registry


@pytest.fixture
def build() -> Callable[..., GatingTemplate]:
    def _build(rows: list[Mapping[str, str]], **options: Any) -> GatingTemplate:
        return GatingTemplate.from_rows(validate_rows(rows, **options))

    return _build


# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
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
