"""Pytest fixtures for remoting tests."""

from __future__ import annotations

import os

import pytest
from hypothesis import Phase, Verbosity, settings

settings.register_profile(
    "ci",
    max_examples=100,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)
settings.register_profile(
    "dev",
    max_examples=20,
    deadline=500,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture
def json_headers() -> dict[str, str]:
    return {"content-type": "application/json", "accept": "application/json"}
