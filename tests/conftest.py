"""Shared pytest fixtures."""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pytest
from hypothesis import HealthCheck, settings

settings.register_profile(
    "percolation",
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.load_profile("percolation")


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")
