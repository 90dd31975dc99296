"""Shared fixtures: sample grasps, a tabletop scene and a stand-in logger."""

from unittest.mock import MagicMock

import numpy as np
import pytest

from grasp_ros2.grasp import Grasp


@pytest.fixture
def make_grasp():
    def _make(bottom=(0.0, 0.0, 0.0), score=1.0, approach=(1.0, 0.0, 0.0), binormal=(0.0, 1.0, 0.0)):
        bottom = np.asarray(bottom, dtype=np.float64)
        approach = np.asarray(approach, dtype=np.float64)
        return Grasp(
            bottom=bottom,
            top=bottom + 0.06 * approach,
            approach=approach,
            binormal=binormal,
            width=0.04,
            score=score,
        )
    return _make


@pytest.fixture
def logger():
    return MagicMock()


@pytest.fixture
def tabletop_points():
    """20x20 grid table at z=0 plus a 5x5x5 block standing on it."""
    rng = np.random.default_rng(0)
    xs, ys = np.meshgrid(np.linspace(-0.2, 0.2, 20), np.linspace(-0.2, 0.2, 20))
    table = np.column_stack((xs.ravel(), ys.ravel(), rng.normal(0.0, 0.001, xs.size)))
    g = np.linspace(-0.02, 0.02, 5)
    bx, by, bz = np.meshgrid(g, g, np.linspace(0.05, 0.09, 5))
    block = np.column_stack((bx.ravel(), by.ravel(), bz.ravel()))
    return np.vstack((table, block))
