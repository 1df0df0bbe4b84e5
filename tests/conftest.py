"""
Shared pytest fixtures for the test suite.

Bodies are cheap to build except for the polygon maps, which solve a small
parameter problem, so those are module scoped.
"""

import numpy as np
import pytest

from body_motion import RigidBodyMotion
from conformal_body import PolygonMap, PowerMap, polygon


ALPHA = -20 * np.pi / 180


@pytest.fixture
def plate():
    """Unit-chord flat plate (two-point polygon) at 20 degrees incidence"""
    return PolygonMap(polygon([-0.5, 0.5], [0.0, 0.0]), center=0j, angle=ALPHA)


@pytest.fixture
def power_plate():
    """The same plate from Joukowski coefficients"""
    return PowerMap([0.25, 0.0, 0.25], center=0j, angle=ALPHA)


@pytest.fixture
def wavy_body():
    """Smooth power-series body with an offset centre and no sharp edges"""
    ccoeff = [1.0, 0.1 + 0.05j, 0.0, 0.1, 0.1 * np.exp(1j * np.pi / 4)]
    return PowerMap(ccoeff, center=0.3 + 0.2j, angle=np.pi / 5)


@pytest.fixture(scope="module")
def square():
    return PolygonMap(polygon([-1.0, 1.0, 1.0, -1.0], [-1.0, -1.0, 1.0, 1.0]))


@pytest.fixture
def translating():
    """Body moving to the left at unit speed"""
    return RigidBodyMotion.constant(cdot=-1.0 + 0j)
