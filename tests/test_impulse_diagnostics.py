"""
Pytest tests for the impulse and force diagnostics.
"""

import numpy as np
import pandas as pd
import pytest

from body_motion import RigidBodyMotion
from conformal_body import PowerMap
from impulse_diagnostics import circulation_drift, force_history, impulse, impulse_jumps
from no_flow_through import BoundaryEnforcer
from vortex_blobs import VortexBlobSystem


def test_translating_circle_impulse():
    """Bound vorticity of a circle of radius a moving at U carries impulse 2πa²U"""
    circle = PowerMap([1.5], center=0.3j)
    U = -1.0 + 0.5j
    images = BoundaryEnforcer(circle).enforce(RigidBodyMotion.constant(U))
    assert impulse(circle, None, images) == pytest.approx(2 * np.pi * 1.5**2 * U)


def test_vortex_pair_impulse():
    """A blob and its image on a stationary unit circle: P = -i Γ (ζ - 1/conj(ζ))"""
    circle = PowerMap([1.0])
    ambient = VortexBlobSystem(0.0, [2.0 + 0j], [1.0])
    images = BoundaryEnforcer(circle).enforce(RigidBodyMotion.constant(), ambient)
    assert impulse(circle, ambient, images) == pytest.approx(-1j * (2.0 - 0.5))


def test_force_history():
    df = pd.DataFrame({
        'time': [0.0, 0.1, 0.2],
        'impulse': [0j, -0.1j, -0.2j],
    })
    forces = force_history(df, chord=1.0, speed=1.0)
    assert np.allclose(forces['time'], [0.1, 0.2])
    assert np.allclose(forces['fy'], 1.0)
    assert np.allclose(forces['fx'], 0.0)
    assert np.allclose(forces['C_L'], 2.0)


def test_impulse_jumps_and_drift():
    df = pd.DataFrame({
        'impulse': [0j, 3 + 4j, 3 + 4j],
        'ambient_circulation': [0.0, 0.5, 1.0],
        'bound_circulation': [0.0, -0.5, -0.75],
    })
    assert np.allclose(impulse_jumps(df), [5.0, 0.0])
    assert np.allclose(circulation_drift(df), [0.0, 0.0, 0.25])


@pytest.mark.parametrize("U", [1.0 + 0j, 0.4 - 0.9j])
def test_freestream_impulse_matches_opposite_motion(wavy_body, U):
    """Fixed body in a stream U carries the impulse of the body moving at -U through still fluid"""
    ambient = VortexBlobSystem(0.02, [2.0 + 0.5j, -1.5 + 1.5j], [0.7, -0.3])
    still = RigidBodyMotion.constant()
    in_stream = BoundaryEnforcer(wavy_body, U).enforce(still, ambient)
    moving = BoundaryEnforcer(wavy_body).enforce(RigidBodyMotion.constant(-U), ambient)
    assert impulse(wavy_body, ambient, in_stream) == pytest.approx(impulse(wavy_body, ambient, moving))


def test_circle_in_freestream_impulse():
    circle = PowerMap([1.5], center=0.3j)
    U = 2.0 - 0.5j
    images = BoundaryEnforcer(circle, U).enforce(RigidBodyMotion.constant())
    assert impulse(circle, None, images) == pytest.approx(-2 * np.pi * 1.5**2 * U)
