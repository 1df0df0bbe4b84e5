"""
Pytest tests for the edge-condition solve.

Tests verify:
1. Kutta condition (critical suction 0) leaves zero tangential velocity at the edge
2. Finite critical values cap the suction parameter at ±s_c
3. Suppressed edges release zero-strength blobs
4. Coincident trial blobs make the system degenerate
5. A freestream past a fixed plate matches the plate moving against still fluid
"""

import numpy as np
import pytest

from body_motion import RigidBodyMotion
from edge_conditions import EdgeConditionSolver
from no_flow_through import BoundaryEnforcer
from shedding_errors import DegenerateEdgeSystem
from vortex_blobs import VortexBlobSystem


DELTA = 0.02


@pytest.fixture
def solver(plate):
    return EdgeConditionSolver(plate, BoundaryEnforcer(plate))


@pytest.fixture
def trial_positions(plate):
    z = np.array([plate.edge_points[e] + 0.015 * plate.outward_direction(e) for e in (0, 1)])
    return plate.inverse_transform(z)


def shed_and_measure(solver, motion, trial_positions, critical_suction):
    ambient = VortexBlobSystem(DELTA)
    flux = solver.solve(motion, ambient, trial_positions, (0, 1), critical_suction, DELTA)
    ambient.append(trial_positions, flux.strengths)
    return flux, solver.suction_parameters((0, 1), motion, ambient)


class TestEdgeConditions:

    def test_suction_before_shedding(self, solver, translating):
        """Plate at -20 degrees moving left: s = -2 sin(α) at the leading edge, +2 sin(α) at the trailing edge"""
        s = solver.suction_parameters((0, 1), translating, VortexBlobSystem(DELTA))
        alpha = -20 * np.pi / 180
        assert np.allclose(s, [2 * np.sin(alpha), -2 * np.sin(alpha)], atol=1e-10)

    def test_kutta_at_trailing_edge(self, solver, translating, trial_positions):
        flux, s = shed_and_measure(solver, translating, trial_positions, (np.inf, 0.0))
        assert abs(s[1]) < 1e-10
        assert flux.strengths[0] == 0.0
        assert flux.strengths[1] > 0.0
        assert list(flux.shedding) == [False, True]

    def test_kutta_at_both_edges(self, solver, translating, trial_positions):
        flux, s = shed_and_measure(solver, translating, trial_positions, (0.0, 0.0))
        assert np.all(np.abs(s) < 1e-10)
        assert np.all(flux.shedding)

    def test_critical_suction_caps_leading_edge(self, solver, translating, trial_positions):
        flux, s = shed_and_measure(solver, translating, trial_positions, (0.05, 0.0))
        assert abs(flux.suction[0]) > 0.05
        assert abs(s[0]) == pytest.approx(0.05, abs=1e-10)
        assert np.sign(s[0]) == np.sign(flux.suction[0])
        assert abs(s[1]) < 1e-10

    @pytest.mark.parametrize("critical", [(np.inf, np.inf), (1e6, 1e6)])
    def test_quiescent_edges(self, solver, translating, trial_positions, critical):
        flux, _ = shed_and_measure(solver, translating, trial_positions, critical)
        assert np.all(flux.strengths == 0.0)
        assert not flux.shedding.any()

    def test_coincident_trial_blobs(self, solver, translating):
        trial = np.array([1.3 + 0j, 1.3 + 0j])
        with pytest.raises(DegenerateEdgeSystem):
            solver.solve(translating, VortexBlobSystem(DELTA), trial, (0, 1), (0.0, 0.0), DELTA)

    def test_suction_scale(self, solver):
        assert solver.suction_scale == pytest.approx(0.25)

    def test_freestream_matches_opposite_motion(self, plate, trial_positions):
        """A stream U past the fixed plate and the plate moving at -U see the same edge suction"""
        ambient = VortexBlobSystem(DELTA, trial_positions, [0.3, -0.2])
        U = 1.0 + 0.2j
        in_stream = EdgeConditionSolver(plate, BoundaryEnforcer(plate, U))
        moving = EdgeConditionSolver(plate, BoundaryEnforcer(plate))
        s_stream = in_stream.suction_parameters((0, 1), RigidBodyMotion.constant(), ambient)
        s_moving = moving.suction_parameters((0, 1), RigidBodyMotion.constant(-U), ambient)
        assert np.allclose(s_stream, s_moving, atol=1e-12)
        assert np.max(np.abs(s_stream)) > 1e-3
