"""Edge conditions: strengths of newly released blobs that keep edge velocities finite."""

from typing import NamedTuple

import numpy as np

from no_flow_through import circle_plane_velocity
from shedding_errors import DegenerateEdgeSystem, NonConvergence
from vortex_blobs import blob_velocities


class EdgeFlux(NamedTuple):
    """Outcome of one edge-condition solve"""
    strengths: np.ndarray   # new blob circulations, one per edge
    suction: np.ndarray     # edge suction parameters before release
    shedding: np.ndarray    # edges where vorticity was released


class EdgeConditionSolver:
    """
    Solves for the circulation of one new blob per designated edge.

    At an edge prevertex ζ_e the map derivative vanishes, so the physical
    velocity ŵ/z' stays finite only if the tangential circle-plane velocity
    v_t = Re(i ζ_e ŵ(ζ_e)) is controlled. The edge suction parameter is
    s_e = v_t / (|c1| U_ref). An edge with critical value s_c sheds only when
    |s_e| > s_c, and then to s_e = sign(s_e) s_c; s_c = 0 is the Kutta
    condition and s_c = inf suppresses the edge (its blob keeps zero strength).
    """

    def __init__(self, body, enforcer, reference_speed=1.0, cond_limit=1e12, tol=1e-12):
        self.body = body
        self.enforcer = enforcer
        self.reference_speed = reference_speed
        self.cond_limit = cond_limit
        self.tol = tol

    @property
    def suction_scale(self):
        return abs(self.body.c1) * self.reference_speed

    def edge_velocity(self, edges, ambient, images):
        """Tangential circle-plane velocity at each edge prevertex"""
        zeta_e = self.body.edge_prevertices[np.asarray(edges, dtype=int)]
        w = circle_plane_velocity(zeta_e, ambient, images)
        return (1j * zeta_e * w).real

    def suction_parameters(self, edges, motion, ambient):
        images = self.enforcer.enforce(motion, ambient)
        return self.edge_velocity(edges, ambient, images) / self.suction_scale

    def influence_matrix(self, edges, trial_positions, delta):
        """A[e, j]: edge velocity at edge e from a unit blob (with its image) at trial position j"""
        zeta_e = self.body.edge_prevertices[np.asarray(edges, dtype=int)]
        trial_positions = np.asarray(trial_positions, dtype=np.complex128)
        A = np.empty((len(zeta_e), len(trial_positions)))
        for j, zeta in enumerate(trial_positions):
            pair = np.array([zeta, 1.0 / np.conj(zeta)])
            w = blob_velocities(zeta_e, pair, np.array([1.0, -1.0]), delta)
            A[:, j] = (1j * zeta_e * w).real
        return A

    def _solve_subsystem(self, A, rhs):
        cond = np.linalg.cond(A)
        if not np.isfinite(cond) or cond > self.cond_limit:
            raise DegenerateEdgeSystem(f"edge-condition matrix is ill-conditioned (cond = {cond:.3e})")
        try:
            return np.linalg.solve(A, rhs)
        except np.linalg.LinAlgError as err:
            raise DegenerateEdgeSystem("edge-condition matrix is singular") from err

    def solve(self, motion, ambient, trial_positions, edges, critical_suction, delta=None):
        """
        Strengths of the trial blobs for the given edges.

        Shedding edges are solved jointly; a finite edge left quiescent but
        pushed past its critical value by its neighbours joins the set on the
        next pass.
        """
        edges = np.asarray(edges, dtype=int)
        crit = np.asarray(critical_suction, dtype=float)
        if delta is None:
            delta = ambient.delta if ambient is not None else 0.0

        scale = self.suction_scale
        images = self.enforcer.enforce(motion, ambient)
        v0 = self.edge_velocity(edges, ambient, images)
        A = self.influence_matrix(edges, trial_positions, delta)

        suction = v0 / scale
        finite = np.isfinite(crit)
        signs = np.sign(suction)
        shedding = finite & (np.abs(suction) > crit + self.tol)

        for _ in range(len(edges) + 1):
            strengths = np.zeros(len(edges))
            idx = np.flatnonzero(shedding)
            if len(idx):
                target = signs[idx] * crit[idx] * scale
                strengths[idx] = self._solve_subsystem(A[np.ix_(idx, idx)], target - v0[idx])

            current = (v0 + A @ strengths) / scale
            violated = finite & ~shedding & (np.abs(current) > crit + self.tol)
            if not violated.any():
                return EdgeFlux(strengths, suction, shedding)
            signs[violated] = np.sign(current[violated])
            shedding = shedding | violated

        raise NonConvergence("edge-flux active set did not settle")
