"""Vortex shedding from the edges of a moving body, marched in the circle plane of its conformal map."""

import numpy as np
import pandas as pd
from tqdm import tqdm

from body_motion import RigidBodyMotion
from edge_conditions import EdgeConditionSolver
from impulse_diagnostics import impulse
from no_flow_through import BoundaryEnforcer, circle_plane_velocity
from shedding_errors import InvalidGeometry
from vortex_blobs import VortexBlobSystem


# HELPER FUNCTIONS

def blob_rates(body, motion, ambient, images):
    """
    Circle-plane rates dζ/dt of the ambient blobs.

    Each blob moves with the lab-frame fluid velocity conj(ŵ/z'), while the
    circle plane travels with the body: dζ/dt = (ż - Żr - iα̇(z - Zr)) / z'.
    """
    zeta = ambient.positions
    if len(zeta) == 0:
        return np.empty(0, dtype=np.complex128)

    dz = body.derivative(zeta, strict=True)
    w = circle_plane_velocity(zeta, ambient, images) / dz
    z = body.transform(zeta)
    return (np.conj(w) - motion.body_velocity(z, body.center)) / dz


def compute_velocity_field(body, ambient, images, Z):
    """Physical-plane velocity components (u, v) on points Z outside the body"""
    zeta = body.inverse_transform(Z)
    w = circle_plane_velocity(zeta, ambient, images) / body.derivative(zeta)
    velocity = np.conj(w)
    return velocity.real, velocity.imag


def reflect_into_fluid(zeta):
    """Mirror circle-plane positions that drifted inside the unit disk to 1/conj(ζ)"""
    zeta = np.asarray(zeta, dtype=np.complex128)
    inside = np.abs(zeta) < 1.0
    if not np.any(inside):
        return zeta, 0
    zeta = zeta.copy()
    zeta[inside] = 1.0 / np.conj(zeta[inside])
    return zeta, int(np.count_nonzero(inside))


def _shift(state, rates, h):
    return tuple(s + h * r for s, r in zip(state, rates))


# TIME MARCHING CLASS

class TimeMarcher:
    """Inviscid vortex shedding from a rigid body using a conformal map and vortex blobs"""

    def __init__(self, body, motion, edges=(0, 1), critical_suction=(np.inf, 0.0), dt=5e-3,
                 delta=0.02, shed_fraction=1.0 / 3.0, initial_offset=3.0, sample_interval=0.25,
                 reference_speed=1.0, integrator='euler', freestream=0j):
        """
        Initialize the shedding simulation.

        Parameters
        ----------
        body : ConformalMap
            Body shape and placement; its center and angle are advanced in place
        motion : RigidBodyMotion or callable
            Body motion, or a kinematics law t -> (cdot, cddot, alphadot, alphaddot)
        edges : tuple[int]
            Indices into body.edge_prevertices of the shedding edges
        critical_suction : tuple[float]
            Critical edge suction parameter per edge (0 = Kutta condition, inf = no shedding)
        dt : float
            Time step
        delta : float
            Blob regularization radius (circle plane)
        shed_fraction : float
            New blobs sit this fraction of the way from the edge point to the previous blob
        initial_offset : float
            Distance of the first blobs from their edges, in units of dt * reference_speed
        sample_interval : float
            Save a blob snapshot every N time units (0 = only save final state)
        reference_speed : float
            Velocity scale of the edge suction parameter
        integrator : str
            'euler' or 'rk4'
        freestream : complex
            Uniform stream U∞ at infinity, as u + iv
        """
        self.body = body
        self.motion = motion if isinstance(motion, RigidBodyMotion) else RigidBodyMotion(motion)
        self.edges = np.atleast_1d(np.asarray(edges, dtype=int))
        self.critical_suction = np.atleast_1d(np.asarray(critical_suction, dtype=float))
        self.dt = dt
        self.delta = delta
        self.shed_fraction = shed_fraction
        self.initial_offset = initial_offset
        self.sample_interval = sample_interval
        self.reference_speed = reference_speed
        self.integrator = integrator
        self.freestream = complex(freestream)

        n_available = len(body.edge_prevertices)
        for edge in self.edges:
            if edge < 0 or edge >= n_available:
                raise InvalidGeometry(f"edge index {edge} out of range; body has {n_available} edges")
        if len(set(self.edges.tolist())) != len(self.edges):
            raise InvalidGeometry("shedding edges must be distinct")
        if len(self.critical_suction) != len(self.edges):
            raise ValueError("one critical suction parameter is needed per edge")
        if integrator not in ('euler', 'rk4'):
            raise ValueError(f"Invalid integrator: {integrator}")
        if dt <= 0:
            raise ValueError("time step must be positive")

        self.enforcer = BoundaryEnforcer(body, self.freestream)
        self.edge_solver = EdgeConditionSolver(body, self.enforcer, reference_speed)

        self.t0 = 0.0
        self.n_steps = 0
        self.ambient = None
        self.edge_blob_index = None
        self.last_suction = np.zeros(len(self.edges))
        self.n_reflected = 0
        self.results_df = None

    @property
    def t(self):
        return self.t0 + self.n_steps * self.dt

    def initialize(self, t0=0.0):
        """Place the first blob at each edge and give it the edge-condition strength"""
        self.t0 = t0
        self.n_steps = 0
        self.motion.update(t0)

        offset = self.initial_offset * self.dt * self.reference_speed
        z_new = np.array([self.body.edge_points[e] + offset * self.body.outward_direction(e)
                          for e in self.edges])
        zeta_new = self.body.inverse_transform(z_new)

        flux = self.edge_solver.solve(self.motion, VortexBlobSystem(self.delta), zeta_new,
                                      self.edges, self.critical_suction, self.delta)
        self.ambient = VortexBlobSystem(self.delta, zeta_new, flux.strengths)
        self.edge_blob_index = np.arange(len(self.edges))
        self.last_suction = flux.suction
        return self

    def _rates(self, t, state):
        """Body and blob rates at a trial state; placement and positions are restored afterwards"""
        center, angle, zeta = state
        saved = (self.body.center, self.body.angle, self.ambient.positions)
        self.body.center, self.body.angle = center, angle
        self.ambient.set_positions(reflect_into_fluid(zeta)[0])
        try:
            self.motion.update(t)
            images = self.enforcer.enforce(self.motion, self.ambient)
            zeta_dot = blob_rates(self.body, self.motion, self.ambient, images)
            return self.motion.cdot, self.motion.alphadot, zeta_dot
        finally:
            self.body.center, self.body.angle = saved[0], saved[1]
            self.ambient.set_positions(saved[2])

    def advance(self):
        """One time step: advect body and blobs, then shed at the edges"""
        if self.ambient is None:
            self.initialize()

        t, dt = self.t, self.dt
        state = (self.body.center, self.body.angle, self.ambient.positions.copy())

        if self.integrator == 'euler':
            new_state = _shift(state, self._rates(t, state), dt)
        else:
            k1 = self._rates(t, state)
            k2 = self._rates(t + 0.5 * dt, _shift(state, k1, 0.5 * dt))
            k3 = self._rates(t + 0.5 * dt, _shift(state, k2, 0.5 * dt))
            k4 = self._rates(t + dt, _shift(state, k3, dt))
            new_state = tuple(s + dt * (a + 2 * b + 2 * c + d) / 6
                              for s, a, b, c, d in zip(state, k1, k2, k3, k4))

        self.body.center, self.body.angle = complex(new_state[0]), float(new_state[1])
        zeta, n_inside = reflect_into_fluid(new_state[2])
        self.n_reflected += n_inside
        self.ambient.set_positions(zeta)
        self.n_steps += 1

        return self.shed()

    def shed(self):
        """Release one blob per edge, between the edge point and that edge's previous blob"""
        self.motion.update(self.t)
        z_edge = self.body.edge_points[self.edges]
        z_prev = self.body.transform(self.ambient.positions[self.edge_blob_index])
        z_new = self.shed_fraction * z_prev + (1.0 - self.shed_fraction) * z_edge
        zeta_new = self.body.inverse_transform(z_new)

        flux = self.edge_solver.solve(self.motion, self.ambient, zeta_new, self.edges,
                                      self.critical_suction, self.delta)
        self.edge_blob_index = self.ambient.append(zeta_new, flux.strengths)
        self.last_suction = flux.suction
        return flux

    def images(self):
        """Image system for the current state"""
        self.motion.update(self.t)
        return self.enforcer.enforce(self.motion, self.ambient)

    def edge_velocity(self):
        """Tangential circle-plane velocity at each shedding edge for the current state"""
        return self.edge_solver.edge_velocity(self.edges, self.ambient, self.images())

    def snapshot(self):
        """Independent copy of the body placement and blob set"""
        zeta = self.ambient.positions.copy()
        return {
            'time': self.t,
            'center': self.body.center,
            'angle': self.body.angle,
            'zeta': zeta,
            'z': self.body.transform(zeta),
            'gamma': self.ambient.strengths.copy(),
            'delta': self.delta,
        }

    def _record(self, history, save_snapshot):
        images = self.images()
        history['time'].append(self.t)
        history['center'].append(self.body.center)
        history['angle'].append(self.body.angle)
        history['n_blobs'].append(len(self.ambient))
        history['ambient_circulation'].append(self.ambient.total_circulation)
        history['bound_circulation'].append(images.circulation)
        history['impulse'].append(impulse(self.body, self.ambient, images))
        history['edge_suction'].append(self.last_suction.copy())
        history['vortex_field'].append(self.snapshot() if save_snapshot else None)

    def run(self, final_time, progress=True):
        """
        Run simulation to completion.

        Parameters
        ----------
        final_time : float
            Simulation end time
        progress : bool
            Show tqdm progress bar

        Returns
        -------
        results : pd.DataFrame
            One row for the initial state and one per time step
        """
        if self.ambient is None:
            self.initialize()

        num_steps = int(round((final_time - self.t) / self.dt))

        print("Starting conformal vortex shedding simulation...")
        print(f"  Body: {self.body}")
        for edge, crit in zip(self.edges, self.critical_suction):
            state = 'suppressed' if np.isinf(crit) else f'critical suction {crit:.3g}'
            print(f"  Edge {edge} at z = {self.body.edge_points[edge]:.4f}: {state}")
        print(f"  Time step dt = {self.dt:.3e}, final time = {final_time:.3f} ({num_steps} steps)")
        print(f"  Blob radius delta = {self.delta:.3e}, integrator = {self.integrator}")
        if self.freestream != 0:
            print(f"  Freestream U = {self.freestream:.4f}")
        print()

        history = {
            'time': [],
            'center': [],
            'angle': [],
            'n_blobs': [],
            'ambient_circulation': [],
            'bound_circulation': [],
            'impulse': [],
            'edge_suction': [],
            'vortex_field': [],
        }

        next_save_time = self.t + self.sample_interval if self.sample_interval > 0 else np.inf
        self._record(history, True)

        for step in tqdm(range(num_steps), desc="Shedding", mininterval=0.5, unit="step", disable=not progress):
            self.advance()

            save = self.t >= next_save_time - 1e-9 or (self.sample_interval == 0 and step == num_steps - 1)
            if self.t >= next_save_time - 1e-9:
                next_save_time += self.sample_interval
            self._record(history, save)

        print(f"Simulation complete. Total blobs: {len(self.ambient)}, "
              f"shed circulation = {self.ambient.total_circulation:.4f}")
        if self.n_reflected:
            print(f"  {self.n_reflected} blob positions reflected out of the body")

        self.results_df = pd.DataFrame(history)
        return self.results_df

    def save_results(self, filename):
        """Save results DataFrame to pickle file"""
        if self.results_df is None:
            raise ValueError("No results to save. Run simulation first.")
        self.results_df.to_pickle(filename)
        print(f"Results saved to {filename}")

    @staticmethod
    def load_results(filename):
        """Load results DataFrame from pickle file"""
        return pd.read_pickle(filename)
