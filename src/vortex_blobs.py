"""Regularized point vortices (blobs) in the circle plane."""

from dataclasses import dataclass

import numpy as np
from numba import njit, prange


# NUMBA KERNELS

@njit(parallel=True, fastmath=True)
def blob_velocities_numba(targets, sources, gammas, delta):
    """
    Numba kernel: complex velocity w = u - iv induced at targets by blobs.

    Regularized Biot-Savart: w = Σ Γ conj(Δ) / (2πi (|Δ|² + δ²)); coincident
    points contribute nothing, so a blob does not advect itself.
    """
    M = len(targets)
    N = len(sources)
    W = np.empty(M, dtype=np.complex128)
    delta_sq = delta * delta
    factor = 1.0 / (2j * np.pi)

    for j in prange(M):
        w_total = 0j

        for i in range(N):
            DX = targets[j].real - sources[i].real
            DY = targets[j].imag - sources[i].imag
            R_sq = DX * DX + DY * DY

            if R_sq > 1e-28:
                w_total += gammas[i] * complex(DX, -DY) / (R_sq + delta_sq)

        W[j] = factor * w_total

    return W


def blob_velocities(targets, sources, gammas, delta):
    """Velocity at arbitrary points (any shape) from blob sources"""
    targets = np.asarray(targets, dtype=np.complex128)
    shape = targets.shape
    flat = np.ascontiguousarray(targets.ravel())
    if len(flat) == 0 or len(sources) == 0:
        return np.zeros(shape, dtype=np.complex128)

    W = blob_velocities_numba(flat,
                              np.ascontiguousarray(sources, dtype=np.complex128),
                              np.ascontiguousarray(gammas, dtype=np.float64),
                              float(delta))
    return W.reshape(shape)


# BLOB DATA

@dataclass
class VortexBlob:
    """
    A single regularized vortex.

    Attributes:
        zeta: Circle-plane position
        gamma: Circulation (positive counter-clockwise)
        delta: Regularization radius
    """
    zeta: complex
    gamma: float
    delta: float


class VortexBlobSystem:
    """
    Ordered, append-only set of blobs sharing one regularization radius.

    Insertion order is significant: each shedding step appends one blob per edge,
    and the positions of the latest group seed the next step's placement. Blobs
    are never removed; advection updates positions in place.
    """

    def __init__(self, delta, positions=(), strengths=()):
        if delta < 0:
            raise ValueError("blob radius must be non-negative")
        self.delta = float(delta)
        self._zeta = np.asarray(positions, dtype=np.complex128).ravel().copy()
        self._gamma = np.asarray(strengths, dtype=np.float64).ravel().copy()
        if self._zeta.shape != self._gamma.shape:
            raise ValueError("positions and strengths must have the same length")
        self.last_appended = np.arange(len(self._zeta))

    def __len__(self):
        return len(self._zeta)

    def __getitem__(self, index):
        return VortexBlob(complex(self._zeta[index]), float(self._gamma[index]), self.delta)

    def __iter__(self):
        for i in range(len(self)):
            yield self[i]

    @property
    def positions(self):
        return self._zeta

    @property
    def strengths(self):
        return self._gamma

    @property
    def total_circulation(self):
        return float(self._gamma.sum())

    def append(self, zeta, gamma):
        """Append blobs in order; returns their indices"""
        zeta = np.atleast_1d(np.asarray(zeta, dtype=np.complex128))
        gamma = np.atleast_1d(np.asarray(gamma, dtype=np.float64))
        if zeta.shape != gamma.shape:
            raise ValueError("positions and strengths must have the same length")
        start = len(self._zeta)
        self._zeta = np.concatenate([self._zeta, zeta])
        self._gamma = np.concatenate([self._gamma, gamma])
        self.last_appended = np.arange(start, len(self._zeta))
        return self.last_appended

    def set_positions(self, zeta):
        zeta = np.asarray(zeta, dtype=np.complex128)
        if zeta.shape != self._zeta.shape:
            raise ValueError("position update must keep the number of blobs")
        self._zeta = zeta.copy()

    def advect(self, zeta_dot, dt):
        """Forward Euler position update in the circle plane"""
        self.set_positions(self._zeta + dt * np.asarray(zeta_dot))

    def induced_velocity(self, targets):
        """Circle-plane complex velocity induced by these blobs alone"""
        return blob_velocities(targets, self._zeta, self._gamma, self.delta)

    def copy(self):
        new = VortexBlobSystem(self.delta, self._zeta, self._gamma)
        new.last_appended = self.last_appended.copy()
        return new

    def __repr__(self):
        return f"VortexBlobSystem(n={len(self)}, delta={self.delta}, circulation={self.total_circulation:.4g})"
