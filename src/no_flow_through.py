"""No-flow-through enforcement on the unit circle: blob images and the body-motion multipole."""

from dataclasses import dataclass

import numpy as np
from numba import njit, prange

from vortex_blobs import blob_velocities


# NUMBA KERNELS

@njit(parallel=True, fastmath=True)
def multipole_velocity_numba(zeta, coeffs):
    """Numba kernel: d/dζ of Σ A_n ζ^{-n} = -Σ n A_n ζ^{-n-1}"""
    M = len(zeta)
    N = len(coeffs)
    out = np.empty(M, dtype=np.complex128)

    for j in prange(M):
        inv = 1.0 / zeta[j]
        acc = 0j
        for n in range(N, 0, -1):
            acc = (acc + n * coeffs[n - 1]) * inv
        out[j] = -acc * inv

    return out


# IMAGE SYSTEM

@dataclass
class ImageSystem:
    """
    Singularities inside the unit circle for one instant of the flow.

    Attributes:
        positions: Image blob positions 1/conj(ζ_k)
        strengths: Image circulations -Γ_k
        delta: Blob radius shared with the ambient system
        multipole: Coefficients A_1..A_N of the body-motion potential Σ A_n ζ^{-n}
        freestream: Coefficient b of the uniform stream b ζ and its image conj(b)/ζ
    """
    positions: np.ndarray
    strengths: np.ndarray
    delta: float
    multipole: np.ndarray
    freestream: complex = 0j

    @property
    def circulation(self):
        """Bound circulation of the body"""
        return float(self.strengths.sum())

    def velocity(self, zeta):
        """Circle-plane complex velocity of the images, the motion multipole and the freestream"""
        zeta = np.asarray(zeta, dtype=np.complex128)
        flat = np.ascontiguousarray(zeta.ravel())
        w = blob_velocities(flat, self.positions, self.strengths, self.delta)
        if len(self.multipole) and len(flat):
            w = w + multipole_velocity_numba(flat, self.multipole)
        if self.freestream != 0:
            w = w + self.freestream - np.conj(self.freestream) / flat**2
        return w.reshape(zeta.shape)


class BoundaryEnforcer:
    """
    Builds the image system that cancels flow through the body surface.

    Each ambient blob at ζ_k gets a mirror blob of strength -Γ_k at 1/conj(ζ_k),
    so the images add no net circulation. Rigid-body translation Żr and rotation
    α̇ are represented by a multipole at the circle centre,

        A_n = p c_{-n} - [n = 1] conj(p c1) - i α̇ R_n,   p = conj(Żr) exp(iα),

    where R_n are the Fourier moments of |z̃|² on the circle. For a circle of
    radius a this reduces to the doublet -Żr a²/(z - Zr) = -Żr a/ζ. The
    multipole is exact for power-series bodies; for polygon bodies it is built
    from the truncated Laurent series, so the normal velocity carries a small
    truncation error that is largest next to the corners.

    A uniform stream U∞ enters as b ζ with b = conj(U∞) exp(iα) c1, imaged by
    the centre doublet conj(b)/ζ.
    """

    def __init__(self, body, freestream=0j):
        self.body = body
        self.freestream = complex(freestream)

    def freestream_coefficient(self):
        return np.conj(self.freestream) * self.body.rotation * self.body.c1

    def motion_multipole(self, motion):
        c = self.body.ccoeff
        p = np.conj(motion.cdot) * self.body.rotation
        A = np.zeros(len(c) - 1, dtype=np.complex128)
        A[:len(c) - 2] = p * c[2:]
        A[0] -= np.conj(p * c[0])
        A -= 1j * motion.alphadot * self.body.moment_coefficients()
        return A

    def enforce(self, motion, ambient=None):
        """Fresh image system for the current body placement, motion and ambient blobs"""
        if ambient is None or len(ambient) == 0:
            positions = np.empty(0, dtype=np.complex128)
            strengths = np.empty(0, dtype=np.float64)
            delta = 0.0 if ambient is None else ambient.delta
        else:
            positions = 1.0 / np.conj(ambient.positions)
            strengths = -ambient.strengths
            delta = ambient.delta

        return ImageSystem(np.ascontiguousarray(positions), np.ascontiguousarray(strengths),
                           delta, self.motion_multipole(motion), self.freestream_coefficient())


def circle_plane_velocity(zeta, ambient, images):
    """Total circle-plane complex velocity ŵ(ζ) of ambient blobs plus images and freestream"""
    w = images.velocity(zeta)
    if ambient is not None and len(ambient):
        w = w + ambient.induced_velocity(zeta)
    return w


def boundary_normal_velocity(body, motion, ambient, images, n_points=256, edge_clearance=1e-3):
    """
    Relative normal velocity (fluid minus body) on the physical body surface.

    Points where |dz/dζ| is small (sharp edges) are skipped. Returns the
    circle-plane angles and the normal velocity samples.
    """
    theta = np.linspace(0.0, 2 * np.pi, n_points, endpoint=False) + np.pi / n_points
    zeta = np.exp(1j * theta)
    dz = body.derivative(zeta)
    keep = np.abs(dz) > edge_clearance * abs(body.c1)
    zeta, dz, theta = zeta[keep], dz[keep], theta[keep]

    w = circle_plane_velocity(zeta, ambient, images) / dz
    z = body.transform(zeta)
    normal = zeta * dz / np.abs(dz)
    relative = np.conj(w) - motion.body_velocity(z, body.center)
    return theta, (relative * np.conj(normal)).real
