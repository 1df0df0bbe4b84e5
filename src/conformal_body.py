"""Conformal maps from the exterior of the unit circle onto the exterior of a rigid body."""

import copy

import numpy as np
from numba import njit, prange
from scipy.optimize import least_squares
from scipy.spatial import cKDTree
from scipy.special import roots_jacobi

from shedding_errors import DegenerateMap, InvalidGeometry, NonConvergence


DEGENERATE_TOL = 1e-12
ROOT_TOL = 1e-8
MAX_BACKTRACK = 30


# NUMBA KERNELS

@njit(parallel=True, fastmath=True)
def laurent_series_numba(zeta, ccoeff):
    """Numba kernel: c1*ζ + c0 + Σ c_{-j} ζ^{-j} by Horner's rule in 1/ζ"""
    M = len(zeta)
    N = len(ccoeff)
    out = np.empty(M, dtype=np.complex128)

    for j in prange(M):
        inv = 1.0 / zeta[j]
        acc = 0j
        for k in range(N - 1, 1, -1):
            acc = (acc + ccoeff[k]) * inv
        out[j] = ccoeff[0] * zeta[j] + ccoeff[1] + acc

    return out


@njit(parallel=True, fastmath=True)
def laurent_derivative_numba(zeta, ccoeff):
    """Numba kernel: c1 - Σ j c_{-j} ζ^{-j-1}"""
    M = len(zeta)
    N = len(ccoeff)
    out = np.empty(M, dtype=np.complex128)

    for j in prange(M):
        inv = 1.0 / zeta[j]
        acc = 0j
        for k in range(N - 1, 1, -1):
            acc = (acc + (k - 1) * ccoeff[k]) * inv
        out[j] = ccoeff[0] - acc * inv

    return out


@njit(parallel=True)
def sc_derivative_numba(zeta, prevertices, betas, scale):
    """Numba kernel: exterior Schwarz-Christoffel integrand C Π (1 - σ_k/ζ)^β_k"""
    M = len(zeta)
    K = len(prevertices)
    out = np.empty(M, dtype=np.complex128)

    for j in prange(M):
        acc = scale
        for k in range(K):
            base = 1.0 - prevertices[k] / zeta[j]
            if base == 0.0:
                if betas[k] > 0.0:
                    acc = 0.0 * acc
                else:
                    acc = complex(np.inf, 0.0)
            else:
                acc = acc * np.exp(betas[k] * np.log(base))
        out[j] = acc

    return out


@njit
def sc_laurent_coefficients_numba(prevertices, betas, n_terms):
    """Coefficients a_m of Π (1 - σ_k x)^β_k = Σ a_m x^m, via the log-derivative recurrence"""
    K = len(prevertices)
    power_sums = np.zeros(n_terms + 1, dtype=np.complex128)
    powers = np.ones(K, dtype=np.complex128)
    for m in range(1, n_terms + 1):
        acc = 0j
        for k in range(K):
            powers[k] = powers[k] * prevertices[k]
            acc += betas[k] * powers[k]
        power_sums[m] = acc

    a = np.zeros(n_terms + 1, dtype=np.complex128)
    a[0] = 1.0
    for m in range(1, n_terms + 1):
        acc = 0j
        for j in range(1, m + 1):
            acc += power_sums[j] * a[m - j]
        a[m] = -acc / m

    return a


# HELPER FUNCTIONS

def _as_complex_array(values):
    """Flatten scalars or arrays into a contiguous complex128 vector, remembering the shape"""
    arr = np.asarray(values, dtype=np.complex128)
    return np.ascontiguousarray(arr.ravel()), arr.shape


def _restore(flat, shape):
    if shape == ():
        return complex(flat[0])
    return flat.reshape(shape)


def polygon(x, y=None):
    """Vertex array (complex) from x and y coordinates or from a complex sequence"""
    if y is None:
        return np.asarray(x, dtype=np.complex128).ravel()
    x = np.asarray(x, dtype=float).ravel()
    y = np.asarray(y, dtype=float).ravel()
    if x.shape != y.shape:
        raise InvalidGeometry("x and y vertex coordinates must have the same length")
    return x + 1j * y


def linked_lines(x, y=None):
    """Vertices of a zero-thickness polyline, traversed out along the line and back"""
    z = polygon(x, y)
    return np.concatenate([z, z[-2:0:-1]])


def naca4(camber, position, thickness, n_points=20, chord=1.0, center=0j):
    """
    Vertices of a NACA 4-digit airfoil, e.g. naca4(0.04, 0.4, 0.12) for a NACA 4412.

    Cosine-spaced stations with the closed trailing-edge thickness law. Vertex 0
    is the trailing edge; the upper surface runs forward to the leading edge and
    the lower surface back, giving 2 * n_points counter-clockwise vertices.
    """
    x = 0.5 * (1.0 - np.cos(np.linspace(0.0, np.pi, n_points + 1)))
    yt = 5 * thickness * (0.2969 * np.sqrt(x) - 0.1260 * x - 0.3516 * x**2
                          + 0.2843 * x**3 - 0.1036 * x**4)

    if camber > 0.0 and 0.0 < position < 1.0:
        fore = x < position
        yc = np.where(fore, camber / position**2 * (2 * position * x - x**2),
                      camber / (1 - position)**2 * ((1 - 2 * position) + 2 * position * x - x**2))
        slope = np.where(fore, 2 * camber / position**2 * (position - x),
                         2 * camber / (1 - position)**2 * (position - x))
    else:
        yc = np.zeros_like(x)
        slope = np.zeros_like(x)

    theta = np.arctan(slope)
    upper = (x - yt * np.sin(theta)) + 1j * (yc + yt * np.cos(theta))
    lower = (x + yt * np.sin(theta)) + 1j * (yc - yt * np.cos(theta))
    upper[-1] = lower[-1] = 1.0 + 0j
    upper[0] = lower[0] = 0j

    z = np.concatenate([upper[::-1], lower[1:-1]])
    return center + chord * (z - 0.5)


def turning_angles(vertices):
    """Signed turning angle at each vertex for a counter-clockwise traversal; reversals count as +π"""
    edges = np.roll(vertices, -1) - vertices
    turn = np.angle(edges / np.roll(edges, 1))
    turn[turn <= -np.pi + 1e-9] = np.pi
    return turn


def _segments_cross(p1, p2, q1, q2):
    """Proper crossing test for two segments (collinear overlaps are not crossings)"""
    def orient(a, b, c):
        return np.sign(((b - a).conjugate() * (c - a)).imag)

    return (orient(p1, p2, q1) * orient(p1, p2, q2) < 0
            and orient(q1, q2, p1) * orient(q1, q2, p2) < 0)


def validate_polygon(vertices):
    """Reject degenerate vertex lists; returns the turning angles"""
    n = len(vertices)
    if n < 2:
        raise InvalidGeometry("a polygon needs at least two vertices")
    if not np.all(np.isfinite(vertices)):
        raise InvalidGeometry("polygon vertices must be finite")
    edges = np.roll(vertices, -1) - vertices
    scale = np.max(np.abs(vertices - vertices.mean()))
    if np.any(np.abs(edges) <= 1e-12 * max(scale, 1.0)):
        raise InvalidGeometry("polygon has repeated consecutive vertices")

    turn = turning_angles(vertices)
    winding = turn.sum() / (2 * np.pi)
    if abs(winding - 1.0) > 1e-6:
        raise InvalidGeometry(
            f"polygon vertices must run counter-clockwise around a simple body (winding {winding:.3f})"
        )

    for i in range(n):
        for j in range(i + 2, n):
            if i == 0 and j == n - 1:
                continue
            if _segments_cross(vertices[i], vertices[(i + 1) % n], vertices[j], vertices[(j + 1) % n]):
                raise InvalidGeometry(f"polygon edges {i} and {j} intersect")

    return turn


# CONFORMAL MAP CLASSES

class ConformalMap:
    """
    Rigid body described by a conformal map of the exterior of the unit circle.

    The physical plane is z(ζ) = Zr + exp(iα) z̃(ζ), where z̃ is the body shape in
    its own frame. Complex numbers stand for planar vectors (real part = x,
    imaginary part = y). The shape is stored as Laurent coefficients
    [c1, c0, c_{-1}, c_{-2}, ...] and never changes after construction;
    the placement (center, angle) is advanced by the time marcher.

    Parameters
    ----------
    ccoeff : array_like of complex
        Laurent coefficients of z̃, highest power first
    center : complex
        Body reference position Zr
    angle : float
        Body rotation α [rad]
    inverse_tol : float
        Relative residual tolerance of the Newton inversion
    max_iter : int
        Newton iteration bound before NonConvergence
    """

    kind = 'conformal'

    def __init__(self, ccoeff, center=0j, angle=0.0, inverse_tol=1e-10, max_iter=60):
        ccoeff = np.asarray(ccoeff, dtype=np.complex128).ravel()
        if len(ccoeff) == 0:
            raise InvalidGeometry("at least the leading coefficient c1 is required")
        if not np.all(np.isfinite(ccoeff)):
            raise InvalidGeometry("map coefficients must be finite")
        if abs(ccoeff[0]) == 0.0:
            raise InvalidGeometry("leading coefficient c1 must be non-zero")

        ccoeff = np.concatenate([ccoeff, np.zeros(max(0, 2 - len(ccoeff)), dtype=np.complex128)])
        nonzero = np.flatnonzero(np.abs(ccoeff[2:]) > 1e-14 * abs(ccoeff[0]))
        n_keep = 2 + (nonzero[-1] + 1 if len(nonzero) else 0)

        self.ccoeff = np.ascontiguousarray(ccoeff[:n_keep])
        self.center = complex(center)
        self.angle = float(angle)
        self.inverse_tol = inverse_tol
        self.max_iter = max_iter

        self._moments = None
        self._seed_tree = None
        self._seed_grid = None
        self._seed_radius = None
        self.edge_prevertices = np.empty(0, dtype=np.complex128)

    @property
    def c1(self):
        return self.ccoeff[0]

    @property
    def rotation(self):
        return np.exp(1j * self.angle)

    @property
    def edge_points(self):
        """Physical-plane locations of the candidate shedding edges"""
        return self.center + self.rotation * self._edge_shape_points()

    def _edge_shape_points(self):
        return laurent_series_numba(self.edge_prevertices, self.ccoeff)

    def _shape_derivative(self, zeta):
        return laurent_derivative_numba(zeta, self.ccoeff)

    def shape_transform(self, zeta):
        """z̃(ζ), the body shape in its own frame"""
        flat, shape = _as_complex_array(zeta)
        return _restore(laurent_series_numba(flat, self.ccoeff), shape)

    def transform(self, zeta):
        """Circle plane -> physical plane"""
        flat, shape = _as_complex_array(zeta)
        z = self.center + self.rotation * laurent_series_numba(flat, self.ccoeff)
        return _restore(z, shape)

    def derivative(self, zeta, strict=False):
        """
        dz/dζ including the body rotation.

        With strict=True a (near) zero derivative raises DegenerateMap; edge
        prevertices legitimately evaluate to zero otherwise.
        """
        flat, shape = _as_complex_array(zeta)
        dz = self.rotation * self._shape_derivative(flat)
        if strict and np.any(np.abs(dz) < DEGENERATE_TOL * abs(self.c1)):
            raise DegenerateMap("map derivative vanishes at a required evaluation point")
        return _restore(dz, shape)

    def _seed(self, target):
        """Initial Newton guesses: nearest point of a cached polar grid, or the asymptotic inverse far away"""
        if self._seed_tree is None:
            radii = 1.0 + np.geomspace(1e-3, 3.0, 40)
            theta = np.linspace(0.0, 2 * np.pi, 256, endpoint=False)
            grid = np.ascontiguousarray((radii[:, None] * np.exp(1j * theta)[None, :]).ravel())
            pts = laurent_series_numba(grid, self.ccoeff)
            self._seed_tree = cKDTree(np.column_stack([pts.real, pts.imag]))
            self._seed_grid = grid
            self._seed_radius = radii[-1]

        far = (target - self.ccoeff[1]) / self.c1
        _, idx = self._seed_tree.query(np.column_stack([target.real, target.imag]))
        seed = self._seed_grid[idx].copy()
        use_far = np.abs(far) > self._seed_radius
        seed[use_far] = far[use_far]
        return seed

    def inverse_transform(self, z):
        """
        Physical plane -> circle plane by damped Newton iteration.

        Steps that increase the residual or enter the unit disk are halved;
        points that cannot be matched within max_iter raise NonConvergence.
        """
        flat, shape = _as_complex_array(z)
        target = np.conj(self.rotation) * (flat - self.center)
        zeta = self._seed(target)
        residual = laurent_series_numba(zeta, self.ccoeff) - target
        tol = self.inverse_tol * max(1.0, abs(self.c1))

        for _ in range(self.max_iter):
            idx = np.flatnonzero(np.abs(residual) > tol)
            if len(idx) == 0:
                return _restore(zeta, shape)

            z0 = zeta[idx]
            r0 = residual[idx]
            goal = target[idx]
            dz = laurent_derivative_numba(z0, self.ccoeff)
            if np.any(np.abs(dz) < DEGENERATE_TOL * abs(self.c1)):
                raise DegenerateMap("map derivative vanished during inverse iteration")

            step = r0 / dz
            lam = np.ones(len(idx))
            trial = z0 - step
            trial_res = laurent_series_numba(trial, self.ccoeff) - goal
            for _ in range(MAX_BACKTRACK):
                reject = (np.abs(trial_res) >= np.abs(r0)) | (np.abs(trial) < 1.0)
                if not reject.any():
                    break
                lam[reject] *= 0.5
                trial[reject] = z0[reject] - lam[reject] * step[reject]
                trial_res[reject] = laurent_series_numba(
                    np.ascontiguousarray(trial[reject]), self.ccoeff) - goal[reject]

            inside = np.abs(trial) < 1.0
            if inside.any():
                trial[inside] /= np.abs(trial[inside])
                trial_res[inside] = laurent_series_numba(
                    np.ascontiguousarray(trial[inside]), self.ccoeff) - goal[inside]

            zeta[idx] = trial
            residual[idx] = trial_res

        worst = np.max(np.abs(residual))
        raise NonConvergence(
            f"inverse map did not converge in {self.max_iter} iterations (residual {worst:.3e})"
        )

    def moment_coefficients(self):
        """R_n = Σ_l b_{l-n} conj(b_l), n >= 1: Fourier data of |z̃|² on the circle"""
        if self._moments is None:
            b = self.ccoeff
            self._moments = np.array([np.vdot(b[:-n], b[n:]) for n in range(1, len(b))],
                                     dtype=np.complex128)
        return self._moments

    def outward_direction(self, edge):
        """Unit vector pointing away from the body at an edge, in the physical plane"""
        sigma = self.edge_prevertices[edge]
        step = self.transform(1.01 * sigma) - self.transform(sigma)
        return step / abs(step)

    def boundary_points(self, n_points=256):
        """Physical-plane outline of the body"""
        theta = np.linspace(0.0, 2 * np.pi, n_points, endpoint=False)
        return self.transform(np.exp(1j * theta))

    def copy(self):
        """Independent placement, shared (immutable) shape data"""
        return copy.copy(self)

    def __repr__(self):
        return (f"{type(self).__name__}(n_coeff={len(self.ccoeff)}, center={self.center:.4g}, "
                f"angle={self.angle:.4g}, edges={len(self.edge_prevertices)})")


class PowerMap(ConformalMap):
    """
    Body given directly by power-series coefficients, z̃ = c1 ζ + c0 + Σ c_{-j} ζ^{-j}.

    An ellipse with semi-axes a, b is [(a+b)/2, 0, (a-b)/2]; b = 0 gives a flat
    plate whose two edges sit at ζ = -1 and ζ = 1. Edges are the zeros of dz̃/dζ
    on the unit circle, ordered counter-clockwise from ζ = -1.
    """

    kind = 'power'

    def __init__(self, ccoeff, center=0j, angle=0.0, inverse_tol=1e-10, max_iter=60):
        super().__init__(ccoeff, center, angle, inverse_tol, max_iter)
        self.edge_prevertices = self._critical_points()

    def _critical_points(self):
        c = self.ccoeff
        n = len(c) - 2
        if n == 0:
            return np.empty(0, dtype=np.complex128)

        poly = np.concatenate([[c[0], 0.0], -np.arange(1, n + 1) * c[2:]])
        roots = np.roots(poly)
        if np.any(np.abs(roots) > 1.0 + ROOT_TOL):
            raise InvalidGeometry("power-series map is not univalent outside the unit circle")

        on_circle = roots[np.abs(np.abs(roots) - 1.0) < ROOT_TOL]
        on_circle = on_circle / np.abs(on_circle)
        order = np.argsort(np.mod(np.angle(on_circle) - np.pi + 1e-9, 2 * np.pi))
        return np.ascontiguousarray(on_circle[order])


class PolygonMap(ConformalMap):
    """
    Polygonal body through the exterior Schwarz-Christoffel transform.

    dz̃/dζ = C Π_k (1 - σ_k/ζ)^β_k with β_k the turning angle at vertex k over π.
    The prevertices σ_k are found by least squares on the exact side integrals
    (Gauss-Jacobi quadrature of the product along the circle), so the fit does
    not depend on series truncation. The integrated map is then kept as an
    n_terms Laurent series for transform, while the derivative uses the exact
    product. Every vertex is a candidate shedding edge.

    Parameters
    ----------
    vertices : array_like of complex
        Counter-clockwise vertices (see polygon() and linked_lines())
    n_terms : int
        Laurent terms retained for the integrated map
    fit_tol : float
        Largest side misfit, relative to the body size, before the vertex
        list is rejected as InvalidGeometry
    """

    kind = 'polygon'

    def __init__(self, vertices, center=0j, angle=0.0, n_terms=1024, inverse_tol=1e-10,
                 max_iter=60, fit_tol=1e-4):
        vertices = np.asarray(vertices, dtype=np.complex128).ravel()
        turn = validate_polygon(vertices)

        self.vertices = vertices
        self.betas = np.ascontiguousarray(turn / np.pi)
        self.n_terms = n_terms

        prevertices, ccoeff = self._solve_parameters(vertices, self.betas, n_terms, fit_tol)
        self.prevertices = prevertices
        super().__init__(ccoeff, center, angle, inverse_tol, max_iter)
        self.edge_prevertices = prevertices

    @staticmethod
    def _shape_series(prevertices, betas, n_terms):
        """Laurent coefficients of the integrated map for C = 1, c0 = 0"""
        a = sc_laurent_coefficients_numba(prevertices, betas, n_terms)
        m = np.arange(2, n_terms + 1)
        return np.concatenate([[1.0 + 0j, 0j], -a[2:] / (m - 1)])

    @staticmethod
    def _side_integrals(theta, betas, rules):
        """
        ∫ Π_k (1 - σ_k/ζ)^β_k dζ along the unit circle from σ_k to σ_{k+1}.

        Gauss-Jacobi rules carry the endpoint singularities |θ - θ_k|^β_k, so
        the remaining integrand is smooth on each arc.
        """
        n = len(theta)
        sigma = np.ascontiguousarray(np.exp(1j * theta))
        theta_next = np.append(theta[1:], theta[0] + 2 * np.pi)
        sides = np.empty(n, dtype=np.complex128)
        for k in range(n):
            x, w, smooth = rules[k]
            half = 0.5 * (theta_next[k] - theta[k])
            zeta = np.ascontiguousarray(np.exp(1j * (theta[k] + half * (1.0 + x))))
            f = sc_derivative_numba(zeta, sigma, betas, 1.0 + 0j)
            sides[k] = np.sum(w * f * 1j * zeta * half * smooth)
        return sides

    @classmethod
    def _solve_parameters(cls, vertices, betas, n_terms, fit_tol, n_nodes=40):
        n = len(vertices)
        scale = np.max(np.abs(vertices - vertices.mean()))
        sides_true = np.roll(vertices, -1) - vertices

        rules = []
        for k in range(n):
            b_left, b_right = betas[k], betas[(k + 1) % n]
            x, w = roots_jacobi(n_nodes, b_right, b_left)
            rules.append((x, w, 1.0 / ((1.0 + x) ** b_left * (1.0 - x) ** b_right)))

        def angles(params):
            weights = np.exp(np.append(params, 0.0))
            gaps = 2 * np.pi * weights / weights.sum()
            return np.pi + np.concatenate([[0.0], np.cumsum(gaps[:-1])])

        def fit(params):
            theta = angles(params)
            sides = cls._side_integrals(theta, betas, rules)
            C = np.vdot(sides, sides_true) / np.vdot(sides, sides)
            misfit = (C * sides - sides_true) / scale
            closure = np.sum(betas * np.exp(1j * theta))
            return theta, C, misfit, closure

        def residuals(params):
            _, _, misfit, closure = fit(params)
            r = np.append(misfit, closure)
            return np.concatenate([r.real, r.imag])

        params = np.zeros(n - 1)
        if n > 2:
            result = least_squares(residuals, params, xtol=1e-12, ftol=1e-12, gtol=1e-12)
            params = result.x

        theta, C, misfit, closure = fit(params)
        if np.max(np.abs(misfit)) > fit_tol or abs(closure) > fit_tol:
            raise InvalidGeometry(
                f"Schwarz-Christoffel parameter problem failed (misfit {np.max(np.abs(misfit)):.2e})"
            )

        sigma = np.ascontiguousarray(np.exp(1j * theta))
        base = cls._shape_series(sigma, betas, n_terms)
        ccoeff = C * base
        ccoeff[1] = np.mean(vertices - C * laurent_series_numba(sigma, base))
        return sigma, ccoeff

    def _edge_shape_points(self):
        return self.vertices

    def _shape_derivative(self, zeta):
        return sc_derivative_numba(zeta, self.prevertices, self.betas, complex(self.c1))
