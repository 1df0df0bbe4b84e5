"""Failure conditions raised by the conformal vortex shedding solver."""


class VortexSheddingError(RuntimeError):
    """Base class for solver failures that abort a simulation run"""


class NonConvergence(VortexSheddingError):
    """Bounded iteration (inverse map, edge-flux active set) did not converge"""


class DegenerateEdgeSystem(VortexSheddingError):
    """Edge-condition linear system is singular or ill-conditioned"""


class DegenerateMap(VortexSheddingError):
    """Map derivative vanishes at a point where it is required"""


class InvalidGeometry(VortexSheddingError, ValueError):
    """Malformed shape descriptor, rejected before any stepping begins"""
