"""
Configuration for vortex shedding runs.

Dataclass-based configuration that can be loaded from YAML or constructed programmatically.
Complex values (positions, velocities, map coefficients) are written as [re, im] pairs.
"""

from dataclasses import asdict, dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import yaml

from body_motion import RigidBodyMotion, setup_kinematics
from conformal_body import PolygonMap, PowerMap, linked_lines, naca4, polygon
from vortex_shedding import TimeMarcher


@dataclass
class BodyConfig:
    """Body geometry and initial placement."""

    kind: str = "polygon"          # 'polygon', 'linked_lines', 'naca4' or 'power'
    x: List[float] = field(default_factory=lambda: [-0.5, 0.5])
    y: List[float] = field(default_factory=lambda: [0.0, 0.0])
    coefficients: List[Any] = field(default_factory=list)  # [c1, c0, c_-1, ...] for 'power'
    center: Any = (0.0, 0.0)
    angle_deg: float = -20.0
    n_terms: int = 1024            # Laurent terms kept for polygon maps
    naca: str = "0012"             # 4-digit designation for 'naca4'
    n_points: int = 20             # stations per surface for 'naca4'
    chord: float = 1.0


@dataclass
class MotionConfig:
    """Rigid-body motion law."""

    mode: str = "constant"         # 'constant', 'oscillation', 'file'
    cdot: Any = (-1.0, 0.0)
    alphadot: float = 0.0
    freestream: Any = (0.0, 0.0)   # uniform stream at infinity

    # oscillation mode
    U: Any = (-1.0, 0.0)
    heave_amplitude: float = 0.0
    pitch_amplitude: float = 0.0
    omega: float = 1.0
    heave_phase: float = 0.0
    pitch_phase: float = 0.0

    # file mode: columns time, u, v, alphadot
    motion_file: Optional[str] = None


@dataclass
class SheddingConfig:
    """Edge designation and shedding placement."""

    edges: List[int] = field(default_factory=lambda: [0, 1])
    critical_suction: List[float] = field(default_factory=lambda: [float("inf"), 0.0])
    shed_fraction: float = 1.0 / 3.0
    initial_offset: float = 3.0
    reference_speed: float = 1.0


@dataclass
class NumericsConfig:
    """Time marching and map inversion settings."""

    dt: float = 5e-3
    final_time: float = 0.5
    delta: float = 0.02            # Blob radius
    sample_interval: float = 0.25
    integrator: str = "euler"      # 'euler' or 'rk4'
    inverse_tol: float = 1e-10
    max_iter: int = 60


@dataclass
class SimulationConfig:
    """Complete run configuration."""

    body: BodyConfig = field(default_factory=BodyConfig)
    motion: MotionConfig = field(default_factory=MotionConfig)
    shedding: SheddingConfig = field(default_factory=SheddingConfig)
    numerics: NumericsConfig = field(default_factory=NumericsConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _to_complex(value) -> complex:
    """[re, im] pairs, numbers and strings like '-1+0j' to complex"""
    if isinstance(value, str):
        return complex(value.replace(" ", ""))
    if isinstance(value, (list, tuple)):
        if len(value) != 2:
            raise ValueError(f"complex values must be [re, im] pairs, got {value}")
        return complex(float(value[0]), float(value[1]))
    return complex(value)


def _coerce_type(value, field_type):
    """Numbers written as YAML strings ("5e-3", "inf") to the declared field type"""
    if isinstance(value, str) and field_type in (float, int):
        try:
            return field_type(value)
        except ValueError:
            return value
    if field_type == List[float] and isinstance(value, list):
        return [float(v) for v in value]
    return value


def _dict_to_dataclass(cls, data: dict):
    """Nested dict -> dataclass; keys the dataclass does not declare are dropped"""
    field_types = {f.name: f.type for f in fields(cls)}
    kwargs = {}
    for key, value in data.items():
        target = field_types.get(key)
        if target is None:
            continue
        if is_dataclass(target) and isinstance(value, dict):
            kwargs[key] = _dict_to_dataclass(target, value)
        else:
            kwargs[key] = _coerce_type(value, target)
    return cls(**kwargs)


def from_dict(data: Dict[str, Any]) -> SimulationConfig:
    """
    Create SimulationConfig from a dictionary.

    Missing sections and keys fall back to the flat-plate defaults.
    """
    return _dict_to_dataclass(SimulationConfig, data or {})


def load_yaml(path: Union[str, Path]) -> SimulationConfig:
    """
    Load simulation configuration from a YAML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    return from_dict(data)


def build_body(config: BodyConfig, numerics: Optional[NumericsConfig] = None):
    """Conformal body from its configuration section."""
    numerics = numerics or NumericsConfig()
    center = _to_complex(config.center)
    angle = np.radians(config.angle_deg)

    if config.kind == "power":
        ccoeff = [_to_complex(c) for c in config.coefficients]
        return PowerMap(ccoeff, center, angle, inverse_tol=numerics.inverse_tol, max_iter=numerics.max_iter)
    elif config.kind == "polygon":
        vertices = polygon(config.x, config.y)
    elif config.kind == "linked_lines":
        vertices = linked_lines(config.x, config.y)
    elif config.kind == "naca4":
        digits = str(config.naca).zfill(4)
        if len(digits) != 4 or not digits.isdigit():
            raise ValueError(f"Invalid NACA designation: {config.naca}")
        vertices = naca4(int(digits[0]) / 100, int(digits[1]) / 10, int(digits[2:]) / 100,
                         n_points=config.n_points, chord=config.chord)
    else:
        raise ValueError(f"Invalid body kind: {config.kind}")

    return PolygonMap(vertices, center, angle, n_terms=config.n_terms,
                      inverse_tol=numerics.inverse_tol, max_iter=numerics.max_iter)


def build_motion(config: MotionConfig) -> RigidBodyMotion:
    """Rigid-body motion from its configuration section."""
    kinematics = setup_kinematics(
        config.mode,
        cdot=_to_complex(config.cdot),
        alphadot=config.alphadot,
        U=_to_complex(config.U),
        heave_amplitude=config.heave_amplitude,
        pitch_amplitude=config.pitch_amplitude,
        omega=config.omega,
        heave_phase=config.heave_phase,
        pitch_phase=config.pitch_phase,
        motion_file=config.motion_file,
    )
    return RigidBodyMotion(kinematics)


def build_simulation(config: SimulationConfig) -> TimeMarcher:
    """Ready-to-run time marcher for a configuration."""
    body = build_body(config.body, config.numerics)
    motion = build_motion(config.motion)
    shedding = config.shedding
    numerics = config.numerics

    return TimeMarcher(
        body,
        motion,
        edges=tuple(shedding.edges),
        critical_suction=tuple(shedding.critical_suction),
        dt=numerics.dt,
        delta=numerics.delta,
        shed_fraction=shedding.shed_fraction,
        initial_offset=shedding.initial_offset,
        sample_interval=numerics.sample_interval,
        reference_speed=shedding.reference_speed,
        integrator=numerics.integrator,
        freestream=_to_complex(config.motion.freestream),
    )
