"""Rigid-body kinematics: motion laws and the instantaneous body state they drive."""

from pathlib import Path

import numpy as np
import pandas as pd
from scipy.interpolate import interp1d


# KINEMATICS LAWS

def constant_kinematics(cdot=0j, alphadot=0.0):
    """Steady translation and rotation"""
    cdot = complex(cdot)
    alphadot = float(alphadot)
    return lambda t: (cdot, 0j, alphadot, 0.0)


def oscillation_kinematics(U=1.0, heave_amplitude=0.0, pitch_amplitude=0.0,
                           omega=1.0, heave_phase=0.0, pitch_phase=0.0):
    """
    Steady translation with superposed sinusoidal heave and pitch.

    Heave h(t) = A_h sin(Ωt + φ_h) acts normal to the mean path, pitch
    α(t) - α0 = A_α sin(Ωt + φ_α) about the body reference point.
    """
    U = complex(U)

    def kinematics(t):
        h_dot = heave_amplitude * omega * np.cos(omega * t + heave_phase)
        h_ddot = -heave_amplitude * omega**2 * np.sin(omega * t + heave_phase)
        a_dot = pitch_amplitude * omega * np.cos(omega * t + pitch_phase)
        a_ddot = -pitch_amplitude * omega**2 * np.sin(omega * t + pitch_phase)
        return U + 1j * h_dot, 1j * h_ddot, a_dot, a_ddot

    return kinematics


def tabulated_kinematics(motion_file):
    """
    Kinematics interpolated from a table with columns time, u, v, alphadot.

    Accelerations are taken from the gradient of the tabulated velocities.
    """
    motion_file = Path(motion_file)
    if motion_file.suffix in ('.xlsx', '.xls'):
        df = pd.read_excel(motion_file)
    else:
        df = pd.read_csv(motion_file)

    time_data = df.iloc[:, 0].values.astype(float)
    u = df.iloc[:, 1].values.astype(float)
    v = df.iloc[:, 2].values.astype(float)
    alphadot = df.iloc[:, 3].values.astype(float) if df.shape[1] > 3 else np.zeros_like(u)

    columns = np.vstack([u, v, alphadot,
                         np.gradient(u, time_data), np.gradient(v, time_data),
                         np.gradient(alphadot, time_data)])
    interpolator = interp1d(time_data, columns, kind='linear', fill_value='extrapolate')

    def kinematics(t):
        u_t, v_t, ad_t, du_t, dv_t, dad_t = interpolator(t)
        return complex(u_t, v_t), complex(du_t, dv_t), float(ad_t), float(dad_t)

    return kinematics


def setup_kinematics(mode, **kwargs):
    """Build a kinematics law t -> (cdot, cddot, alphadot, alphaddot) from a mode name"""
    if mode == 'constant':
        return constant_kinematics(kwargs.get('cdot', 0j), kwargs.get('alphadot', 0.0))

    elif mode == 'oscillation':
        return oscillation_kinematics(
            U=kwargs.get('U', 1.0),
            heave_amplitude=kwargs.get('heave_amplitude', 0.0),
            pitch_amplitude=kwargs.get('pitch_amplitude', 0.0),
            omega=kwargs.get('omega', 1.0),
            heave_phase=kwargs.get('heave_phase', 0.0),
            pitch_phase=kwargs.get('pitch_phase', 0.0),
        )

    elif mode == 'file':
        motion_file = kwargs.get('motion_file')
        if motion_file is None:
            raise ValueError("motion_file must be provided for mode='file'")
        return tabulated_kinematics(motion_file)

    elif mode == 'function':
        kinematics = kwargs.get('kinematics')
        if kinematics is None:
            raise ValueError("kinematics must be provided for mode='function'")
        return kinematics

    else:
        raise ValueError(f"Invalid motion mode: {mode}")


# BODY STATE

class RigidBodyMotion:
    """
    Instantaneous translational and angular rates of the body.

    The four rates always hold the kinematics law evaluated at the time of the
    last update() call.
    """

    def __init__(self, kinematics, t=0.0):
        self.kinematics = kinematics
        self.update(t)

    @classmethod
    def constant(cls, cdot=0j, alphadot=0.0):
        return cls(constant_kinematics(cdot, alphadot))

    def update(self, t):
        cdot, cddot, alphadot, alphaddot = self.kinematics(t)
        self.t = float(t)
        self.cdot = complex(cdot)
        self.cddot = complex(cddot)
        self.alphadot = float(alphadot)
        self.alphaddot = float(alphaddot)
        return self

    def body_velocity(self, z, center):
        """Velocity of the rigid body at physical points z"""
        return self.cdot + 1j * self.alphadot * (np.asarray(z) - center)

    def __repr__(self):
        return (f"RigidBodyMotion(t={self.t:.4g}, cdot={self.cdot:.4g}, "
                f"alphadot={self.alphadot:.4g})")
