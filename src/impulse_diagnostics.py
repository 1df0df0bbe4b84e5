"""Impulse and force diagnostics computed from the solver state and its history."""

import numpy as np
import pandas as pd


def impulse(body, ambient, images):
    """
    Vortex impulse P of the free and bound vorticity (unit density).

    From the 1/z term of the complex potential at infinity:
    P = -i exp(iα) c1 Σ Γζ (ambient and image blobs) - 2π exp(iα) c1 A_1.

    A uniform stream U∞ contributes through its Galilean equivalent, the body
    translating at -U∞ in still fluid: A_1 gains conj(b) - b c_{-1} / c1.
    """
    total = np.sum(images.strengths * images.positions)
    if ambient is not None and len(ambient):
        total = total + np.sum(ambient.strengths * ambient.positions)

    a1 = images.multipole[0]
    if images.freestream != 0:
        c_m1 = body.ccoeff[2] if len(body.ccoeff) > 2 else 0j
        a1 = a1 + np.conj(images.freestream) - images.freestream * c_m1 / body.c1

    scale = body.rotation * body.c1
    return complex(-1j * scale * total - 2 * np.pi * scale * a1)


def force_history(results_df, chord=1.0, speed=1.0):
    """Force f = -dP/dt by finite differences of the impulse history, with coefficients"""
    time = results_df['time'].to_numpy(dtype=float)
    P = results_df['impulse'].to_numpy(dtype=complex)
    f = -np.diff(P) / np.diff(time)
    norm = 0.5 * speed**2 * chord
    return pd.DataFrame({
        'time': time[1:],
        'fx': f.real,
        'fy': f.imag,
        'C_D': f.real / norm,
        'C_L': f.imag / norm,
    })


def impulse_jumps(results_df):
    """|P_{n+1} - P_n| between consecutive history rows"""
    return np.abs(np.diff(results_df['impulse'].to_numpy(dtype=complex)))


def circulation_drift(results_df):
    """Departure of ambient plus bound circulation from zero, per row"""
    return np.abs(results_df['ambient_circulation'].to_numpy(dtype=float)
                  + results_df['bound_circulation'].to_numpy(dtype=float))
