"""Example usage of the conformal vortex shedding solver."""

import numpy as np

from body_motion import RigidBodyMotion, setup_kinematics
from conformal_body import PolygonMap, PowerMap, polygon
from impulse_diagnostics import force_history, impulse_jumps
from vortex_shedding import TimeMarcher, compute_velocity_field


# EXAMPLE 1: Flat plate at 20 degrees, trailing-edge shedding only

print("=" * 60)
print("EXAMPLE 1: Impulsively started flat plate")
print("=" * 60)

# Two-point polygon, rotated clockwise so the leading edge (vertex 0) is raised
plate = PolygonMap(polygon([-0.5, 0.5], [0.0, 0.0]), center=0j, angle=-20 * np.pi / 180)
motion = RigidBodyMotion.constant(cdot=-1.0 + 0j)

sim = TimeMarcher(
    plate,
    motion,
    edges=(0, 1),
    critical_suction=(np.inf, 0.0),  # Leading edge suppressed, Kutta condition at the trailing edge
    dt=5e-3,
    delta=0.02,
    sample_interval=0.25
)

results = sim.run(final_time=0.5)

sim.save_results('flat_plate.pkl')
print("\n")


# Load and verify results

print("=" * 60)
print("EXAMPLE: Load and verify results")
print("=" * 60)

results = TimeMarcher.load_results('flat_plate.pkl')

print(f"Results DataFrame shape: {results.shape}")
print(f"Columns: {list(results.columns)}")
print(f"Blobs at end: {results['n_blobs'].iloc[-1]}")
print(f"Snapshots saved: {results['vortex_field'].notna().sum()}")
print(f"Largest impulse jump between steps: {impulse_jumps(results).max():.4f}")
print("\n")


# EXAMPLE 2: Force history

print("=" * 60)
print("EXAMPLE 2: Force coefficients from the impulse")
print("=" * 60)

forces = force_history(results)
print(forces.tail())
print("\n")


# EXAMPLE 3: Velocity field behind the plate

print("=" * 60)
print("EXAMPLE 3: Velocity field on a grid")
print("=" * 60)

xg = np.linspace(-1.5, 1.0, 26) - results['time'].iloc[-1]
yg = np.linspace(-0.6, 0.6, 13)
X, Y = np.meshgrid(xg, yg)
U, V = compute_velocity_field(sim.body, sim.ambient, sim.images(), X + 1j * Y)
print(f"Max speed on grid: {np.nanmax(np.hypot(U, V)):.3f}")
print("\n")


# EXAMPLE 4: Heaving and pitching plate with a leading-edge suction threshold

print("=" * 60)
print("EXAMPLE 4: Oscillating flat plate from power-series coefficients")
print("=" * 60)

a, b = 0.5, 0.0
power_plate = PowerMap([0.5 * (a + b), 0.0, 0.5 * (a - b)], center=0j, angle=0.0)

kinematics = setup_kinematics('oscillation', U=-1.0, heave_amplitude=0.1, pitch_amplitude=np.radians(5.0),
                              omega=2 * np.pi, pitch_phase=np.pi / 2)

sim2 = TimeMarcher(power_plate, kinematics, edges=(0, 1), critical_suction=(0.2, 0.0),
                   dt=1e-2, delta=0.02, sample_interval=0.5, integrator='rk4')
results2 = sim2.run(final_time=1.0)
print(f"Ambient circulation at end: {results2['ambient_circulation'].iloc[-1]:.4f}")
print("\n")


print("=" * 60)
print("All examples complete!")
print("=" * 60)
