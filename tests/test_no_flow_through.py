"""
Pytest tests for image systems and the body-motion multipole.

The decisive check is physical: with the images in place, fluid and body share
the same normal velocity everywhere on the body surface.
"""

import numpy as np
import pytest

from body_motion import RigidBodyMotion
from conformal_body import PolygonMap, PowerMap, polygon
from no_flow_through import BoundaryEnforcer, boundary_normal_velocity, circle_plane_velocity
from vortex_blobs import VortexBlobSystem


@pytest.fixture
def ambient():
    return VortexBlobSystem(0.0, [1.5 + 0.3j, -0.8 + 1.6j, 2.5 - 2.0j], [1.0, -0.6, 0.3])


class TestNoPenetration:

    @pytest.mark.parametrize("cdot, alphadot", [
        (0.7 - 0.3j, 0.0),
        (0j, 0.8),
        (0.7 - 0.3j, 0.8),
    ])
    def test_smooth_body(self, wavy_body, ambient, cdot, alphadot):
        motion = RigidBodyMotion.constant(cdot, alphadot)
        images = BoundaryEnforcer(wavy_body).enforce(motion, ambient)
        _, vn = boundary_normal_velocity(wavy_body, motion, ambient, images)
        assert np.max(np.abs(vn)) < 1e-8

    def test_ellipse_without_blobs(self):
        ellipse = PowerMap([0.75, 0.0, 0.25], center=1.0 - 0.5j, angle=0.3)
        motion = RigidBodyMotion.constant(-1.0 + 0.4j, -0.5)
        images = BoundaryEnforcer(ellipse).enforce(motion)
        _, vn = boundary_normal_velocity(ellipse, motion, None, images)
        assert np.max(np.abs(vn)) < 1e-8

    def test_flat_plate_away_from_edges(self, plate, ambient):
        motion = RigidBodyMotion.constant(-1.0 + 0.2j, 0.3)
        images = BoundaryEnforcer(plate).enforce(motion, ambient)
        theta, vn = boundary_normal_velocity(plate, motion, ambient, images)
        assert len(theta) > 200
        assert np.max(np.abs(vn)) < 1e-8

    @pytest.mark.parametrize("cdot, alphadot", [
        (-1.0 + 0.4j, 0.0),
        (0j, 0.8),
    ])
    @pytest.mark.parametrize("x, y", [
        ([-1.0, 1.0, 1.0, -1.0], [-1.0, -1.0, 1.0, 1.0]),
        ([-1.0, 1.0, 0.5, -0.5], [-1.0, -1.0, 1.0, 1.0]),
    ], ids=["square", "trapezoid"])
    def test_polygon_bodies(self, x, y, cdot, alphadot):
        """Truncated Laurent series leave a small normal flow, largest beside the corners"""
        body = PolygonMap(polygon(x, y), center=0.2 - 0.1j, angle=0.4)
        motion = RigidBodyMotion.constant(cdot, alphadot)
        ambient = VortexBlobSystem(0.0, [2.0 + 0.5j, -1.0 + 2.5j], [0.8, -0.4])
        images = BoundaryEnforcer(body).enforce(motion, ambient)
        _, vn = boundary_normal_velocity(body, motion, ambient, images)
        assert np.max(np.abs(vn)) < 2.5e-2
        assert np.median(np.abs(vn)) < 5e-3

    @pytest.mark.parametrize("freestream", [1.0 + 0j, -0.6 + 0.8j])
    def test_smooth_body_in_freestream(self, wavy_body, ambient, freestream):
        motion = RigidBodyMotion.constant(0.3 - 0.2j, 0.5)
        images = BoundaryEnforcer(wavy_body, freestream).enforce(motion, ambient)
        _, vn = boundary_normal_velocity(wavy_body, motion, ambient, images)
        assert np.max(np.abs(vn)) < 1e-8

    def test_flat_plate_in_freestream(self, plate):
        still = RigidBodyMotion.constant()
        images = BoundaryEnforcer(plate, 1.0 + 0j).enforce(still)
        _, vn = boundary_normal_velocity(plate, still, None, images)
        assert np.max(np.abs(vn)) < 1e-8


class TestImageSystem:

    def test_images_cancel_ambient_circulation(self):
        rng = np.random.default_rng(3)
        zeta = 1.2 * np.exp(2j * np.pi * rng.random(10)) * (1 + rng.random(10))
        ambient = VortexBlobSystem(0.02, zeta, rng.normal(size=10))
        images = BoundaryEnforcer(PowerMap([1.0])).enforce(RigidBodyMotion.constant(), ambient)
        assert abs(images.circulation + ambient.total_circulation) < 1e-14
        assert np.allclose(images.positions, 1.0 / np.conj(zeta))

    def test_motion_adds_no_circulation(self, wavy_body):
        motion = RigidBodyMotion.constant(0.7 - 0.3j, 0.8)
        images = BoundaryEnforcer(wavy_body).enforce(motion)
        assert images.circulation == 0.0

        theta = np.linspace(0.0, 2 * np.pi, 128, endpoint=False)
        zeta = 2.0 * np.exp(1j * theta)
        w = circle_plane_velocity(zeta, None, images)
        circulation = np.sum(w * 1j * zeta) * (2 * np.pi / len(theta))
        assert abs(circulation.real) < 1e-10

    def test_translating_circle_is_a_doublet(self):
        circle = PowerMap([2.0])
        U = 1.0 + 0.5j
        images = BoundaryEnforcer(circle).enforce(RigidBodyMotion.constant(U))
        assert np.allclose(images.multipole, [-2.0 * U])

    def test_freestream_coefficient(self):
        circle = PowerMap([2.0], angle=np.pi / 2)
        enforcer = BoundaryEnforcer(circle, 1.0 + 1.0j)
        images = enforcer.enforce(RigidBodyMotion.constant())
        assert images.freestream == pytest.approx((1.0 - 1.0j) * 1j * 2.0)
        assert images.circulation == 0.0
        assert BoundaryEnforcer(circle).enforce(RigidBodyMotion.constant()).freestream == 0j

    def test_rotating_circle_has_no_multipole(self):
        circle = PowerMap([1.0], center=0.5j)
        images = BoundaryEnforcer(circle).enforce(RigidBodyMotion.constant(0j, 2.0))
        assert np.allclose(images.multipole, 0.0)

    def test_enforce_returns_fresh_images(self, wavy_body, ambient):
        enforcer = BoundaryEnforcer(wavy_body)
        motion = RigidBodyMotion.constant(1.0)
        first = enforcer.enforce(motion, ambient)
        ambient.append(3.0 + 3.0j, 0.5)
        second = enforcer.enforce(motion, ambient)
        assert len(first.positions) == 3
        assert len(second.positions) == 4
