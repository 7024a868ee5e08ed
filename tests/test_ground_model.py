#!/usr/bin/env python3
"""
Unit tests for ground plane classification and updates.
"""

import os
import sys
import threading
import unittest

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from GroundModel import (
    GroundClass, GroundModel, GroundPlane, ground_mask, is_upward_horizontal, signed_distance
)

UP = (0.0, 0.0, 1.0)


class TestGroundClassify(unittest.TestCase):

    def setUp(self):
        self.model = GroundModel(up=UP)

    def test_unknown_before_first_plane(self):
        self.assertEqual(self.model.classify([0, 0, 0], 0.006), GroundClass.UNKNOWN)

    def test_point_on_plane_is_ground(self):
        self.model.update([0, 0, 0.1], [0, 0, 1])
        self.assertEqual(self.model.classify([0.3, -0.2, 0.1], 0.0), GroundClass.GROUND)
        self.assertEqual(self.model.classify([0.3, -0.2, 0.1], 0.006), GroundClass.GROUND)

    def test_point_just_above_eps_is_not_ground(self):
        self.model.update([0, 0, 0.1], [0, 0, 1])
        eps = 0.006
        self.assertEqual(self.model.classify([0, 0, 0.1 + eps + 1e-6], eps), GroundClass.NON_GROUND)

    def test_points_below_plane_are_ground(self):
        self.model.update([0, 0, 0.0], [0, 0, 1])
        self.assertEqual(self.model.classify([0, 0, -0.05], 0.006), GroundClass.GROUND)

    def test_zero_eps_keeps_on_plane_points_as_ground(self):
        self.model.update([0, 0, 0.1], [0, 0, 1])
        plane = self.model.plane()
        pts = np.array([[0.3, -0.2, 0.1], [0.0, 0.0, 0.1 + 1e-6], [0.0, 0.0, 0.05]])
        np.testing.assert_array_equal(ground_mask(pts, plane, 0.0), [True, False, True])
        self.assertEqual(self.model.classify(pts[1], 0.0), GroundClass.NON_GROUND)

    def test_mask_boundary_at_eps(self):
        self.model.update([0, 0, 0.0], [0, 0, 1])
        plane = self.model.plane()
        pts = np.array([[0, 0, 0.25], [0, 0, 0.25 + 1e-9]])
        np.testing.assert_array_equal(ground_mask(pts, plane, 0.25), [True, False])

    def test_vectorised_mask_matches_classify(self):
        self.model.update([0, 0, 0.0], [0, 0, 1])
        plane = self.model.plane()
        pts = np.array([[0, 0, 0.0], [0, 0, 0.005], [0, 0, 0.007], [1, 1, 0.5]])
        np.testing.assert_array_equal(ground_mask(pts, plane, 0.006), [True, True, False, False])
        np.testing.assert_allclose(signed_distance(pts, plane), [0.0, 0.005, 0.007, 0.5])


class TestGroundUpdate(unittest.TestCase):

    def setUp(self):
        self.model = GroundModel(up=UP)

    def test_normal_is_normalised(self):
        self.assertTrue(self.model.update([0, 0, 0], [0, 0, 5.0]))
        np.testing.assert_allclose(self.model.plane().normal, [0, 0, 1])

    def test_rejects_untracked_vertical_and_downward_planes(self):
        self.assertFalse(self.model.update([0, 0, 0], [0, 0, 1], tracked=False))
        self.assertFalse(self.model.update([0, 0, 0], [1, 0, 0]))
        self.assertFalse(self.model.update([0, 0, 0], [0, 0, -1]))
        self.assertFalse(self.model.update([0, 0, 0], [0, 0, 0]))
        self.assertIsNone(self.model.plane())

    def test_most_recent_plane_wins(self):
        self.model.update([0, 0, 0.0], [0, 0, 1])
        self.model.update([0, 0, 0.2], [0, 0.05, 1])
        plane = self.model.plane()
        np.testing.assert_allclose(plane.origin, [0, 0, 0.2])
        self.assertAlmostEqual(float(np.linalg.norm(plane.normal)), 1.0)

    def test_snapshot_is_not_mutated_by_later_updates(self):
        self.model.update([0, 0, 0.0], [0, 0, 1])
        snap = self.model.plane()
        self.model.update([0, 0, 1.0], [0, 0, 1])
        np.testing.assert_allclose(snap.origin, [0, 0, 0.0])

    def test_reset(self):
        self.model.update([0, 0, 0.0], [0, 0, 1])
        self.model.reset()
        self.assertEqual(self.model.classify([0, 0, 0], 0.01), GroundClass.UNKNOWN)

    def test_concurrent_updates_keep_consistent_snapshots(self):
        def writer(z):
            for _ in range(200):
                self.model.update([0, 0, z], [0, 0, 1])

        threads = [threading.Thread(target=writer, args=(z,)) for z in (0.1, 0.2, 0.3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        plane = self.model.plane()
        self.assertIsInstance(plane, GroundPlane)
        self.assertIn(round(float(plane.origin[2]), 3), (0.1, 0.2, 0.3))


class TestUpwardHorizontal(unittest.TestCase):

    def test_tilt_tolerance(self):
        tilted = [0, np.sin(np.deg2rad(10)), np.cos(np.deg2rad(10))]
        steep = [0, np.sin(np.deg2rad(30)), np.cos(np.deg2rad(30))]
        self.assertTrue(is_upward_horizontal(tilted, UP, 15.0))
        self.assertFalse(is_upward_horizontal(steep, UP, 15.0))


if __name__ == "__main__":
    unittest.main()
