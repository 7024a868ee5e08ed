import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from config import WORLD_UP, GROUND_MAX_TILT_DEG


class GroundClass(Enum):
    GROUND = "ground"
    NON_GROUND = "non_ground"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class GroundPlane:
    origin: np.ndarray  # (3,) point on plane
    normal: np.ndarray  # (3,) unit, pointing up


def signed_distance(points, plane: GroundPlane):
    """d = n · (p - origin)，points: (N,3) 或 (3,)"""
    return (np.asarray(points, dtype=np.float64) - plane.origin) @ plane.normal


def ground_mask(points, plane: GroundPlane, eps):
    """True = 地面点 (d <= eps)"""
    return signed_distance(points, plane) <= eps


def is_upward_horizontal(normal, up=WORLD_UP, max_tilt_deg=GROUND_MAX_TILT_DEG):
    n = np.asarray(normal, dtype=np.float64)
    norm = np.linalg.norm(n)
    if not np.isfinite(norm) or norm < 1e-9:
        return False
    up = np.asarray(up, dtype=np.float64)
    cos_tilt = float(n @ up) / (norm * np.linalg.norm(up))
    return cos_tilt >= np.cos(np.deg2rad(max_tilt_deg))


class GroundModel:
    """
    Last observed ground plane. Updates replace the whole snapshot, readers
    take one snapshot per frame via plane().
    """

    def __init__(self, up=WORLD_UP, max_tilt_deg=GROUND_MAX_TILT_DEG):
        self.up = np.asarray(up, dtype=np.float64)
        self.max_tilt_deg = max_tilt_deg
        self._plane: Optional[GroundPlane] = None
        self._lock = threading.Lock()

    def plane(self) -> Optional[GroundPlane]:
        with self._lock:
            return self._plane

    def update(self, origin, normal, tracked=True) -> bool:
        """
        Replace the plane if it is tracked, horizontal and facing up.
        Returns True when the plane was accepted.
        """
        if not tracked:
            return False
        origin = np.asarray(origin, dtype=np.float64).reshape(3)
        normal = np.asarray(normal, dtype=np.float64).reshape(3)
        if not np.all(np.isfinite(origin)):
            return False
        if not is_upward_horizontal(normal, self.up, self.max_tilt_deg):
            return False

        plane = GroundPlane(origin=origin, normal=normal / np.linalg.norm(normal))
        with self._lock:
            self._plane = plane
        return True

    def reset(self):
        with self._lock:
            self._plane = None

    def classify(self, point, eps) -> GroundClass:
        plane = self.plane()
        if plane is None:
            return GroundClass.UNKNOWN
        if float(signed_distance(point, plane)) <= eps:
            return GroundClass.GROUND
        return GroundClass.NON_GROUND
