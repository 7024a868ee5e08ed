# config.py
# 相机内参 / 位姿 / 扫描参数配置
# 适用于 深度反投影、地面剔除、体素聚类、帧率控制

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple
import numpy as np


# ======================
# 相机内参
# ======================
@dataclass(frozen=True)
class CameraIntrinsics:
    fx: float
    fy: float
    cx: float
    cy: float

    width: int = 0
    height: int = 0

    depth_scale: float = 0.001  # RealSense 默认 mm -> m

    def K(self) -> np.ndarray:
        """3x3 内参矩阵"""
        return np.array(
            [
                [self.fx, 0.0, self.cx],
                [0.0, self.fy, self.cy],
                [0.0, 0.0, 1.0],
            ],
            dtype=np.float64,
        )

    def scaled(self, sx: float, sy: float) -> "CameraIntrinsics":
        """intrinsics for an image resized by (sx, sy), e.g. color -> depth resolution"""
        return CameraIntrinsics(
            fx=self.fx * sx,
            fy=self.fy * sy,
            cx=self.cx * sx,
            cy=self.cy * sy,
            width=int(round(self.width * sx)),
            height=int(round(self.height * sy)),
            depth_scale=self.depth_scale,
        )


# ======================
# 位姿（Camera -> World）
# ======================
@dataclass(frozen=True)
class CameraPose:
    R: np.ndarray  # 3x3 rotation
    t: np.ndarray  # 3 translation (meters)

    @classmethod
    def identity(cls) -> "CameraPose":
        return cls(R=np.eye(3, dtype=np.float64), t=np.zeros(3, dtype=np.float64))

    @classmethod
    def from_matrix(cls, T) -> "CameraPose":
        T = np.asarray(T, dtype=np.float64)
        if T.shape != (4, 4):
            raise ValueError(f"pose must be 4x4, got {T.shape}")
        if not np.all(np.isfinite(T)):
            raise ValueError("pose contains non-finite values")
        return cls(R=T[:3, :3].copy(), t=T[:3, 3].copy())

    def matrix(self) -> np.ndarray:
        """4x4 齐次变换矩阵"""
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.R
        T[:3, 3] = self.t
        return T


class TrackingStatus(Enum):
    NORMAL = "normal"
    LIMITED = "limited"
    NOT_AVAILABLE = "not_available"


@dataclass(frozen=True)
class CameraFrame:
    """One frame's camera snapshot. Never mutated while a frame is processed."""
    intrinsics: CameraIntrinsics
    pose: CameraPose = field(default_factory=CameraPose.identity)
    tracking: TrackingStatus = TrackingStatus.NORMAL


# ======================
# 扫描参数（每帧读取一次快照）
# ======================
MIN_STRIDE = 1
MAX_STRIDE = 16


@dataclass(frozen=True)
class TuningState:
    min_depth_m: float = 0.02
    max_depth_m: float = 0.60
    cluster_cell_m: float = 0.012
    ground_eps_m: float = 0.006
    sample_stride: int = 4
    target_fps: float = 15.0
    max_points: int = 50000

    remove_ground: bool = True
    cluster_foot: bool = True
    tracking_only_normal: bool = True
    auto_tune: bool = True

    version: int = 0


DEFAULT_TUNING = TuningState()

# host key -> (TuningState field, type, must be > 0)
CONFIG_FIELDS = {
    "targetFps": ("target_fps", float, True),
    "maxPoints": ("max_points", int, True),
    "minDepthM": ("min_depth_m", float, False),
    "maxDepthM": ("max_depth_m", float, False),
    "removeGround": ("remove_ground", bool, False),
    "clusterFoot": ("cluster_foot", bool, False),
    "trackingOnlyNormal": ("tracking_only_normal", bool, False),
    "clusterCellM": ("cluster_cell_m", float, True),
    "autoTune": ("auto_tune", bool, False),
    "groundEpsM": ("ground_eps_m", float, False),
    "sampleStride": ("sample_stride", int, True),
}


# ======================
# 自动调参：按中位深度分档
# (upper bound of median distance, min_depth, max_depth, cluster_cell, ground_eps)
# ======================
AUTO_TUNE_INTERVAL_S = 0.5
AUTO_TUNE_BANDS: Tuple[Tuple[float, float, float, float, float], ...] = (
    (0.25, 0.03, 0.50, 0.007, 0.008),
    (0.35, 0.025, 0.55, 0.009, 0.007),
    (float("inf"), 0.02, 0.60, 0.012, 0.006),
)


# ======================
# 地面
# ======================
# RealSense 相机坐标系 y 轴朝下，单位位姿时 "上" 是 -y
WORLD_UP = np.array([0.0, -1.0, 0.0], dtype=np.float64)
GROUND_MAX_TILT_DEG = 15.0


# ======================
# 预览
# ======================
PREVIEW_MIN_INTERVAL_S = 0.05
PREVIEW_MAX_WIDTH = 320
PREVIEW_JPEG_QUALITY = 60


# ======================
# Depth Camera Intrinsics (D435, 640x480)
# ======================
DEPTH_INTRINSICS = CameraIntrinsics(
    width=640,
    height=480,
    fx=390.499176,
    fy=390.499176,
    cx=319.888245,
    cy=244.028564,
    depth_scale=0.001,
)
