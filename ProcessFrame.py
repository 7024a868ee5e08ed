from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from AutoTune import AutoTuner
from config import CameraFrame, DEFAULT_TUNING, TrackingStatus, TuningState
from DepthtoWorldPoints import depth_to_world_points, effective_step
from GroundModel import GroundModel, GroundPlane, ground_mask
from PointBuffer import encode_point_buffer
from Preview import PreviewThrottle, encode_preview
from QualityController import QualityController
from TuningStore import TuningStore
from VoxelClusters import largest_voxel_cluster_mask


@dataclass
class FrameResult:
    buffer: bytes            # int32 N + N*xyz float32
    points: np.ndarray       # (N,3) world
    step: int                # 本帧实际采样间隔
    tuning_version: int
    preview: Optional[bytes] = None

    @property
    def count(self):
        return int(self.points.shape[0])


def process_frame(depth_m, camera: CameraFrame, tuning: TuningState, plane: Optional[GroundPlane] = None):
    """
    单帧：采样反投影 -> 深度范围 -> 地面剔除 -> 体素聚类
    tuning / plane 是本帧开始时读到的快照
    返回 dict；输入不合法时抛 ValueError
    """
    depth_m = np.asarray(depth_m)
    if depth_m.ndim != 2:
        raise ValueError(f"depth must be (H,W), got shape {depth_m.shape}")
    H, W = depth_m.shape

    # 1) 点云（step 会在点数超预算时自动加大）
    step = effective_step(H, W, tuning.sample_stride, tuning.max_points)
    world, depth = depth_to_world_points(depth_m, camera, tuning, step=step)

    # 2) 地面（还没有地面平面时不剔除）
    if tuning.remove_ground and plane is not None and world.shape[0] > 0:
        keep = ~ground_mask(world, plane, tuning.ground_eps_m)
        world, depth = world[keep], depth[keep]

    # 3) 聚类，保留最大的连通块
    foot = largest_voxel_cluster_mask(world, tuning.cluster_cell_m, enabled=tuning.cluster_foot)

    return {
        "step": step,
        "candidates": world,
        "candidate_depths": depth,
        "points": world[foot],
    }


class FootScanPipeline:
    """
    Per-frame orchestration plus the state that lives across frames:
    tuning snapshot, ground plane, stride controller, auto-tuner and the
    preview throttle.
    """

    def __init__(self, tuning: TuningState = DEFAULT_TUNING, ground: Optional[GroundModel] = None,
                 clock=None):
        self.tuning = TuningStore(tuning)
        self.ground = ground if ground is not None else GroundModel()

        clock_kw = {} if clock is None else {"clock": clock}
        self.quality = QualityController(stride=tuning.sample_stride, target_fps=tuning.target_fps, **clock_kw)
        self.tuner = AutoTuner(**clock_kw)
        self.preview = PreviewThrottle(**clock_kw)

        self.frames_processed = 0
        self.frames_dropped = 0
        self.frames_skipped = 0

    def configure(self, options):
        """Host configuration; returns the list of rejected fields."""
        errors = self.tuning.configure(options)
        if "sampleStride" in (options or {}):
            self.quality.stride = self.tuning.snapshot().sample_stride
        return errors

    def update_ground(self, origin, normal, tracked=True):
        return self.ground.update(origin, normal, tracked=tracked)

    def process(self, depth_m, camera: CameraFrame, preview_image=None) -> Optional[FrameResult]:
        """
        Run one frame. Returns None when the frame is dropped (bad input)
        or skipped (tracking not normal in strict mode).
        """
        tuning = self.tuning.snapshot()
        plane = self.ground.plane()

        try:
            if depth_m is None or camera is None:
                raise ValueError("missing depth or camera")
            if tuning.tracking_only_normal and camera.tracking != TrackingStatus.NORMAL:
                self.frames_skipped += 1
                # 跳过的时间不算进下一帧的 dt
                self.quality.reset()
                return None
            frame = process_frame(depth_m, camera, tuning, plane)
            buffer = encode_point_buffer(frame["points"])
        except (ValueError, TypeError, AttributeError):
            self.frames_dropped += 1
            self.quality.reset()
            return None

        # 自动调参：结果给下一帧用
        tuned = self.tuner.maybe_tune(frame["candidate_depths"], tuning)
        if tuned is not None:
            self.tuning.publish(min_depth_m=tuned.min_depth_m,
                                max_depth_m=tuned.max_depth_m,
                                cluster_cell_m=tuned.cluster_cell_m,
                                ground_eps_m=tuned.ground_eps_m)

        stride = self.quality.update(target_fps=tuning.target_fps)
        if stride != tuning.sample_stride:
            self.tuning.publish(sample_stride=stride)

        preview = None
        if preview_image is not None and self.preview.ready(tuning.target_fps):
            try:
                preview = encode_preview(preview_image)
            except (ValueError, TypeError, cv2.error) as e:
                print(f"[WARN] preview skipped: {e}")

        self.frames_processed += 1
        return FrameResult(
            buffer=buffer,
            points=frame["points"],
            step=frame["step"],
            tuning_version=tuning.version,
            preview=preview,
        )
