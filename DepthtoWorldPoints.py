import math
import numpy as np

from config import CameraFrame, TuningState


def depth_to_meters(depth_raw, depth_scale):
    """z16 (H,W) -> float32 米；0 保持为 0（无回波）"""
    return np.asarray(depth_raw).astype(np.float32) * np.float32(depth_scale)


def unproject_pixel(x, y, z, camera: CameraFrame, tuning: TuningState):
    """
    单个深度采样 -> 世界坐标
    返回 (3,) float64，采样无效或超出 [min_depth_m, max_depth_m] 时返回 None
    """
    z = float(z)
    if not math.isfinite(z) or z <= 0:
        return None
    if z < tuning.min_depth_m or z > tuning.max_depth_m:
        return None

    intr = camera.intrinsics
    p_cam = np.array([
        (x - intr.cx) * z / intr.fx,
        (y - intr.cy) * z / intr.fy,
        z,
    ], dtype=np.float64)
    return camera.pose.R @ p_cam + camera.pose.t


def effective_step(height, width, stride, max_points):
    """Smallest step >= stride whose strided grid fits in max_points samples."""
    step = max(1, int(stride))
    while math.ceil(height / step) * math.ceil(width / step) > max_points:
        step += 1
    return step


def depth_to_world_points(depth_m: np.ndarray, camera: CameraFrame, tuning: TuningState, step=1):
    """
    depth_m: (H,W) float meters, 0 / nan / inf = 无回波
    camera: CameraFrame (intrinsics + pose)
    step: 采样间隔（行列同步）
    返回：world (N,3) float64, depth (N,) float64 相机坐标系深度，按行优先顺序
    """
    depth_m = np.asarray(depth_m)
    if depth_m.ndim != 2 or depth_m.size == 0:
        raise ValueError(f"depth must be a non-empty (H,W) array, got shape {depth_m.shape}")

    intr = camera.intrinsics
    if not (intr.fx and intr.fy) or not np.all(np.isfinite([intr.fx, intr.fy, intr.cx, intr.cy])):
        raise ValueError("invalid intrinsics")

    H, W = depth_m.shape
    rows = np.arange(0, H, step)
    cols = np.arange(0, W, step)
    z = depth_m[::step, ::step].astype(np.float64)
    u, v = np.meshgrid(cols, rows)

    # 深度范围过滤（闭区间），同时剔除 nan / inf / <=0
    with np.errstate(invalid="ignore"):
        mask = np.isfinite(z) & (z > 0) & (z >= tuning.min_depth_m) & (z <= tuning.max_depth_m)

    z = z[mask]
    x = (u[mask] - intr.cx) * z / intr.fx
    y = (v[mask] - intr.cy) * z / intr.fy

    p_cam = np.column_stack((x, y, z))
    world = p_cam @ camera.pose.R.T + camera.pose.t
    return world, z
