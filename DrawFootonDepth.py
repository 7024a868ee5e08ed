import cv2
import numpy as np

from config import CameraFrame


def project_points_to_image(points_world, camera: CameraFrame, img_shape_hw, step=1):
    """
    points_world: (N,3) 世界坐标系下的点，单位米
    camera: 生成这些点的 CameraFrame（用位姿逆变换回相机系）
    img_shape_hw: (H,W) 深度图尺寸
    返回：uv (M,2) int32，只保留落在图像内且Z>0的点
    """
    H, W = img_shape_hw
    intr = camera.intrinsics

    pts = np.asarray(points_world, dtype=np.float64).reshape(-1, 3)
    # world -> camera: R^T (p - t)
    xyz = (pts - camera.pose.t) @ camera.pose.R
    z = xyz[:, 2]
    valid = z > 1e-6
    xyz = xyz[valid]
    z = z[valid]

    u = np.round(intr.fx * (xyz[:, 0] / z) + intr.cx).astype(np.int32)
    v = np.round(intr.fy * (xyz[:, 1] / z) + intr.cy).astype(np.int32)

    inside = (u >= 0) & (u < W) & (v >= 0) & (v < H)
    return np.stack([u[inside], v[inside]], axis=1)


def depth_to_colormap(depth_m, near=None, far=None):
    """
    深度(米) -> BGR 伪彩，按扫描窗口 [near, far] 归一化
    近处偏红、远处偏蓝；无回波 / 窗口外的像素涂黑
    near / far 为 None 时取有效深度的最小 / 最大值
    """
    d = np.asarray(depth_m, dtype=np.float32)
    valid = np.isfinite(d) & (d > 0)
    if near is not None:
        valid &= d >= near
    if far is not None:
        valid &= d <= far
    if not np.any(valid):
        return np.zeros(d.shape + (3,), dtype=np.uint8)

    lo = float(d[valid].min()) if near is None else float(near)
    hi = float(d[valid].max()) if far is None else float(far)
    span = max(hi - lo, 1e-3)

    dn8 = np.zeros(d.shape, dtype=np.uint8)
    dn8[valid] = (255.0 * (1.0 - np.clip((d[valid] - lo) / span, 0, 1))).astype(np.uint8)

    vis = cv2.applyColorMap(dn8, cv2.COLORMAP_JET)
    vis[~valid] = 0
    return vis


def draw_foot_on_depth(depth_m, uv, label="Foot", thickness=2, dot_radius=1, near=None, far=None):
    """
    depth_m: (H,W) 深度(米)
    uv: (N,2) 像素坐标（脚部点云的投影）
    返回 BGR 图：深度伪彩 + 脚部区域(红) + bbox(绿) + 轮廓(黄)
    """
    depth_vis = depth_to_colormap(depth_m, near, far)
    if uv is None or len(uv) == 0:
        return depth_vis

    H, W = depth_vis.shape[:2]
    mask = np.zeros((H, W), dtype=np.uint8)
    # 点云是按 stride 采样的，先画成小圆点再闭运算
    for u, v in uv:
        cv2.circle(mask, (int(u), int(v)), dot_radius, 255, -1)
    kernel = np.ones((5, 5), np.uint8)
    mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, kernel, iterations=2)

    overlay = depth_vis.copy()
    overlay[mask > 0] = (0, 0, 255)
    depth_vis = cv2.addWeighted(depth_vis, 0.75, overlay, 0.25, 0)

    ys, xs = np.where(mask > 0)
    x1, x2 = int(xs.min()), int(xs.max())
    y1, y2 = int(ys.min()), int(ys.max())
    cv2.rectangle(depth_vis, (x1, y1), (x2, y2), (0, 255, 0), thickness)

    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    cv2.drawContours(depth_vis, contours, -1, (0, 255, 255), thickness)

    cv2.putText(depth_vis, label, (x1, max(0, y1 - 8)),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2, cv2.LINE_AA)
    return depth_vis
