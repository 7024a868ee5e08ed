import numpy as np
import open3d as o3d

from config import WORLD_UP, GROUND_MAX_TILT_DEG
from GroundModel import is_upward_horizontal


def points_to_pcd(points) -> o3d.geometry.PointCloud:
    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(np.asarray(points, dtype=np.float64).reshape(-1, 3))
    return pcd


def segment_ground_plane(points,
                         up=WORLD_UP,
                         distance_threshold=0.005,
                         ransac_n=3,
                         num_iterations=1000,
                         min_inliers=200,
                         max_tilt_deg=GROUND_MAX_TILT_DEG):
    """
    RANSAC 地面检测（没有平台平面检测时使用）
    points: (N,3) 世界坐标
    返回：(origin, normal) normal 朝上；找不到水平面返回 None
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if pts.shape[0] < max(ransac_n, min_inliers):
        return None

    pcd = points_to_pcd(pts)
    plane_model, inliers = pcd.segment_plane(
        distance_threshold=distance_threshold,
        ransac_n=ransac_n,
        num_iterations=num_iterations
    )
    if len(inliers) < min_inliers:
        return None

    a, b, c, d = plane_model
    n = np.array([a, b, c], dtype=np.float64)
    norm = np.linalg.norm(n)
    if norm < 1e-9:
        return None
    n, d = n / norm, d / norm

    # 内点重心投影到平面上作为 origin
    centroid = pts[np.asarray(inliers)].mean(axis=0)
    origin = centroid - (centroid @ n + d) * n

    # 法向统一朝上
    if n @ np.asarray(up, dtype=np.float64) < 0:
        n = -n
    if not is_upward_horizontal(n, up, max_tilt_deg):
        return None
    return origin, n
