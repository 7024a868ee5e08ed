import numpy as np
import open3d as o3d

from GroundModel import GroundPlane
from SegmentGroundPlane import points_to_pcd


def _make_normal_lineset(origin, normal, length=0.10):
    """画地面法向：从 origin 沿 normal 方向 length"""
    origin = np.asarray(origin, dtype=np.float64).reshape(3)
    n = np.asarray(normal, dtype=np.float64).reshape(3)
    n = n / (np.linalg.norm(n) + 1e-12)

    ls = o3d.geometry.LineSet()
    ls.points = o3d.utility.Vector3dVector(np.vstack([origin, origin + n * length]))
    ls.lines = o3d.utility.Vector2iVector(np.array([[0, 1]], dtype=np.int32))
    ls.colors = o3d.utility.Vector3dVector(np.array([[0.0, 0.8, 0.0]]))
    return ls


def _plane_basis(normal):
    """两个与 normal 正交的单位向量 (u, w)"""
    n = np.asarray(normal, dtype=np.float64).reshape(3)
    n = n / (np.linalg.norm(n) + 1e-12)
    # 取 n 分量最小的坐标轴做参考，叉乘最稳定
    ref = np.zeros(3)
    ref[int(np.argmin(np.abs(n)))] = 1.0
    u = np.cross(n, ref)
    u /= np.linalg.norm(u)
    return u, np.cross(n, u)


def _make_ground_grid(origin, normal, half_size=0.15, cells=6):
    """地面上的方格网，中心在 origin，边长 2*half_size"""
    o = np.asarray(origin, dtype=np.float64).reshape(3)
    u, w = _plane_basis(normal)
    ticks = np.linspace(-half_size, half_size, cells + 1)

    ends = []
    for s in ticks:
        ends.append((o + s * u - half_size * w, o + s * u + half_size * w))
        ends.append((o + s * w - half_size * u, o + s * w + half_size * u))
    pts = np.array([p for pair in ends for p in pair])
    lines = np.arange(pts.shape[0], dtype=np.int32).reshape(-1, 2)

    grid = o3d.geometry.LineSet()
    grid.points = o3d.utility.Vector3dVector(pts)
    grid.lines = o3d.utility.Vector2iVector(lines)
    grid.paint_uniform_color((0.6, 0.6, 0.6))
    return grid


def _make_ground_frame(origin, size=0.03):
    """origin 处的坐标轴（红 x / 绿 y / 蓝 z）"""
    frame = o3d.geometry.TriangleMesh.create_coordinate_frame(size=size)
    frame.translate(np.asarray(origin, dtype=np.float64).reshape(3))
    return frame


def scan_geometries(points, plane: GroundPlane = None, color=(0.9, 0.3, 0.2)):
    """脚部点云 + 地面（可选）-> open3d geometry 列表"""
    pcd = points_to_pcd(points)
    if len(pcd.points) > 0:
        pcd.paint_uniform_color(color)
    geoms = [pcd]

    if plane is not None:
        geoms.append(_make_ground_frame(plane.origin))
        geoms.append(_make_normal_lineset(plane.origin, plane.normal))
        geoms.append(_make_ground_grid(plane.origin, plane.normal))
    return geoms


def visualize_scan(points, plane: GroundPlane = None):
    if points is None or len(points) == 0:
        print("[VIS] No points to visualize.")
        return
    o3d.visualization.draw_geometries(scan_geometries(points, plane), window_name="Foot Scan")
