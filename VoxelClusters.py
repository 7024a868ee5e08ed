from collections import deque
from itertools import product

import numpy as np

# 26 邻域（不含自身）
NEIGHBOR_OFFSETS = tuple(o for o in product((-1, 0, 1), repeat=3) if o != (0, 0, 0))


def voxel_keys(points, cell_m):
    """(N,3) 世界坐标 -> (N,3) int64 体素索引 floor(p / cell)"""
    return np.floor(np.asarray(points, dtype=np.float64) / cell_m).astype(np.int64)


def voxel_components(occupied):
    """
    occupied: list of (ix,iy,iz) tuples, 已去重
    返回 labels: list[int]，与 occupied 一一对应，连通分量编号按发现顺序
    """
    index = {key: i for i, key in enumerate(occupied)}
    labels = [-1] * len(occupied)
    n_comp = 0

    for seed in range(len(occupied)):
        if labels[seed] != -1:
            continue
        labels[seed] = n_comp
        work = deque([seed])
        while work:
            ix, iy, iz = occupied[work.popleft()]
            for dx, dy, dz in NEIGHBOR_OFFSETS:
                j = index.get((ix + dx, iy + dy, iz + dz))
                if j is not None and labels[j] == -1:
                    labels[j] = n_comp
                    work.append(j)
        n_comp += 1

    return labels


def largest_voxel_cluster_mask(points, cell_m, enabled=True):
    """
    返回 bool mask (N,)：属于体素数最多的 26 连通分量的点
    平局时取最先发现的分量（体素按字典序遍历）
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    n = pts.shape[0]
    if not enabled or n == 0:
        return np.ones(n, dtype=bool)

    # np.unique 按字典序排序，遍历顺序与输入点顺序无关
    keys, inverse = np.unique(voxel_keys(pts, cell_m), axis=0, return_inverse=True)
    inverse = inverse.reshape(-1)
    occupied = [tuple(k) for k in keys.tolist()]
    labels = np.asarray(voxel_components(occupied), dtype=np.int64)

    sizes = np.bincount(labels)
    best = int(np.argmax(sizes))  # argmax 返回第一个最大值
    return labels[inverse] == best


def largest_voxel_cluster(points, cell_m, enabled=True):
    """
    返回 (kept_points (M,3), M)
    聚类关闭或输入为空时原样返回
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    mask = largest_voxel_cluster_mask(pts, cell_m, enabled=enabled)
    kept = pts[mask]
    return kept, kept.shape[0]
