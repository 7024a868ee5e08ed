import time
from dataclasses import replace

import numpy as np

from config import AUTO_TUNE_BANDS, AUTO_TUNE_INTERVAL_S, TuningState


def band_for_distance(distance_m):
    """中位深度 -> (min_depth, max_depth, cluster_cell, ground_eps)"""
    for upper, min_d, max_d, cell, eps in AUTO_TUNE_BANDS:
        if distance_m <= upper:
            return min_d, max_d, cell, eps
    return AUTO_TUNE_BANDS[-1][1:]


class AutoTuner:
    """
    Recomputes the depth window and clustering thresholds from the median
    object distance, at most once per interval_s.
    """

    def __init__(self, interval_s=AUTO_TUNE_INTERVAL_S, clock=time.perf_counter):
        self.interval_s = interval_s
        self._clock = clock
        self._last = None
        self.last_median = None

    def due(self, now):
        return self._last is None or (now - self._last) >= self.interval_s

    def maybe_tune(self, depths, tuning: TuningState, now=None):
        """
        depths: 本帧非地面、范围内的相机坐标系深度 (N,)
        返回新的 TuningState，未到时间 / 关闭 / 无数据时返回 None
        """
        if not tuning.auto_tune:
            return None
        now = self._clock() if now is None else now
        if not self.due(now):
            return None

        depths = np.asarray(depths, dtype=np.float64).reshape(-1)
        if depths.size == 0:
            return None

        self._last = now
        self.last_median = float(np.median(depths))
        min_d, max_d, cell, eps = band_for_distance(self.last_median)
        return replace(tuning,
                       min_depth_m=min_d,
                       max_depth_m=max_d,
                       cluster_cell_m=cell,
                       ground_eps_m=eps)
