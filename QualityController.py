import time

from config import MIN_STRIDE, MAX_STRIDE


class QualityController:
    """
    Hunts the sampling stride by +-1 per frame so the frame interval
    converges toward 1 / target_fps.
    """

    def __init__(self, stride=4, target_fps=15.0, clock=time.perf_counter):
        self.stride = min(MAX_STRIDE, max(MIN_STRIDE, int(stride)))
        self.target_fps = float(target_fps)
        self._clock = clock
        self._last = None
        self.last_dt = None

    def reset(self):
        self._last = None
        self.last_dt = None

    def update(self, now=None, target_fps=None):
        """调用一次/帧，返回下一帧的 stride"""
        if target_fps is not None:
            self.target_fps = float(target_fps)
        now = self._clock() if now is None else now

        if self._last is None:
            # 第一帧只记录时间点
            self._last = now
            return self.stride

        dt = now - self._last
        self._last = now
        self.last_dt = dt

        if dt > 1.0 / self.target_fps:
            self.stride = min(MAX_STRIDE, self.stride + 1)
        else:
            self.stride = max(MIN_STRIDE, self.stride - 1)
        return self.stride
