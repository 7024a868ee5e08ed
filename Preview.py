import time

import cv2
import numpy as np

from config import PREVIEW_JPEG_QUALITY, PREVIEW_MAX_WIDTH, PREVIEW_MIN_INTERVAL_S
from DrawFootonDepth import depth_to_colormap


def preview_interval(target_fps):
    """预览最多每 max(0.05s, 1/(2*fps)) 发一次"""
    return max(PREVIEW_MIN_INTERVAL_S, 1.0 / (2.0 * target_fps))


class PreviewThrottle:
    def __init__(self, clock=time.perf_counter):
        self._clock = clock
        self._last = None

    def ready(self, target_fps, now=None):
        """到时间返回 True 并记下发送时间"""
        now = self._clock() if now is None else now
        if self._last is not None and (now - self._last) < preview_interval(target_fps):
            return False
        self._last = now
        return True


def encode_preview(image, max_width=PREVIEW_MAX_WIDTH, quality=PREVIEW_JPEG_QUALITY):
    """
    image: (H,W,3) uint8 BGR 或 (H,W) float 深度(米)
    返回 JPEG bytes（先等比缩小到 max_width 以内）
    """
    img = np.asarray(image)
    if img.size == 0 or not (img.ndim == 2 or (img.ndim == 3 and img.shape[2] == 3)):
        raise ValueError(f"preview must be (H,W) depth or (H,W,3) BGR, got shape {img.shape}")
    if img.ndim == 2:
        img = depth_to_colormap(img)
    elif img.dtype != np.uint8:
        raise ValueError(f"color preview must be uint8, got {img.dtype}")

    h, w = img.shape[:2]
    if w > max_width:
        scale = max_width / float(w)
        img = cv2.resize(img, (max_width, max(1, int(round(h * scale)))),
                         interpolation=cv2.INTER_AREA)

    ok, jpg = cv2.imencode(".jpg", img, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return jpg.tobytes()
