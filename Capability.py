import sys


def _probe_realsense_depth(width=640, height=480, fps=30):
    """Trial-resolve a z16 depth stream on whatever RealSense device is attached."""
    import pyrealsense2 as rs

    pipeline = rs.pipeline()
    config = rs.config()
    config.enable_stream(rs.stream.depth, width, height, rs.format.z16, fps)
    return bool(config.can_resolve(rs.pipeline_wrapper(pipeline)))


def query_capabilities(probe=_probe_realsense_depth):
    """
    返回 {"platform": str, "depthSupported": bool}
    只做一次试配置，不保留任何状态
    """
    try:
        supported = probe()
    except ImportError:
        print("[WARN] pyrealsense2 not installed, depth capture unavailable")
        supported = False
    except RuntimeError as e:
        # pyrealsense2 raises RuntimeError when no device / backend is present
        print(f"[WARN] depth probe failed: {e}")
        supported = False
    return {"platform": sys.platform, "depthSupported": supported}
