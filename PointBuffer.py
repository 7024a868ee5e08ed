import numpy as np

_COUNT = np.dtype("<i4")
_XYZ = np.dtype("<f4")


def encode_point_buffer(points) -> bytes:
    """
    int32 LE 点数 N + N*(float32 x,y,z) LE
    总长度 4 + 12*N
    """
    pts = np.ascontiguousarray(np.asarray(points).reshape(-1, 3), dtype=_XYZ)
    header = np.array([pts.shape[0]], dtype=_COUNT)
    return header.tobytes() + pts.tobytes()


def decode_point_buffer(buf) -> np.ndarray:
    """encode_point_buffer 的逆过程，返回 (N,3) float32"""
    buf = bytes(buf)
    if len(buf) < 4:
        raise ValueError(f"buffer too short: {len(buf)} bytes")
    n = int(np.frombuffer(buf, dtype=_COUNT, count=1)[0])
    expected = 4 + 12 * n
    if n < 0 or len(buf) != expected:
        raise ValueError(f"buffer length {len(buf)} does not match point count {n}")
    if n == 0:
        return np.zeros((0, 3), dtype=_XYZ)
    return np.frombuffer(buf, dtype=_XYZ, offset=4).reshape(n, 3)
