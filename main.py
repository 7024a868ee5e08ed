import time
from pathlib import Path

import numpy as np
import cv2
import pyrealsense2 as rs

from config import CameraFrame, CameraIntrinsics, DEFAULT_TUNING
from DepthtoWorldPoints import depth_to_meters, depth_to_world_points
from DrawFootonDepth import draw_foot_on_depth, project_points_to_image
from ProcessFrame import FootScanPipeline
from ScanWorker import ScanStartError, ScanWorker
from SegmentGroundPlane import segment_ground_plane
from Vision import visualize_scan


class RealSenseFootScanner:
    def __init__(self,
                 depth_size=(640, 480),
                 rgb_size=(640, 480),
                 fps=30,
                 align_to_color=True,
                 ground_every=15,
                 options=None,
                 out_dir="."):
        self.dep_w, self.dep_h = depth_size
        self.rgb_w, self.rgb_h = rgb_size
        self.fps = fps
        self.align_to_color = align_to_color
        self.ground_every = ground_every
        self.out_dir = Path(out_dir)

        self.pipeline = FootScanPipeline(DEFAULT_TUNING)
        for err in self.pipeline.configure(options or {}):
            print(f"[WARN] config {err.field}={err.value!r} rejected: {err.reason}")

        self.worker = ScanWorker(self.pipeline, self._on_result)

        self.rs_pipeline = None
        self.align = None
        self.depth_scale = None
        self.intrinsics = None

        # cache last result (written by worker thread, read by UI loop)
        self.last_result = None
        self.last_camera = None
        self._frame_idx = 0
        self._last_time = time.time()
        self._fps = 0.0

    def start(self):
        rs_pipeline = rs.pipeline()
        config = rs.config()
        config.enable_stream(rs.stream.depth, self.dep_w, self.dep_h, rs.format.z16, self.fps)
        config.enable_stream(rs.stream.color, self.rgb_w, self.rgb_h, rs.format.bgr8, self.fps)
        try:
            profile = rs_pipeline.start(config)
        except RuntimeError as e:
            raise ScanStartError(f"failed to start RealSense pipeline: {e}") from e
        self.rs_pipeline = rs_pipeline

        # depth scale (z16 -> meters)
        depth_sensor = profile.get_device().first_depth_sensor()
        self.depth_scale = float(depth_sensor.get_depth_scale())

        # Align depth to color: intrinsics come from the color stream then
        stream = rs.stream.color if self.align_to_color else rs.stream.depth
        self.align = rs.align(rs.stream.color) if self.align_to_color else None
        intr = profile.get_stream(stream).as_video_stream_profile().get_intrinsics()
        self.intrinsics = CameraIntrinsics(
            fx=intr.fx, fy=intr.fy, cx=intr.ppx, cy=intr.ppy,
            width=intr.width, height=intr.height, depth_scale=self.depth_scale,
        )

        self.worker.start()
        print(f"[INFO] Depth scale: {self.depth_scale:.12f} m/LSB")
        print(f"[INFO] Intrinsics: fx={intr.fx:.2f} fy={intr.fy:.2f} cx={intr.ppx:.2f} cy={intr.ppy:.2f}")
        print(f"[INFO] Press 'v' to view the last foot cloud, 's' to save it.")
        print(f"[INFO] Press 'g' to re-detect the ground, 'q' or ESC to quit.\n")

    def close(self):
        self.worker.stop()
        if self.rs_pipeline is not None:
            try:
                self.rs_pipeline.stop()
            except RuntimeError as e:
                print(f"[WARN] pipeline stop: {e}")
            self.rs_pipeline = None

    def _on_result(self, result):
        self.last_result = result

    def _update_fps(self):
        now = time.time()
        dt = now - self._last_time
        if dt > 0:
            self._fps = 0.9 * self._fps + 0.1 * (1.0 / dt) if self._fps > 0 else (1.0 / dt)
        self._last_time = now

    def _refresh_ground(self, depth_m, camera):
        """RANSAC 地面检测，结果交给 GroundModel（只接受水平朝上的面）"""
        tuning = self.pipeline.tuning.snapshot()
        world, _ = depth_to_world_points(depth_m, camera, tuning, step=4)
        found = segment_ground_plane(world)
        if found is None:
            return False
        origin, normal = found
        return self.pipeline.update_ground(origin, normal)

    def _draw_overlay(self, depth_m):
        self._update_fps()
        result, camera = self.last_result, self.last_camera
        uv = None
        if result is not None and camera is not None:
            uv = project_points_to_image(result.points, camera, depth_m.shape[:2])
        tuning = self.pipeline.tuning.snapshot()
        vis = draw_foot_on_depth(depth_m, uv, near=tuning.min_depth_m, far=tuning.max_depth_m)

        lines = [
            f"FPS {self._fps:.1f}  stride {tuning.sample_stride}",
            f"points {result.count if result is not None else 0}",
            f"depth [{tuning.min_depth_m:.3f}, {tuning.max_depth_m:.3f}] cell {tuning.cluster_cell_m:.3f}",
            f"ground {'yes' if self.pipeline.ground.plane() is not None else 'no'}",
        ]
        for i, t in enumerate(lines):
            cv2.putText(vis, t, (10, 25 + i * 22),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 255, 0), 2, cv2.LINE_AA)
        return vis

    def _save_last(self):
        if self.last_result is None:
            print("[SAVE] nothing to save yet")
            return
        ts = int(time.time() * 1000)
        path = self.out_dir / f"foot_{ts}.bin"
        path.write_bytes(self.last_result.buffer)
        print(f"[SAVE] {self.last_result.count} points -> {path}")

    def run(self):
        self.start()
        cv2.namedWindow("Foot Scan", cv2.WINDOW_NORMAL)

        try:
            while True:
                frames = self.rs_pipeline.wait_for_frames()
                if self.align is not None:
                    frames = self.align.process(frames)

                depth_frame = frames.get_depth_frame()
                color_frame = frames.get_color_frame()
                if not depth_frame:
                    continue

                # depth in meters (float32)，转换后即与 RealSense 帧缓冲无关
                depth_m = depth_to_meters(np.asanyarray(depth_frame.get_data()), self.depth_scale)
                color_image = np.asanyarray(color_frame.get_data()).copy() if color_frame else None

                camera = CameraFrame(intrinsics=self.intrinsics)

                if self._frame_idx % self.ground_every == 0:
                    self._refresh_ground(depth_m, camera)
                self._frame_idx += 1

                if self.worker.submit(depth_m, camera, preview_image=color_image):
                    self.last_camera = camera

                cv2.imshow("Foot Scan", self._draw_overlay(depth_m))

                key = cv2.waitKey(1) & 0xFF
                if key == 27 or key == ord('q'):
                    break
                elif key == ord('s'):
                    self._save_last()
                elif key == ord('g'):
                    ok = self._refresh_ground(depth_m, camera)
                    print(f"[INFO] ground {'updated' if ok else 'not found'}")
                elif key == ord('v') and self.last_result is not None:
                    visualize_scan(self.last_result.points, self.pipeline.ground.plane())

        finally:
            self.close()
            cv2.destroyAllWindows()


if __name__ == "__main__":
    runner = RealSenseFootScanner(
        depth_size=(640, 480),
        rgb_size=(640, 480),
        fps=30,
        align_to_color=True,
        options={"targetFps": 15.0, "maxPoints": 50000},
    )
    try:
        runner.run()
    except ScanStartError as e:
        print(f"[ERROR] {e}")
