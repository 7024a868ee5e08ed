import threading
from concurrent.futures import ThreadPoolExecutor


class ScanStartError(RuntimeError):
    """Depth session could not be started. Raised once, no retry."""


class ScanWorker:
    """
    Runs FootScanPipeline.process on one dedicated thread.

    A frame submitted while the previous one is still in flight is dropped,
    so at most one frame is processed at a time and results reach the sink
    in capture order.
    """

    def __init__(self, pipeline, sink, name="foot-scan"):
        self.pipeline = pipeline
        self.sink = sink
        self.name = name
        self._executor = None
        self._busy = threading.Lock()
        self._state_lock = threading.Lock()
        self.running = False
        self.frames_submitted = 0
        self.frames_busy_dropped = 0

    def start(self):
        with self._state_lock:
            if self.running:
                return
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=self.name)
            self.running = True

    def submit(self, depth_m, camera, preview_image=None, release=None):
        """
        Hand one frame to the worker. `release` frees the depth image handle;
        it is called exactly once whether the frame runs or is dropped.
        Returns False if the frame was dropped.
        """
        with self._state_lock:
            if not self.running or not self._busy.acquire(blocking=False):
                if self.running:
                    self.frames_busy_dropped += 1
                if release is not None:
                    release()
                return False
            self.frames_submitted += 1
            try:
                self._executor.submit(self._run, depth_m, camera, preview_image, release)
            except RuntimeError:
                # executor already shut down
                self._busy.release()
                if release is not None:
                    release()
                return False
        return True

    def _run(self, depth_m, camera, preview_image, release):
        try:
            try:
                result = self.pipeline.process(depth_m, camera, preview_image=preview_image)
            finally:
                if release is not None:
                    release()
            if result is not None and self.sink is not None:
                self.sink(result)
        except Exception as e:
            print(f"[WARN] {self.name}: frame failed: {e!r}")
        finally:
            self._busy.release()

    def stop(self, wait=True):
        """Stop accepting frames; the in-flight frame finishes before this returns (wait=True)."""
        with self._state_lock:
            if not self.running:
                return
            self.running = False
            executor, self._executor = self._executor, None
        executor.shutdown(wait=wait)
        print(f"[SCAN] {self.name} stopped: {self.frames_submitted} frames run, "
              f"{self.frames_busy_dropped} dropped while busy")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
