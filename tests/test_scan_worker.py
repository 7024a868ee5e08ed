#!/usr/bin/env python3
"""
Unit tests for the single-thread scan worker and the capability probe.
"""

import os
import sys
import threading
import unittest
from unittest.mock import Mock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from Capability import query_capabilities
from ScanWorker import ScanWorker


class BlockingPipeline:
    """Mock pipeline whose process() waits until released by the test."""

    def __init__(self):
        self.gate = threading.Event()
        self.entered = threading.Event()
        self.calls = []

    def process(self, depth_m, camera, preview_image=None):
        self.calls.append(depth_m)
        self.entered.set()
        self.gate.wait(timeout=5)
        return f"result-{depth_m}"


class TestScanWorker(unittest.TestCase):

    def test_frame_arriving_while_busy_is_dropped(self):
        pipeline = BlockingPipeline()
        results = []
        release_first, release_second = Mock(), Mock()

        worker = ScanWorker(pipeline, results.append)
        worker.start()
        self.assertTrue(worker.submit(1, None, release=release_first))
        self.assertTrue(pipeline.entered.wait(timeout=5))
        self.assertFalse(worker.submit(2, None, release=release_second))
        release_second.assert_called_once_with()

        pipeline.gate.set()
        worker.stop()
        self.assertEqual(results, ["result-1"])
        self.assertEqual(pipeline.calls, [1])
        release_first.assert_called_once_with()
        self.assertEqual(worker.frames_busy_dropped, 1)

    def test_results_arrive_in_submission_order(self):
        pipeline = BlockingPipeline()
        pipeline.gate.set()
        results = []
        done = threading.Event()

        def sink(result):
            results.append(result)
            done.set()

        with ScanWorker(pipeline, sink) as worker:
            for i in range(5):
                done.clear()
                self.assertTrue(worker.submit(i, None))
                self.assertTrue(done.wait(timeout=5))
                # the busy flag is released right after the sink returns
                while not worker._busy.acquire(blocking=False):
                    pass
                worker._busy.release()
        self.assertEqual(results, [f"result-{i}" for i in range(5)])

    def test_release_runs_even_when_processing_raises(self):
        pipeline = Mock()
        pipeline.process.side_effect = RuntimeError("boom")
        release = Mock()

        worker = ScanWorker(pipeline, Mock())
        worker.start()
        worker.submit(1, None, release=release)
        worker.stop()
        release.assert_called_once_with()
        # worker is free again: busy lock not held
        self.assertTrue(worker._busy.acquire(blocking=False))

    def test_submit_after_stop_is_rejected(self):
        worker = ScanWorker(BlockingPipeline(), Mock())
        worker.start()
        worker.stop()
        release = Mock()
        self.assertFalse(worker.submit(1, None, release=release))
        release.assert_called_once_with()

    def test_none_result_not_delivered(self):
        pipeline = Mock()
        pipeline.process.return_value = None
        sink = Mock()
        worker = ScanWorker(pipeline, sink)
        worker.start()
        worker.submit(1, None)
        worker.stop()
        sink.assert_not_called()


class TestCapability(unittest.TestCase):

    def test_supported(self):
        caps = query_capabilities(probe=lambda: True)
        self.assertEqual(caps, {"platform": sys.platform, "depthSupported": True})

    def test_probe_failures_report_unsupported(self):
        def no_device():
            raise RuntimeError("No device connected")

        def no_library():
            raise ImportError("pyrealsense2")

        for probe in (no_device, no_library, lambda: False):
            caps = query_capabilities(probe=probe)
            self.assertFalse(caps["depthSupported"])
            self.assertIsInstance(caps["platform"], str)


if __name__ == "__main__":
    unittest.main()
