"""End-to-end pipeline runs with a scripted camera and a queue hand-off.

The producer thread runs for real; the test plays the presentation side by
draining the QueueFrameSink.
"""
import numpy as np
import pytest
from unittest.mock import Mock
from conftest import FakeCapture, FakeDetector
from face_detector.backends.cascade_backend import CascadeBackend
from face_detector.core.entities import DetectionMode, PipelineState, Region
from face_detector.core.exceptions import CaptureError
from face_detector.services.annotation_service import BLUE, MAGENTA, RED
from face_detector.services.detection_service import DetectionService, PipelineHooks
from face_detector.services.frame_sink import QueueFrameSink


def make_frame(width=320, height=240):
    return np.zeros((height, width, 3), dtype=np.uint8)


def collect(sink, count, timeout=5.0):
    updates = []
    while len(updates) < count:
        update = sink.get(timeout=timeout)
        if update is None:
            break
        updates.append(update)
    return updates


@pytest.fixture
def queue_sink():
    sink = QueueFrameSink()
    yield sink
    sink.close()


def run_pipeline(capture, detector, sink, **kwargs):
    pipeline = DetectionService(capture, detector, sink, frame_interval=0.005, **kwargs)
    assert pipeline.start()
    return pipeline


def test_single_face_is_boxed(queue_sink):
    capture = FakeCapture(default_frame=make_frame())
    pipeline = run_pipeline(capture, FakeDetector([Region(50, 50, 100, 100)]), queue_sink)
    try:
        updates = collect(queue_sink, 2)
    finally:
        queue_sink.close()
        assert pipeline.stop(timeout=5.0)

    assert [u.sequence for u in updates] == [1, 2]
    first = updates[0]
    assert first.summary == "1 faces detected"
    assert first.result.regions == (Region(50, 50, 100, 100),)
    assert tuple(first.frame[50, 50]) == RED
    assert tuple(first.frame[149, 149]) == RED
    assert tuple(first.frame[100, 100]) == (0, 0, 0)


def test_empty_scene_is_delivered_unmarked(queue_sink):
    capture = FakeCapture(default_frame=make_frame())
    pipeline = run_pipeline(capture, FakeDetector([]), queue_sink)
    try:
        updates = collect(queue_sink, 1)
    finally:
        queue_sink.close()
        pipeline.stop(timeout=5.0)

    assert updates[0].summary == "0 faces detected"
    assert not updates[0].frame.any()


def test_nested_mode_marks_face_and_eye(queue_sink):
    face = Region(100, 100, 80, 80)
    eye_local = Region(110, 110, 20, 15)
    capture = FakeCapture(default_frame=make_frame(400, 400))
    pipeline = run_pipeline(
        capture, FakeDetector([face]), queue_sink,
        secondary_detector=FakeDetector(by_parent={face: [eye_local]}),
        mode=DetectionMode.NESTED,
    )
    try:
        update = collect(queue_sink, 1)[0]
    finally:
        queue_sink.close()
        pipeline.stop(timeout=5.0)

    eye = update.result.child_regions()[0]
    assert eye.center == (220, 217)
    assert update.summary == "1 faces detected"
    assert tuple(update.frame[208, 220]) == BLUE
    assert tuple(update.frame[140, 100]) == MAGENTA


def test_camera_that_never_opens(queue_sink):
    hooks = PipelineHooks(on_unavailable=Mock(), on_ready=Mock())
    capture = FakeCapture(fail_open=True)
    pipeline = DetectionService(capture, FakeDetector(), queue_sink, hooks=hooks)

    assert pipeline.start() is False

    assert pipeline.state is PipelineState.IDLE
    assert not pipeline.is_running()
    hooks.on_unavailable.assert_called_once()
    hooks.on_ready.assert_not_called()
    assert queue_sink.get(timeout=0.05) is None


def test_three_dropped_frames_then_recovery(queue_sink):
    dropped = [CaptureError("Dropped frame", terminal=False) for _ in range(3)]
    capture = FakeCapture(script=dropped + [make_frame()], default_frame=make_frame())
    hooks = PipelineHooks(on_fault=Mock())
    pipeline = run_pipeline(capture, FakeDetector([]), queue_sink, hooks=hooks)
    try:
        updates = collect(queue_sink, 1)
        assert pipeline.state is PipelineState.RUNNING
    finally:
        queue_sink.close()
        pipeline.stop(timeout=5.0)

    assert updates[0].sequence == 1
    assert capture.reads >= 4
    assert pipeline.state is PipelineState.STOPPED
    hooks.on_fault.assert_not_called()


def test_camera_lost_mid_run(queue_sink):
    capture = FakeCapture(script=[make_frame(), make_frame()])
    pipeline = run_pipeline(capture, FakeDetector([]), queue_sink)

    assert pipeline.join(5.0)

    assert pipeline.state is PipelineState.FAULTED
    assert [u.sequence for u in queue_sink.drain()] == [1, 2]
    assert capture.close_calls == 1


def test_real_cascade_on_blank_frames(queue_sink, face_cascade_path):
    capture = FakeCapture(default_frame=make_frame())
    pipeline = run_pipeline(capture, CascadeBackend(face_cascade_path), queue_sink)
    try:
        updates = collect(queue_sink, 2)
    finally:
        queue_sink.close()
        pipeline.stop(timeout=5.0)

    assert [u.summary for u in updates] == ["0 faces detected"] * 2
    assert not pipeline.detector.is_model_loaded()
