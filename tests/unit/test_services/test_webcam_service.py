"""Unit tests for WebcamService.

Tests cover opening, frame reads, the transient/terminal failure split and
release behaviour, all against a mocked cv2.VideoCapture.
"""
import pytest
import numpy as np
import cv2
from unittest.mock import Mock, patch
from face_detector.services.webcam_service import ANY_CAMERA, WebcamService
from face_detector.core.exceptions import CameraUnavailableError, CaptureError


def make_capture(opened=True, width=640, height=480):
    mock_cap = Mock()
    mock_cap.isOpened.return_value = opened
    mock_cap.get.side_effect = lambda prop: {
        cv2.CAP_PROP_FRAME_WIDTH: width,
        cv2.CAP_PROP_FRAME_HEIGHT: height,
        cv2.CAP_PROP_FPS: 30
    }.get(prop, 0)
    return mock_cap


@pytest.fixture
def frame():
    return np.zeros((480, 640, 3), dtype=np.uint8)


class TestOpen:

    @patch('cv2.VideoCapture')
    def test_open_success(self, mock_video_capture):
        mock_cap = make_capture()
        mock_video_capture.return_value = mock_cap

        service = WebcamService(camera_index=0)

        assert service.open() is True
        assert service.is_opened()
        assert service.get_resolution() == (640, 480)
        mock_video_capture.assert_called_once_with(0, cv2.CAP_ANY)

    @patch('cv2.VideoCapture')
    def test_open_failure_raises_and_releases(self, mock_video_capture):
        mock_cap = make_capture(opened=False)
        mock_video_capture.return_value = mock_cap

        service = WebcamService(camera_index=3)

        with pytest.raises(CameraUnavailableError):
            service.open()
        mock_cap.release.assert_called_once()
        assert not service.is_opened()

    @patch('cv2.VideoCapture')
    def test_open_exception_is_unavailable(self, mock_video_capture):
        mock_video_capture.side_effect = Exception("Device not found")

        with pytest.raises(CameraUnavailableError):
            WebcamService().open()

    @patch('cv2.VideoCapture')
    def test_any_camera_uses_first_device(self, mock_video_capture):
        mock_video_capture.return_value = make_capture()

        service = WebcamService(camera_index=ANY_CAMERA, backend=cv2.CAP_V4L2)
        service.open()

        mock_video_capture.assert_called_once_with(0, cv2.CAP_ANY)
        assert service.camera_index == 0

    @patch('cv2.VideoCapture')
    def test_requested_properties_are_applied(self, mock_video_capture):
        mock_cap = make_capture()
        mock_video_capture.return_value = mock_cap

        WebcamService(width=1280, height=720, fps=15).open()

        mock_cap.set.assert_any_call(cv2.CAP_PROP_FRAME_WIDTH, 1280)
        mock_cap.set.assert_any_call(cv2.CAP_PROP_FRAME_HEIGHT, 720)
        mock_cap.set.assert_any_call(cv2.CAP_PROP_FPS, 15)

    @patch('cv2.VideoCapture')
    def test_driver_defaults_left_alone(self, mock_video_capture):
        mock_cap = make_capture()
        mock_video_capture.return_value = mock_cap

        WebcamService().open()

        mock_cap.set.assert_not_called()

    @patch('cv2.VideoCapture')
    def test_open_twice_keeps_first_handle(self, mock_video_capture):
        mock_video_capture.return_value = make_capture()
        service = WebcamService()

        service.open()
        assert service.open() is True
        assert mock_video_capture.call_count == 1

    def test_from_config(self, config):
        config.camera_index = 2
        config.max_consecutive_failures = 4

        service = WebcamService.from_config(config)

        assert service.camera_index == 2
        assert service.max_consecutive_failures == 4


class TestNextFrame:

    @patch('cv2.VideoCapture')
    def test_read_success(self, mock_video_capture, frame):
        mock_cap = make_capture()
        mock_cap.read.return_value = (True, frame)
        mock_video_capture.return_value = mock_cap
        service = WebcamService()
        service.open()

        assert service.next_frame() is frame
        assert service.frames_captured == 1

    def test_read_before_open_is_terminal(self):
        with pytest.raises(CaptureError) as exc_info:
            WebcamService().next_frame()

        assert exc_info.value.terminal is True

    @patch('cv2.VideoCapture')
    def test_empty_read_is_transient(self, mock_video_capture):
        mock_cap = make_capture()
        mock_cap.read.return_value = (False, None)
        mock_video_capture.return_value = mock_cap
        service = WebcamService(max_consecutive_failures=5)
        service.open()

        with pytest.raises(CaptureError) as exc_info:
            service.next_frame()

        assert exc_info.value.terminal is False

    @patch('cv2.VideoCapture')
    def test_repeated_failures_become_terminal(self, mock_video_capture):
        mock_cap = make_capture()
        mock_cap.read.return_value = (False, None)
        mock_video_capture.return_value = mock_cap
        service = WebcamService(max_consecutive_failures=3)
        service.open()

        for _ in range(2):
            with pytest.raises(CaptureError) as exc_info:
                service.next_frame()
            assert not exc_info.value.terminal

        with pytest.raises(CaptureError) as exc_info:
            service.next_frame()
        assert exc_info.value.terminal

    @patch('cv2.VideoCapture')
    def test_success_resets_failure_streak(self, mock_video_capture, frame):
        mock_cap = make_capture()
        mock_cap.read.side_effect = [(False, None), (False, None), (True, frame),
                                     (False, None), (False, None)]
        mock_video_capture.return_value = mock_cap
        service = WebcamService(max_consecutive_failures=3)
        service.open()

        for expected_ok in (False, False, True, False, False):
            if expected_ok:
                service.next_frame()
                continue
            with pytest.raises(CaptureError) as exc_info:
                service.next_frame()
            assert not exc_info.value.terminal

    @patch('cv2.VideoCapture')
    def test_disconnect_is_terminal(self, mock_video_capture):
        mock_cap = make_capture()
        # open() and the pre-read check see the device, the post-read check does not
        mock_cap.isOpened.side_effect = [True, True, True, False]
        mock_cap.read.return_value = (False, None)
        mock_video_capture.return_value = mock_cap
        service = WebcamService()
        service.open()

        with pytest.raises(CaptureError) as exc_info:
            service.next_frame()

        assert exc_info.value.terminal

    @patch('cv2.VideoCapture')
    def test_read_exception_is_terminal(self, mock_video_capture):
        mock_cap = make_capture()
        mock_cap.read.side_effect = cv2.error("device gone")
        mock_video_capture.return_value = mock_cap
        service = WebcamService()
        service.open()

        with pytest.raises(CaptureError) as exc_info:
            service.next_frame()

        assert exc_info.value.terminal


class TestClose:

    @patch('cv2.VideoCapture')
    def test_close_releases_once(self, mock_video_capture):
        mock_cap = make_capture()
        mock_video_capture.return_value = mock_cap
        service = WebcamService()
        service.open()

        service.close()
        service.close()

        mock_cap.release.assert_called_once()
        assert not service.is_opened()

    def test_close_before_open(self):
        WebcamService().close()

    @patch('cv2.VideoCapture')
    def test_context_manager(self, mock_video_capture):
        mock_cap = make_capture()
        mock_video_capture.return_value = mock_cap

        with WebcamService() as service:
            assert service.is_opened()

        mock_cap.release.assert_called_once()


@patch('cv2.VideoCapture')
def test_list_available_cameras(mock_video_capture):
    mock_video_capture.side_effect = [make_capture(), make_capture(opened=False),
                                      make_capture(width=320, height=240)]

    cameras = WebcamService.list_available_cameras(max_cameras=3)

    assert cameras == [
        {'index': 0, 'width': 640, 'height': 480},
        {'index': 2, 'width': 320, 'height': 240},
    ]


@pytest.mark.webcam
def test_real_camera_delivers_frame():
    with WebcamService(camera_index=ANY_CAMERA) as service:
        frame = service.next_frame()
    assert frame.ndim == 3
