from unittest.mock import MagicMock

from grasp_ros2.detector_base import GraspCallback, GraspDetectorBase


class Recorder(GraspCallback):

    def __init__(self):
        self.received = []

    def grasp_callback(self, msg):
        self.received.append(msg)


def test_start_stop():
    base = GraspDetectorBase()
    assert not base.started
    base.start()
    assert base.started
    base.stop()
    assert not base.started


def test_notify_registered_callback():
    base = GraspDetectorBase()
    recorder = Recorder()
    base.add_callback(recorder)
    msg = MagicMock()
    base.notify(msg)
    assert recorder.received == [msg]


def test_notify_without_callback():
    GraspDetectorBase().notify(MagicMock())
