import numpy as np
import pytest

pc2 = pytest.importorskip('sensor_msgs_py.point_cloud2')
pytest.importorskip('grasp_msgs.msg')

from sensor_msgs.msg import PointField  # noqa: E402
from std_msgs.msg import Header  # noqa: E402

from grasp_ros2 import conversions as conv  # noqa: E402
from grasp_ros2.cloud import CloudCamera  # noqa: E402


def _fields(names, datatype=PointField.FLOAT32):
    return [PointField(name=n, offset=4 * i, datatype=datatype, count=1) for i, n in enumerate(names)]


def _packed_rgb(r, g, b):
    return np.array([(r << 16) | (g << 8) | b], dtype=np.uint32).view(np.float32)[0]


def test_cloud_with_normals():
    header = Header(frame_id='camera')
    points = [(0.0, 0.0, 1.0, 0.0, 0.0, -1.0), (float('nan'), 0.0, 1.0, 0.0, 0.0, -1.0)]
    msg = pc2.create_cloud(header, _fields(['x', 'y', 'z', 'normal_x', 'normal_y', 'normal_z']), points)

    assert conv.has_normals(msg)
    cloud = conv.cloud_from_msg(msg, view_point=(0.0, 0.0, 0.5))
    assert len(cloud) == 1
    np.testing.assert_allclose(cloud.normals, [[0, 0, -1]])
    np.testing.assert_allclose(cloud.view_points, [[0, 0, 0.5]])


def test_cloud_with_rgb():
    header = Header(frame_id='camera')
    points = [(0.0, 0.0, 1.0, _packed_rgb(255, 0, 0)), (0.1, 0.0, 1.0, _packed_rgb(0, 0, 255))]
    msg = pc2.create_cloud(header, _fields(['x', 'y', 'z', 'rgb']), points)

    assert not conv.has_normals(msg)
    cloud = conv.cloud_from_msg(msg)
    np.testing.assert_allclose(cloud.colors, [[1, 0, 0], [0, 0, 1]])


def test_organized_arrays_keep_nans():
    header = Header(frame_id='camera')
    points = [(0.0, 0.0, 1.0), (float('nan'),) * 3, (0.1, 0.1, 1.0), (0.2, 0.2, 1.0)]
    msg = pc2.create_cloud(header, _fields(['x', 'y', 'z']), points)
    msg.height, msg.width = 2, 2
    msg.row_step = msg.point_step * 2

    arr, colors, height, width = conv.organized_arrays(msg)
    assert arr.shape == (4, 3)
    assert np.isnan(arr[1]).all()
    assert colors is None
    assert (height, width) == (2, 2)


def test_cloud_to_msg():
    header = Header(frame_id='camera')
    msg = conv.cloud_to_msg(header, CloudCamera([[0, 0, 1], [0, 1, 1]]))
    assert msg.header.frame_id == 'camera'
    assert msg.width * msg.height == 2


def test_grasp_msg_round_trip(make_grasp):
    g = make_grasp(bottom=(0.1, 0.2, 0.3), score=4.0)
    msg = conv.grasp_to_msg(g)
    assert msg.bottom.x == pytest.approx(0.1)
    assert msg.top.x == pytest.approx(0.16)
    assert msg.axis.z == pytest.approx(1.0)
    assert msg.score.data == pytest.approx(4.0)
    assert msg.width.data == pytest.approx(0.04)

    back = conv.grasp_from_msg(msg)
    np.testing.assert_allclose(back.top, g.top)
    np.testing.assert_allclose(back.binormal, g.binormal)


def test_grasp_list_msg(make_grasp):
    header = Header(frame_id='camera')
    msg = conv.grasp_list_msg([make_grasp(), make_grasp()], header, 'cup')
    assert msg.header.frame_id == 'camera'
    assert msg.object_name == 'cup'
    assert len(msg.grasps) == 2
