import numpy as np
import pytest

from grasp_ros2.grasp import (
    Grasp, HandGeometry, hand_boxes, load_detection, save_detection, select_grasps)

WORKSPACE = [-1.0, 1.0, -1.0, 1.0, -1.0, 1.0]


class TestGrasp:

    def test_missing_points_and_axis_are_derived(self):
        g = Grasp(bottom=[0.1, 0.2, 0.3], approach=[1, 0, 0], binormal=[0, 1, 0])
        np.testing.assert_allclose(g.axis, [0, 0, 1])
        np.testing.assert_allclose(g.top, g.bottom)
        np.testing.assert_allclose(g.surface, g.top)
        np.testing.assert_allclose(g.sample, g.surface)

    def test_frame_columns(self, make_grasp):
        g = make_grasp()
        np.testing.assert_allclose(g.frame, np.eye(3))

    def test_bad_vector_length(self):
        with pytest.raises(ValueError, match='bottom'):
            Grasp(bottom=[0, 0], approach=[1, 0, 0], binormal=[0, 1, 0])

    def test_from_dict_missing_key(self):
        with pytest.raises(ValueError, match='approach'):
            Grasp.from_dict({'bottom': [0, 0, 0], 'binormal': [0, 1, 0]})

    def test_dict_keeps_fields(self, make_grasp):
        g = make_grasp(bottom=(0.1, 0.0, 0.5), score=3.5)
        g.full_antipodal = True
        back = Grasp.from_dict(g.to_dict())
        np.testing.assert_allclose(back.top, g.top)
        assert back.score == 3.5
        assert back.full_antipodal


class TestSelectGrasps:

    def test_sorted_and_capped(self, make_grasp):
        grasps = [make_grasp(score=s) for s in (1.0, 5.0, 3.0)]
        selected = select_grasps(grasps, WORKSPACE, num_selected=2)
        assert [g.score for g in selected] == [5.0, 3.0]

    def test_zero_keeps_all(self, make_grasp):
        grasps = [make_grasp(score=s) for s in (1.0, 2.0)]
        assert len(select_grasps(grasps, WORKSPACE, num_selected=0)) == 2

    def test_outside_workspace_dropped(self, make_grasp):
        inside = make_grasp(bottom=(0.5, 0.0, 0.0))
        outside = make_grasp(bottom=(1.5, 0.0, 0.0), score=10.0)
        assert select_grasps([inside, outside], WORKSPACE) == [inside]


class TestHandBoxes:

    def test_geometry(self, make_grasp):
        hand = HandGeometry(finger_width=0.01, outer_diameter=0.1, depth=0.06, height=0.02)
        base, left, right, approach = hand_boxes(make_grasp(), hand)

        # fingers sit (hw - finger_width/2) to each side, half a depth forward
        np.testing.assert_allclose(left.center, [0.03, -0.045, 0.0])
        np.testing.assert_allclose(right.center, [0.03, 0.045, 0.0])
        assert left.scale == (0.06, 0.01, 0.02)

        np.testing.assert_allclose(base.center, [0.0, 0.0, 0.0])
        assert base.ns == 'hand_base'
        assert base.scale[1] == pytest.approx(0.09)

        np.testing.assert_allclose(approach.center, [-0.05, 0.0, 0.0])
        assert approach.scale == (0.08, 0.01, 0.02)
        assert {left.ns, right.ns, approach.ns} == {'finger'}


def test_detection_dump(tmp_path, make_grasp):
    path = tmp_path / 'detection.npz'
    points = np.random.default_rng(1).random((10, 3))
    save_detection(path, points, [make_grasp(score=2.0)], 'camera_link')

    loaded_points, grasps, frame_id = load_detection(path)
    np.testing.assert_allclose(loaded_points, points, atol=1e-6)
    assert frame_id == 'camera_link'
    assert len(grasps) == 1 and grasps[0].score == 2.0
