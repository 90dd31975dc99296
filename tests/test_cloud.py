import numpy as np
import pytest

from grasp_ros2.cloud import (
    CloudCamera, crop_roi, crop_workspace, estimate_normals, remove_outliers, remove_plane, voxelize)


class TestCloudCamera:

    def test_non_finite_points_dropped_with_attributes(self):
        points = [[0, 0, 0], [np.nan, 0, 0], [1, 1, 1]]
        colors = [[1, 0, 0], [0, 1, 0], [0, 0, 1]]
        cloud = CloudCamera(points, colors=colors)
        assert len(cloud) == 2
        np.testing.assert_allclose(cloud.colors, [[1, 0, 0], [0, 0, 1]])
        assert cloud.camera_source.tolist() == [0, 0]

    def test_default_view_point(self):
        cloud = CloudCamera(np.zeros((3, 3)))
        np.testing.assert_allclose(cloud.view_points, [[0, 0, 0]])
        assert not cloud.has_normals


def test_crop_workspace():
    cloud = CloudCamera([[0, 0, 0], [0.5, 0, 0], [0, 0, 2.0]])
    cropped = crop_workspace(cloud, [-0.1, 0.6, -1, 1, -1, 1])
    assert len(cropped) == 2


def test_voxelize_merges_close_points():
    points = np.array([[0, 0, 0], [0.0001, 0, 0], [0.5, 0.5, 0.5]])
    assert len(voxelize(CloudCamera(points), 0.01)) == 2


def test_voxelize_empty_cloud():
    cloud = CloudCamera(np.empty((0, 3)))
    assert voxelize(cloud, 0.01) is cloud


def test_remove_outliers_drops_far_point():
    rng = np.random.default_rng(0)
    points = np.vstack((rng.normal(0, 0.01, (200, 3)), [[5.0, 5.0, 5.0]]))
    filtered = remove_outliers(CloudCamera(points), nb_neighbors=20, std_ratio=2.0)
    assert len(filtered) < 201
    assert np.all(np.abs(filtered.points) < 1.0)


class TestRemovePlane:

    def test_table_removed(self, tabletop_points):
        objects, plane = remove_plane(CloudCamera(tabletop_points), distance_threshold=0.015)
        assert plane is not None
        # the plane is z ~ 0
        assert abs(plane[2]) == pytest.approx(1.0, abs=0.05)
        assert len(objects) > 0
        assert np.all(objects.points[:, 2] > 0.02)

    def test_too_few_points(self):
        cloud = CloudCamera([[0, 0, 0], [1, 0, 0]])
        objects, plane = remove_plane(cloud)
        assert objects is cloud
        assert plane is None


def test_estimate_normals_face_the_camera(tabletop_points):
    table = tabletop_points[:400]
    cloud = estimate_normals(CloudCamera(table, view_points=[[0, 0, 1.0]]), radius=0.05)
    assert cloud.has_normals
    # camera above the table: normals point up
    assert np.mean(cloud.normals[:, 2] > 0.9) > 0.9


class TestCropRoi:

    def test_crop_and_clamp(self):
        height, width = 4, 5
        points = np.arange(height * width * 3, dtype=np.float64).reshape((-1, 3))
        cropped, colors = crop_roi(points, None, height, width, (3, 2, 10, 10))
        # columns 3..4 of rows 2..3
        assert cropped.shape == (4, 3)
        np.testing.assert_allclose(cropped[0], points[2 * width + 3])
        assert colors is None

    def test_unorganized_cloud(self):
        with pytest.raises(ValueError):
            crop_roi(np.zeros((10, 3)), None, 1, 10, (0, 0, 2, 2))
