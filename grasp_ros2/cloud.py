#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import numpy as np
import open3d as o3d


class CloudCamera:
    """
    Point cloud plus the camera view points it was seen from.
    Non-finite points are dropped on construction, together with their normals and colors.
    """

    def __init__(self, points, normals=None, colors=None, view_points=None, camera_source=None):
        pts = np.asarray(points, dtype=np.float64).reshape((-1, 3))
        valid = np.isfinite(pts).all(axis=1)

        self.points = pts[valid]
        self.normals = None
        if normals is not None:
            self.normals = np.asarray(normals, dtype=np.float64).reshape((-1, 3))[valid]
        self.colors = None
        if colors is not None:
            self.colors = np.asarray(colors, dtype=np.float64).reshape((-1, 3))[valid]

        if view_points is None:
            view_points = np.zeros((1, 3))
        self.view_points = np.asarray(view_points, dtype=np.float64).reshape((-1, 3))

        if camera_source is None:
            self.camera_source = np.zeros(self.points.shape[0], dtype=np.int32)
        else:
            self.camera_source = np.asarray(camera_source, dtype=np.int32).reshape(-1)[valid]

    def __len__(self):
        return self.points.shape[0]

    @property
    def has_normals(self) -> bool:
        return self.normals is not None

    def select(self, index) -> 'CloudCamera':
        """New cloud with the given subset of points (boolean mask or indices)."""
        return CloudCamera(
            self.points[index],
            normals=None if self.normals is None else self.normals[index],
            colors=None if self.colors is None else self.colors[index],
            view_points=self.view_points,
            camera_source=self.camera_source[index],
        )

    def to_o3d(self) -> o3d.geometry.PointCloud:
        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(self.points)
        if self.normals is not None:
            pcd.normals = o3d.utility.Vector3dVector(self.normals)
        if self.colors is not None:
            pcd.colors = o3d.utility.Vector3dVector(self.colors)
        return pcd


def crop_workspace(cloud: CloudCamera, workspace) -> CloudCamera:
    xmin, xmax, ymin, ymax, zmin, zmax = workspace
    p = cloud.points
    mask = ((p[:, 0] >= xmin) & (p[:, 0] <= xmax) &
            (p[:, 1] >= ymin) & (p[:, 1] <= ymax) &
            (p[:, 2] >= zmin) & (p[:, 2] <= zmax))
    return cloud.select(mask)


def voxelize(cloud: CloudCamera, voxel_size: float) -> CloudCamera:
    if len(cloud) == 0:
        return cloud
    pcd = cloud.to_o3d().voxel_down_sample(voxel_size)
    # voxel averaging mixes cameras, keep the first view point
    return CloudCamera(
        np.asarray(pcd.points),
        normals=np.asarray(pcd.normals) if cloud.has_normals else None,
        colors=np.asarray(pcd.colors) if cloud.colors is not None else None,
        view_points=cloud.view_points,
    )


def remove_outliers(cloud: CloudCamera, nb_neighbors=20, std_ratio=2.0) -> CloudCamera:
    if len(cloud) <= nb_neighbors:
        return cloud
    _, index = cloud.to_o3d().remove_statistical_outlier(nb_neighbors=nb_neighbors, std_ratio=std_ratio)
    return cloud.select(np.asarray(index, dtype=np.int64))


def remove_plane(cloud: CloudCamera, distance_threshold=0.015, ransac_n=3, iterations=1000):
    """
    Drop the dominant plane (the table).
    Returns (objects_cloud, plane_coefficients); coefficients are None when nothing was fitted.
    """
    if len(cloud) < ransac_n:
        return cloud, None
    plane, inliers = cloud.to_o3d().segment_plane(
        distance_threshold=distance_threshold, ransac_n=ransac_n, num_iterations=iterations)
    mask = np.ones(len(cloud), dtype=bool)
    mask[np.asarray(inliers, dtype=np.int64)] = False
    return cloud.select(mask), np.asarray(plane)


def estimate_normals(cloud: CloudCamera, radius=0.01, max_nn=30) -> CloudCamera:
    if len(cloud) == 0:
        return cloud
    pcd = cloud.to_o3d()
    pcd.estimate_normals(search_param=o3d.geometry.KDTreeSearchParamHybrid(radius=radius, max_nn=max_nn))
    pcd.orient_normals_towards_camera_location(cloud.view_points[0])
    return CloudCamera(
        cloud.points,
        normals=np.asarray(pcd.normals),
        colors=cloud.colors,
        view_points=cloud.view_points,
        camera_source=cloud.camera_source,
    )


def crop_roi(points, colors, height, width, roi):
    """
    Crop an organized cloud by an image region (x_offset, y_offset, roi_width, roi_height).
    points/colors are row-major (height * width, 3) arrays.
    """
    if height <= 1:
        raise ValueError('cannot crop an unorganized point cloud by image region')
    x_offset, y_offset, roi_width, roi_height = (int(v) for v in roi)
    x0, y0 = max(x_offset, 0), max(y_offset, 0)
    x1, y1 = min(x_offset + roi_width, width), min(y_offset + roi_height, height)

    grid = np.asarray(points).reshape((height, width, 3))
    cropped = grid[y0:y1, x0:x1].reshape((-1, 3))
    cropped_colors = None
    if colors is not None:
        cropped_colors = np.asarray(colors).reshape((height, width, 3))[y0:y1, x0:x1].reshape((-1, 3))
    return cropped, cropped_colors
