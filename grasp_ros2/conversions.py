#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import numpy as np

from geometry_msgs.msg import Point, Vector3
from sensor_msgs_py import point_cloud2 as pc2
from grasp_msgs.msg import GraspConfig, GraspConfigList

from grasp_ros2.cloud import CloudCamera
from grasp_ros2.grasp import Grasp

XYZ = ('x', 'y', 'z')
NORMALS = ('normal_x', 'normal_y', 'normal_z')


def point_eigen_to_msg(e) -> Point:
    return Point(x=float(e[0]), y=float(e[1]), z=float(e[2]))


def vector_eigen_to_msg(e) -> Vector3:
    return Vector3(x=float(e[0]), y=float(e[1]), z=float(e[2]))


def point_msg_to_array(m) -> np.ndarray:
    return np.array([m.x, m.y, m.z], dtype=np.float64)


def field_names(msg):
    return [f.name for f in msg.fields]


def has_normals(msg) -> bool:
    names = field_names(msg)
    return all(n in names for n in NORMALS)


def _color_field(msg):
    names = field_names(msg)
    for name in ('rgb', 'rgba'):
        if name in names:
            return name
    return None


def _read_columns(msg, names) -> np.ndarray:
    arr = pc2.read_points(msg, field_names=list(names), skip_nans=False)
    return np.column_stack([np.asarray(arr[n], dtype=np.float64) for n in names])


def _read_colors(msg, name) -> np.ndarray:
    raw = np.ascontiguousarray(pc2.read_points(msg, field_names=[name], skip_nans=False)[name])
    if raw.dtype != np.uint32:
        raw = raw.astype(np.float32).view(np.uint32)
    rgb = np.column_stack(((raw >> 16) & 0xFF, (raw >> 8) & 0xFF, raw & 0xFF))
    return rgb.astype(np.float64) / 255.0


def organized_arrays(msg):
    """(points, colors, height, width) with NaNs kept so rows map to image pixels."""
    points = _read_columns(msg, XYZ)
    color_name = _color_field(msg)
    colors = _read_colors(msg, color_name) if color_name else None
    return points, colors, msg.height, msg.width


def cloud_from_msg(msg, view_point=(0.0, 0.0, 0.0)) -> CloudCamera:
    points = _read_columns(msg, XYZ)
    normals = _read_columns(msg, NORMALS) if has_normals(msg) else None
    color_name = _color_field(msg)
    colors = _read_colors(msg, color_name) if color_name else None
    return CloudCamera(points, normals=normals, colors=colors, view_points=[view_point])


def cloud_to_msg(header, cloud: CloudCamera):
    return pc2.create_cloud_xyz32(header, cloud.points.astype(np.float32))


def grasp_to_msg(grasp: Grasp) -> GraspConfig:
    msg = GraspConfig()
    msg.bottom = point_eigen_to_msg(grasp.bottom)
    msg.top = point_eigen_to_msg(grasp.top)
    msg.surface = point_eigen_to_msg(grasp.surface)
    msg.approach = vector_eigen_to_msg(grasp.approach)
    msg.binormal = vector_eigen_to_msg(grasp.binormal)
    msg.axis = vector_eigen_to_msg(grasp.axis)
    msg.width.data = grasp.width
    msg.score.data = grasp.score
    msg.sample = point_eigen_to_msg(grasp.sample)
    return msg


def grasp_from_msg(msg: GraspConfig) -> Grasp:
    return Grasp(
        bottom=point_msg_to_array(msg.bottom),
        top=point_msg_to_array(msg.top),
        surface=point_msg_to_array(msg.surface),
        approach=point_msg_to_array(msg.approach),
        binormal=point_msg_to_array(msg.binormal),
        axis=point_msg_to_array(msg.axis),
        sample=point_msg_to_array(msg.sample),
        width=msg.width.data,
        score=msg.score.data,
    )


def grasp_list_msg(grasps, header, object_name='') -> GraspConfigList:
    msg = GraspConfigList()
    msg.header = header
    msg.grasps = [grasp_to_msg(g) for g in grasps]
    msg.object_name = object_name
    return msg
