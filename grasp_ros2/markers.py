#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import numpy as np

from builtin_interfaces.msg import Duration
from visualization_msgs.msg import Marker, MarkerArray

# tf transformations for 3x3 -> quaternion
import tf_transformations as tfs

from grasp_ros2.grasp import hand_boxes


def _duration(seconds: float) -> Duration:
    sec = int(seconds)
    return Duration(sec=sec, nanosec=int(round((seconds - sec) * 1e9)))


def _box_marker(ns, center, frame, scale, id, frame_id, stamp, lifetime, color):
    marker = Marker()
    marker.header.frame_id = frame_id
    if stamp is not None:
        marker.header.stamp = stamp
    marker.ns = ns
    marker.id = int(id)
    marker.type = Marker.CUBE
    marker.action = Marker.ADD
    marker.pose.position.x = float(center[0])
    marker.pose.position.y = float(center[1])
    marker.pose.position.z = float(center[2])

    T = np.eye(4)
    T[:3, :3] = frame
    q = tfs.quaternion_from_matrix(T)
    marker.pose.orientation.x = float(q[0])
    marker.pose.orientation.y = float(q[1])
    marker.pose.orientation.z = float(q[2])
    marker.pose.orientation.w = float(q[3])

    marker.scale.x = float(scale[0])  # along the approach
    marker.scale.y = float(scale[1])  # along the closing direction
    marker.scale.z = float(scale[2])
    marker.color.r, marker.color.g, marker.color.b, marker.color.a = color
    marker.lifetime = _duration(lifetime)
    return marker


def create_finger_marker(center, frame, length, width, height, id, frame_id,
                         stamp=None, lifetime=10.0):
    return _box_marker('finger', center, frame, (length, width, height), id, frame_id,
                       stamp, lifetime, (0.0, 0.0, 0.5, 0.5))


def create_hand_base_marker(start, end, frame, length, height, id, frame_id,
                            stamp=None, lifetime=10.0):
    start, end = np.asarray(start, dtype=np.float64), np.asarray(end, dtype=np.float64)
    center = start + 0.5 * (end - start)
    width = float(np.linalg.norm(end - start))
    return _box_marker('hand_base', center, frame, (length, width, height), id, frame_id,
                       stamp, lifetime, (0.0, 0.0, 1.0, 0.5))


def grasps_to_markers(grasps, hand, frame_id, stamp=None, lifetime=10.0) -> MarkerArray:
    marker_array = MarkerArray()
    for i, grasp in enumerate(grasps):
        base, left, right, approach = hand_boxes(grasp, hand)
        marker_array.markers.append(_box_marker(
            base.ns, base.center, base.frame, base.scale, i, frame_id, stamp, lifetime,
            (0.0, 0.0, 1.0, 0.5)))
        for j, box in enumerate((left, right, approach)):
            marker_array.markers.append(create_finger_marker(
                box.center, box.frame, box.scale[0], box.scale[1], box.scale[2],
                i * 3 + j, frame_id, stamp, lifetime))
    return marker_array
