#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import math
from dataclasses import dataclass, field

import numpy as np
import tf_transformations as tfs

from grasp_ros2.grasp import Grasp, in_workspace


@dataclass
class PlannerParameters:
    grasp_frame_id: str = 'base'
    score_threshold: float = 0.0
    approach: list = field(default_factory=lambda: [0.0, 0.0, -1.0])
    approach_angle: float = math.pi  # pi accepts any approach
    offset: list = field(default_factory=lambda: [0.0, 0.0, 0.0])
    boundary: list = field(default_factory=lambda: [-1.0, 1.0, -1.0, 1.0, -1.0, 1.0])
    eef_offset: float = 0.154
    eef_yaw_offset: float = 0.0
    min_distance: float = 0.06
    desired_distance: float = 0.1
    finger_joint_names: list = field(default_factory=lambda: ['panda_finger_joint1', 'panda_finger_joint2'])
    finger_positions_open: list = field(default_factory=lambda: [0.04, 0.04])
    finger_positions_close: list = field(default_factory=lambda: [0.0, 0.0])


def transform_grasp(grasp: Grasp, T) -> Grasp:
    """Express a grasp in another frame: points get the full transform, directions the rotation."""
    T = np.asarray(T, dtype=np.float64)
    R, t = T[:3, :3], T[:3, 3]
    return Grasp(
        bottom=R @ grasp.bottom + t,
        top=R @ grasp.top + t,
        surface=R @ grasp.surface + t,
        sample=R @ grasp.sample + t,
        approach=R @ grasp.approach,
        binormal=R @ grasp.binormal,
        axis=R @ grasp.axis,
        width=grasp.width,
        score=grasp.score,
        full_antipodal=grasp.full_antipodal,
        half_antipodal=grasp.half_antipodal,
    )


def approach_angle(grasp: Grasp, desired) -> float:
    a = grasp.approach / np.linalg.norm(grasp.approach)
    d = np.asarray(desired, dtype=np.float64)
    d = d / np.linalg.norm(d)
    return float(np.arccos(np.clip(a @ d, -1.0, 1.0)))


def accept_grasp(grasp: Grasp, params: PlannerParameters) -> bool:
    if grasp.score < params.score_threshold:
        return False
    if not in_workspace(grasp.bottom, params.boundary):
        return False
    if params.approach_angle < math.pi and approach_angle(grasp, params.approach) > params.approach_angle:
        return False
    return True


def eef_pose(grasp: Grasp, params: PlannerParameters) -> np.ndarray:
    """End-effector pose (4x4): z along the approach, y along the closing direction."""
    z = grasp.approach / np.linalg.norm(grasp.approach)
    y = grasp.binormal / np.linalg.norm(grasp.binormal)
    x = np.cross(y, z)
    T = np.eye(4)
    T[:3, :3] = np.column_stack((x, y, z))
    T = T @ tfs.rotation_matrix(params.eef_yaw_offset, [0, 0, 1])
    T[:3, 3] = grasp.top - params.eef_offset * z + np.asarray(params.offset, dtype=np.float64)
    return T


def matrix_from_transform(translation, rotation) -> np.ndarray:
    """4x4 matrix from a geometry_msgs Transform-like translation and (x, y, z, w) rotation."""
    T = tfs.quaternion_matrix([rotation.x, rotation.y, rotation.z, rotation.w])
    T[:3, 3] = [translation.x, translation.y, translation.z]
    return T
