#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import threading

import numpy as np

import rclpy
from rclpy.callback_groups import ReentrantCallbackGroup
from rclpy.duration import Duration
from rclpy.executors import MultiThreadedExecutor
from rclpy.node import Node
from rclpy.parameter import Parameter
from rclpy.time import Time

import tf2_ros
from tf2_ros import TransformException

from moveit_msgs.msg import Grasp as MoveItGrasp
from moveit_msgs.msg import MoveItErrorCodes
from moveit_msgs.srv import GraspPlanning
from trajectory_msgs.msg import JointTrajectory, JointTrajectoryPoint

# tf transformations for 4x4 -> quaternion
import tf_transformations as tfs

from grasp_ros2 import consts
from grasp_ros2 import conversions as conv
from grasp_ros2.detector_base import GraspCallback, GraspDetectorBase
from grasp_ros2.grasp_detector_gpd import GraspDetectorGPD
from grasp_ros2.planning import (
    PlannerParameters, accept_grasp, eef_pose, matrix_from_transform, transform_grasp)


def finger_posture(joint_names, positions) -> JointTrajectory:
    posture = JointTrajectory()
    posture.joint_names = list(joint_names)
    point = JointTrajectoryPoint()
    point.positions = [float(p) for p in positions]
    point.time_from_start = Duration(seconds=0.5).to_msg()
    posture.points = [point]
    return posture


class GraspPlanner(Node, GraspCallback):
    """
    GraspPlanning service on top of the grasp detector: turns detected grasps into
    MoveIt grasps expressed in grasp_frame_id.
    """

    def __init__(self, grasp_detector: GraspDetectorBase, **kwargs):
        Node.__init__(self, 'grasp_planner', **kwargs)

        defaults = PlannerParameters()
        self.params = PlannerParameters(
            grasp_frame_id=self._param('grasp_frame_id', defaults.grasp_frame_id),
            score_threshold=self._param('grasp_score_threshold', defaults.score_threshold),
            approach=self._param('grasp_approach', defaults.approach),
            approach_angle=self._param('grasp_approach_angle', defaults.approach_angle),
            offset=self._param('grasp_offset', defaults.offset),
            boundary=self._param('grasp_boundary', defaults.boundary),
            eef_offset=self._param('eef_offset', defaults.eef_offset),
            eef_yaw_offset=self._param('eef_yaw_offset', defaults.eef_yaw_offset),
            min_distance=self._param('grasp_min_distance', defaults.min_distance),
            desired_distance=self._param('grasp_desired_distance', defaults.desired_distance),
            finger_joint_names=self._param('finger_joint_names', defaults.finger_joint_names),
            finger_positions_open=self._param('finger_positions_open', defaults.finger_positions_open),
            finger_positions_close=self._param('finger_positions_close', defaults.finger_positions_close),
        )
        self.grasp_service_timeout = self._param('grasp_service_timeout', 0.0)

        self.tf_buffer = tf2_ros.Buffer()
        self.tf_listener = tf2_ros.TransformListener(self.tf_buffer, self)

        self._cv = threading.Condition()
        self.moveit_grasps = []
        self.target_id = ''

        self.grasp_detector = grasp_detector
        self.grasp_detector.add_callback(self)

        self.srv = self.create_service(
            GraspPlanning, consts.SERVICE_GRASP_PLANNING, self.grasp_service,
            callback_group=ReentrantCallbackGroup())
        self.get_logger().info('Grasp planning service ready.')

    def _param(self, name, default):
        return self.declare_parameter(name, default).value

    def lookup(self, source_frame: str) -> np.ndarray:
        if not source_frame or source_frame == self.params.grasp_frame_id:
            return np.eye(4)
        tf = self.tf_buffer.lookup_transform(self.params.grasp_frame_id, source_frame, Time())
        return matrix_from_transform(tf.transform.translation, tf.transform.rotation)

    def to_moveit_grasp(self, grasp, index: int, stamp) -> MoveItGrasp:
        p = self.params
        T = eef_pose(grasp, p)
        q = tfs.quaternion_from_matrix(T)

        msg = MoveItGrasp()
        msg.id = f'grasp_{index}'
        msg.grasp_pose.header.frame_id = p.grasp_frame_id
        msg.grasp_pose.header.stamp = stamp
        msg.grasp_pose.pose.position = conv.point_eigen_to_msg(T[:3, 3])
        msg.grasp_pose.pose.orientation.x = float(q[0])
        msg.grasp_pose.pose.orientation.y = float(q[1])
        msg.grasp_pose.pose.orientation.z = float(q[2])
        msg.grasp_pose.pose.orientation.w = float(q[3])
        msg.grasp_quality = grasp.score

        approach = grasp.approach / np.linalg.norm(grasp.approach)
        msg.pre_grasp_approach.direction.header.frame_id = p.grasp_frame_id
        msg.pre_grasp_approach.direction.vector = conv.vector_eigen_to_msg(approach)
        msg.pre_grasp_approach.min_distance = p.min_distance
        msg.pre_grasp_approach.desired_distance = p.desired_distance
        msg.post_grasp_retreat.direction.header.frame_id = p.grasp_frame_id
        msg.post_grasp_retreat.direction.vector = conv.vector_eigen_to_msg(-approach)
        msg.post_grasp_retreat.min_distance = p.min_distance
        msg.post_grasp_retreat.desired_distance = p.desired_distance

        msg.pre_grasp_posture = finger_posture(p.finger_joint_names, p.finger_positions_open)
        msg.grasp_posture = finger_posture(p.finger_joint_names, p.finger_positions_close)
        return msg

    def grasp_callback(self, msg):
        with self._cv:
            target_id = self.target_id
        if target_id and msg.object_name and msg.object_name != target_id:
            return

        try:
            T = self.lookup(msg.header.frame_id)
        except TransformException as e:
            self.get_logger().warn(f'No transform {msg.header.frame_id} -> {self.params.grasp_frame_id}: {e}')
            return

        stamp = self.get_clock().now().to_msg()
        grasps = []
        for g in msg.grasps:
            grasp = transform_grasp(conv.grasp_from_msg(g), T)
            if accept_grasp(grasp, self.params):
                grasps.append(self.to_moveit_grasp(grasp, len(grasps), stamp))
        self.get_logger().info(f'{len(grasps)} of {len(msg.grasps)} grasps accepted.')
        if not grasps:
            return

        with self._cv:
            self.moveit_grasps = grasps
            self._cv.notify_all()

    def grasp_service(self, request, response):
        with self._cv:
            self.moveit_grasps = []
            self.target_id = request.target.id

        timeout = self.grasp_service_timeout if self.grasp_service_timeout > 0 else None
        self.grasp_detector.start()
        try:
            with self._cv:
                found = self._cv.wait_for(lambda: self.moveit_grasps, timeout=timeout)
                grasps = list(self.moveit_grasps)
        finally:
            self.grasp_detector.stop()

        if found:
            response.grasps = grasps
            response.error_code.val = MoveItErrorCodes.SUCCESS
            self.get_logger().info(f'Responded with {len(grasps)} grasps.')
        else:
            response.error_code.val = MoveItErrorCodes.TIMED_OUT
            self.get_logger().warn('No grasps before timeout.')
        return response


def main(args=None):
    rclpy.init(args=args)
    # detection runs only while a planning request is pending
    detector = GraspDetectorGPD(parameter_overrides=[Parameter('auto_mode', value=False)])
    planner = GraspPlanner(detector)
    executor = MultiThreadedExecutor()
    executor.add_node(detector)
    executor.add_node(planner)
    try:
        executor.spin()
    finally:
        planner.destroy_node()
        detector.destroy_node()
        rclpy.shutdown()


if __name__ == '__main__':
    main()
