#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
import threading

import numpy as np

import rclpy
from rclpy.node import Node

from sensor_msgs.msg import PointCloud2
from visualization_msgs.msg import MarkerArray
from object_msgs.msg import ObjectsInBoxes
from grasp_msgs.msg import GraspConfigList

from grasp_ros2 import consts
from grasp_ros2 import conversions as conv
from grasp_ros2 import markers
from grasp_ros2.cloud import CloudCamera, crop_roi, remove_plane
from grasp_ros2.detector import DetectionParameters, GpdDetector, GraspDetectionError
from grasp_ros2.detector_base import GraspDetectorBase
from grasp_ros2.grasp import save_detection


class GraspDetectorGPD(Node, GraspDetectorBase):
    """
    ROS 2 node that detects grasp poses in a point cloud.
    Clouds arrive on cloud_topic, detection runs on a worker thread through the
    external GPD process, grasps go out as GraspConfigList and rviz hand markers.
    """

    def __init__(self, detector=None, **kwargs):
        Node.__init__(self, 'grasp_detector_gpd', **kwargs)
        GraspDetectorBase.__init__(self)

        # ---------- Config ----------
        self.view_point = np.array(self._param('camera_position', [0.0, 0.0, 0.0]), dtype=np.float64)
        self.auto_mode = self._param('auto_mode', True)
        cloud_topic = self._param('cloud_topic', consts.TOPIC_POINT_CLOUD2)
        grasp_topic = self._param('grasp_topic', consts.TOPIC_DETECTED_GRASPS)
        rviz_topic = self._param('rviz_topic', consts.TOPIC_VISUAL_GRASPS)
        tabletop_topic = self._param('tabletop_topic', consts.TOPIC_TABLETOP)
        object_topic = self._param('object_topic', consts.TOPIC_DETECTED_OBJECTS)
        self.object_detect = self._param('object_detect', False)
        self.object_name = self._param('object_name', '')
        self.object_probability = self._param('object_probability', 0.5)
        self.plane_remove = self._param('plane_remove', True)
        self.plane_distance_threshold = self._param('plane_distance_threshold', 0.015)
        self.marker_lifetime = self._param('marker_lifetime', 10.0)
        self.result_dir = os.path.expanduser(self._param('result_dir', ''))

        defaults = DetectionParameters()
        detection_params = DetectionParameters(
            **{name: self._param(name, getattr(defaults, name)) for name in DetectionParameters.names()})

        if detector is None:
            detector = GpdDetector(
                detection_params, self.get_logger(),
                command=self._param('gpd_command', 'detect_grasps_json'),
                container_name=self._param('container_name', ''),
                host_dir=self._param('host_dir', '/tmp/grasp_ros2'),
                container_dir=self._param('container_dir', ''),
                timeout=self._param('detection_timeout', 120.0),
            )
        self.grasp_detector = detector

        # ---------- State ----------
        self.cloud_camera = None
        self.cloud_camera_header = None
        self.frame = ''
        # object name -> (probability, roi as (x_offset, y_offset, width, height))
        self.objects = {}
        self._has_cloud = threading.Event()
        self._shutdown = threading.Event()

        # ---------- ROS interfaces ----------
        self.object_sub = None
        if self.object_detect:
            self.object_sub = self.create_subscription(
                ObjectsInBoxes, object_topic, self.object_callback, 10)
        self.cloud_sub = self.create_subscription(PointCloud2, cloud_topic, self.cloud_callback, 10)
        self.grasps_pub = self.create_publisher(GraspConfigList, grasp_topic, 10)
        self.grasps_rviz_pub = None
        if rviz_topic:
            self.grasps_rviz_pub = self.create_publisher(MarkerArray, rviz_topic, 10)
        self.tabletop_pub = self.create_publisher(PointCloud2, tabletop_topic, 10)

        self.get_logger().info('Grasp detector node up.')

        self.detector_thread = threading.Thread(target=self.on_init, daemon=True)
        self.detector_thread.start()

    def _param(self, name, default):
        return self.declare_parameter(name, default).value

    # ------------------------------- Worker -------------------------------

    def on_init(self):
        """Detection loop: waits for a cloud, detects, publishes, repeats until shutdown."""
        self.get_logger().info('Waiting for point cloud to arrive ...')
        while rclpy.ok() and not self._shutdown.is_set():
            if not self._has_cloud.wait(timeout=0.01):
                continue
            try:
                grasps = self.detect_grasp_poses_in_topic()
                if self.grasps_rviz_pub is not None:
                    self.grasps_rviz_pub.publish(self.convert_to_visual_grasp_msg(grasps, self.frame))
            except (GraspDetectionError, ValueError) as e:
                self.get_logger().error(f'Grasp detection failed: {e}')
            except Exception as e:
                self.get_logger().error(f'Unexpected error in grasp detection: {e!r}')
            finally:
                self._has_cloud.clear()
            self.get_logger().info('Waiting for point cloud to arrive ...')

    def detect_grasp_poses_in_topic(self):
        cloud = self.grasp_detector.preprocess(self.cloud_camera)
        grasps = self.grasp_detector.detect(cloud)

        selected_grasps_msg = self.create_grasp_list_msg(grasps)
        self.grasps_pub.publish(selected_grasps_msg)
        self.get_logger().info(f'Published {len(selected_grasps_msg.grasps)} highest-scoring grasps.')
        self.notify(selected_grasps_msg)

        if self.result_dir:
            stamp = self.cloud_camera_header.stamp
            path = os.path.join(self.result_dir, f'detection_{stamp.sec}_{stamp.nanosec:09d}.npz')
            try:
                os.makedirs(self.result_dir, exist_ok=True)
                save_detection(path, cloud.points, grasps, self.frame)
            except OSError as e:
                self.get_logger().warn(f'Cannot save detection to {path}: {e}')
        return grasps

    # ------------------------------- Callbacks -------------------------------

    def cloud_callback(self, msg: PointCloud2):
        if not self.auto_mode and not self.started:
            return
        if self._has_cloud.is_set():
            # previous cloud still being processed
            return

        try:
            if conv.has_normals(msg):
                cloud = conv.cloud_from_msg(msg, self.view_point)
                self.get_logger().info(f'Received cloud with {len(cloud)} points and normals.')
            else:
                cloud = self._objects_cloud(msg)
                if cloud is None:
                    return
                self.get_logger().info(f'Received cloud with {len(cloud)} points.')
        except ValueError as e:
            self.get_logger().error(f'Cannot use point cloud: {e}')
            return

        self.cloud_camera = cloud
        self.cloud_camera_header = msg.header
        self.frame = msg.header.frame_id
        self._has_cloud.set()

    def _objects_cloud(self, msg):
        if self.object_detect:
            entry = self.objects.get(self.object_name)
            if entry is None:
                self.get_logger().info(f'Object "{self.object_name}" not detected yet, skipping cloud.')
                return None
            points, colors, height, width = conv.organized_arrays(msg)
            points, colors = crop_roi(points, colors, height, width, entry[1])
            cloud = CloudCamera(points, colors=colors, view_points=[self.view_point])
        else:
            cloud = conv.cloud_from_msg(msg, self.view_point)

        if self.plane_remove:
            cloud, _ = remove_plane(cloud, self.plane_distance_threshold)
            self.tabletop_pub.publish(conv.cloud_to_msg(msg.header, cloud))
        return cloud

    def object_callback(self, msg: ObjectsInBoxes):
        if not self.object_detect:
            return
        objects = {}
        for obj in msg.objects_vector:
            name, probability = obj.object.object_name, obj.object.probability
            if probability < self.object_probability:
                continue
            if name in objects and objects[name][0] >= probability:
                continue
            roi = obj.roi
            objects[name] = (probability, (roi.x_offset, roi.y_offset, roi.width, roi.height))
        self.objects = objects

    # ------------------------------- Message helpers -------------------------------

    def create_grasp_list_msg(self, hands) -> GraspConfigList:
        return conv.grasp_list_msg(hands, self.cloud_camera_header, self.object_name)

    def convert_to_grasp_msg(self, hand):
        return conv.grasp_to_msg(hand)

    def convert_to_visual_grasp_msg(self, hands, frame_id) -> MarkerArray:
        return markers.grasps_to_markers(
            hands, self.grasp_detector.hand_geometry, frame_id,
            stamp=self.get_clock().now().to_msg(), lifetime=self.marker_lifetime)

    def create_finger_marker(self, center, frame, length, width, height, id, frame_id):
        return markers.create_finger_marker(
            center, frame, length, width, height, id, frame_id,
            stamp=self.get_clock().now().to_msg(), lifetime=self.marker_lifetime)

    def create_hand_base_marker(self, start, end, frame, length, height, id, frame_id):
        return markers.create_hand_base_marker(
            start, end, frame, length, height, id, frame_id,
            stamp=self.get_clock().now().to_msg(), lifetime=self.marker_lifetime)

    def destroy_node(self):
        self._shutdown.set()
        if self.detector_thread.is_alive():
            self.detector_thread.join(timeout=1.0)
        super().destroy_node()


def main(args=None):
    rclpy.init(args=args)
    node = GraspDetectorGPD()
    try:
        rclpy.spin(node)
    finally:
        node.destroy_node()
        rclpy.shutdown()


if __name__ == '__main__':
    main()
