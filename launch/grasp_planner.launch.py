import os

from ament_index_python.packages import get_package_share_directory
from launch import LaunchDescription
from launch_ros.actions import Node


def generate_launch_description():
    params = os.path.join(get_package_share_directory('grasp_ros2'), 'config', 'grasp_detector.yaml')
    return LaunchDescription([
        # runs grasp_detector_gpd and grasp_planner in one process, so no node name remap here
        Node(
            package='grasp_ros2',
            executable='grasp_planner',
            parameters=[params],
            output='screen'
        )
    ])
