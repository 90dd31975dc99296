TOPIC_POINT_CLOUD2 = '/camera/depth_registered/points'
TOPIC_DETECTED_OBJECTS = '/ros2_openvino_toolkit/detected_objects'
TOPIC_DETECTED_GRASPS = '/grasp_library/clustered_grasps'
TOPIC_VISUAL_GRASPS = '/grasp_library/grasps_rviz'
TOPIC_TABLETOP = '/grasp_library/tabletop_points'
SERVICE_GRASP_PLANNING = 'plan_grasps'
