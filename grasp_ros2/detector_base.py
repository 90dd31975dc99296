#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import abc


class GraspCallback(abc.ABC):

    @abc.abstractmethod
    def grasp_callback(self, msg):
        """Receive a grasp_msgs/GraspConfigList from the detector."""


class GraspDetectorBase:
    """Lets a planner register for detected grasps and switch detection on and off."""

    def __init__(self):
        self.grasp_cb = None
        self.started = False

    def add_callback(self, cb: GraspCallback):
        self.grasp_cb = cb

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def notify(self, msg):
        if self.grasp_cb is not None:
            self.grasp_cb.grasp_callback(msg)
