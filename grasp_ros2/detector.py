#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import abc
import json
import os
import shlex
import subprocess
from dataclasses import dataclass, field, fields

import numpy as np

from grasp_ros2 import cloud as clouds
from grasp_ros2.grasp import Grasp, HandGeometry, select_grasps

BEGIN_JSON = '<<<BEGIN_JSON>>>'
END_JSON = '<<<END_JSON>>>'

DEFAULT_WORKSPACE = [-1.0, 1.0, -1.0, 1.0, -1.0, 1.0]


class GraspDetectionError(RuntimeError):
    pass


@dataclass
class DetectionParameters:
    # hand geometry
    finger_width: float = 0.005
    hand_outer_diameter: float = 0.12
    hand_depth: float = 0.06
    hand_height: float = 0.02
    init_bite: float = 0.01
    # local hand search
    nn_radius: float = 0.01
    num_orientations: int = 8
    num_samples: int = 100
    num_threads: int = 4
    rotation_axis: int = 2
    # classifier
    model_file: str = ''
    weights_file: str = ''
    min_score_diff: float = 0.0
    device: int = 0
    # preprocessing
    workspace: list = field(default_factory=lambda: list(DEFAULT_WORKSPACE))
    workspace_grasps: list = field(default_factory=lambda: list(DEFAULT_WORKSPACE))
    voxelize: bool = True
    voxel_size: float = 0.003
    remove_outliers: bool = False
    estimate_normals: bool = True
    # grasp selection
    num_selected: int = 100
    filter_grasps: bool = False
    filter_half_antipodal: bool = False

    @property
    def hand_geometry(self) -> HandGeometry:
        return HandGeometry(
            finger_width=self.finger_width,
            outer_diameter=self.hand_outer_diameter,
            depth=self.hand_depth,
            height=self.hand_height,
            init_bite=self.init_bite,
        )

    @classmethod
    def names(cls):
        return [f.name for f in fields(cls)]

    def to_config(self) -> str:
        """Render the detector config file: one `key = value` per line, lists comma separated."""
        lines = []
        for name in self.names():
            value = getattr(self, name)
            if isinstance(value, bool):
                value = int(value)
            elif isinstance(value, (list, tuple)):
                value = ', '.join(str(v) for v in value)
            lines.append(f'{name} = {value}')
        return '\n'.join(lines) + '\n'


class GraspDetector(abc.ABC):
    """Interface of the grasp detection library as seen by the node."""

    def __init__(self, params: DetectionParameters):
        self.params = params

    @property
    def hand_geometry(self) -> HandGeometry:
        return self.params.hand_geometry

    def preprocess(self, cloud: clouds.CloudCamera) -> clouds.CloudCamera:
        p = self.params
        cloud = clouds.crop_workspace(cloud, p.workspace)
        if p.voxelize:
            cloud = clouds.voxelize(cloud, p.voxel_size)
        if p.remove_outliers:
            cloud = clouds.remove_outliers(cloud)
        if p.estimate_normals and not cloud.has_normals:
            cloud = clouds.estimate_normals(cloud, radius=p.nn_radius)
        return cloud

    @abc.abstractmethod
    def detect(self, cloud: clouds.CloudCamera):
        """Return the selected grasps, best first."""


def extract_json(text: str):
    """JSON between the markers, else the first line that is a JSON object, else None."""
    begin = text.find(BEGIN_JSON)
    end = text.find(END_JSON, begin + 1) if begin != -1 else -1
    if end != -1:
        return text[begin + len(BEGIN_JSON):end].strip()
    candidates = (stripped for stripped in map(str.strip, text.splitlines())
                  if stripped.startswith('{') and stripped.endswith('}'))
    return next(candidates, None)


class GpdDetector(GraspDetector):
    """
    Runs the GPD binary as an external process, inside a Docker container when
    container_name is set. Input cloud and config go through host_dir, which the
    container sees as container_dir. The command must print the grasps as
    {"grasps": [...]} between the JSON markers.
    """

    def __init__(self, params: DetectionParameters, logger, *, command='detect_grasps_json',
                 container_name='', host_dir='/tmp/grasp_ros2', container_dir='', timeout=120.0):
        super().__init__(params)
        self.logger = logger
        self.command = command
        self.container_name = container_name
        self.host_dir = os.path.expanduser(host_dir)
        self.container_dir = container_dir or self.host_dir
        self.timeout = timeout

    def _write_inputs(self, cloud: clouds.CloudCamera):
        arrays = {
            'points': cloud.points.astype(np.float32),
            'view_points': cloud.view_points.astype(np.float32),
            'camera_source': cloud.camera_source,
        }
        if cloud.has_normals:
            arrays['normals'] = cloud.normals.astype(np.float32)
        try:
            os.makedirs(self.host_dir, exist_ok=True)
            np.savez(os.path.join(self.host_dir, 'cloud.npz'), **arrays)
            with open(os.path.join(self.host_dir, 'gpd.cfg'), 'w') as f:
                f.write(self.params.to_config())
        except OSError as e:
            raise GraspDetectionError(f'cannot write detector inputs to {self.host_dir}: {e}') from e

        return (os.path.join(self.container_dir, 'gpd.cfg'),
                os.path.join(self.container_dir, 'cloud.npz'))

    def build_command(self, cfg_path: str, cloud_path: str):
        inner = f'{self.command} --config={shlex.quote(cfg_path)} --cloud={shlex.quote(cloud_path)}'
        if self.container_name:
            return ['docker', 'exec', self.container_name, 'bash', '-lc', inner]
        return ['bash', '-lc', inner]

    def run(self, cmd) -> dict:
        self.logger.info(f"Running grasp detection: {cmd[-1]}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise GraspDetectionError(f'grasp detection timed out after {self.timeout}s') from e
        except OSError as e:
            raise GraspDetectionError(f'cannot start grasp detection ({cmd[0]}): {e}') from e
        if result.returncode != 0:
            self.logger.error(f"Detection failed (rc={result.returncode}): {result.stderr}")
            raise GraspDetectionError('grasp detection process failed')

        json_text = extract_json(result.stdout)
        if not json_text:
            tail = '\n'.join(result.stdout.splitlines()[-15:])
            self.logger.error(f'No JSON block found in detector output:\n{tail}')
            raise GraspDetectionError('missing JSON from grasp detector')
        try:
            return json.loads(json_text)
        except json.JSONDecodeError as e:
            self.logger.error(f'JSON text was: {json_text[:500]}...')
            raise GraspDetectionError(f'malformed JSON from grasp detector: {e}') from e

    def detect(self, cloud: clouds.CloudCamera):
        if len(cloud) == 0:
            self.logger.warn('Empty point cloud, no grasps to detect.')
            return []
        cfg_path, cloud_path = self._write_inputs(cloud)
        data = self.run(self.build_command(cfg_path, cloud_path))
        try:
            grasps = [Grasp.from_dict(d) for d in data.get('grasps', [])]
        except (ValueError, TypeError, AttributeError) as e:
            raise GraspDetectionError(f'bad grasp record: {e}') from e
        self.logger.info(f'Detector returned {len(grasps)} grasps.')
        return select_grasps(grasps, self.params.workspace_grasps, self.params.num_selected)
