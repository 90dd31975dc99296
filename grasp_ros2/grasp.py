#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import json
from dataclasses import dataclass

import numpy as np


@dataclass
class HandGeometry:
    """Robot hand dimensions (meters) shared by the detector and the markers."""
    finger_width: float = 0.005
    outer_diameter: float = 0.12
    depth: float = 0.06
    height: float = 0.02
    init_bite: float = 0.01


def _vec3(value, name):
    arr = np.asarray(value, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f'{name} must have 3 components, got {arr.shape[0]}')
    return arr


@dataclass
class Grasp:
    """
    One grasp as produced by the detector.
    The hand frame is (approach, binormal, axis); bottom is the hand base center,
    top the fingertip center and surface the point where the hand touches the object.
    """
    bottom: np.ndarray
    approach: np.ndarray
    binormal: np.ndarray
    axis: np.ndarray = None
    top: np.ndarray = None
    surface: np.ndarray = None
    sample: np.ndarray = None
    width: float = 0.0
    score: float = 0.0
    full_antipodal: bool = False
    half_antipodal: bool = False

    def __post_init__(self):
        self.bottom = _vec3(self.bottom, 'bottom')
        self.approach = _vec3(self.approach, 'approach')
        self.binormal = _vec3(self.binormal, 'binormal')
        if self.axis is None:
            self.axis = np.cross(self.approach, self.binormal)
        self.axis = _vec3(self.axis, 'axis')
        self.top = self.bottom.copy() if self.top is None else _vec3(self.top, 'top')
        self.surface = self.top.copy() if self.surface is None else _vec3(self.surface, 'surface')
        self.sample = self.surface.copy() if self.sample is None else _vec3(self.sample, 'sample')
        self.width = float(self.width)
        self.score = float(self.score)

    @property
    def frame(self) -> np.ndarray:
        return np.column_stack((self.approach, self.binormal, self.axis))

    @classmethod
    def from_dict(cls, data: dict) -> 'Grasp':
        try:
            return cls(
                bottom=data['bottom'],
                approach=data['approach'],
                binormal=data['binormal'],
                axis=data.get('axis'),
                top=data.get('top'),
                surface=data.get('surface'),
                sample=data.get('sample'),
                width=data.get('width', 0.0),
                score=data.get('score', 0.0),
                full_antipodal=bool(data.get('full_antipodal', False)),
                half_antipodal=bool(data.get('half_antipodal', False)),
            )
        except KeyError as e:
            raise ValueError(f'grasp record is missing {e.args[0]!r}') from e

    def to_dict(self) -> dict:
        return {
            'bottom': self.bottom.tolist(),
            'top': self.top.tolist(),
            'surface': self.surface.tolist(),
            'approach': self.approach.tolist(),
            'binormal': self.binormal.tolist(),
            'axis': self.axis.tolist(),
            'sample': self.sample.tolist(),
            'width': self.width,
            'score': self.score,
            'full_antipodal': self.full_antipodal,
            'half_antipodal': self.half_antipodal,
        }


def in_workspace(point, workspace) -> bool:
    xmin, xmax, ymin, ymax, zmin, zmax = workspace
    x, y, z = point
    return xmin <= x <= xmax and ymin <= y <= ymax and zmin <= z <= zmax


def select_grasps(grasps, workspace, num_selected=0):
    """Workspace filter, best score first, at most num_selected (0 keeps all)."""
    kept = [g for g in grasps if in_workspace(g.bottom, workspace)]
    kept.sort(key=lambda g: g.score, reverse=True)
    if num_selected > 0:
        kept = kept[:num_selected]
    return kept


@dataclass
class Box:
    ns: str
    center: np.ndarray
    frame: np.ndarray
    scale: tuple = (0.0, 0.0, 0.0)


def hand_boxes(grasp: Grasp, hand: HandGeometry):
    """Boxes that draw the hand: base, left finger, right finger, approach stub."""
    hw = 0.5 * hand.outer_diameter
    offset = (hw - 0.5 * hand.finger_width) * grasp.binormal
    left_bottom = grasp.bottom - offset
    right_bottom = grasp.bottom + offset
    left_top = left_bottom + hand.depth * grasp.approach
    right_top = right_bottom + hand.depth * grasp.approach
    left_center = left_bottom + 0.5 * (left_top - left_bottom)
    right_center = right_bottom + 0.5 * (right_top - right_bottom)
    base_center = left_bottom + 0.5 * (right_bottom - left_bottom)
    approach_center = base_center - 0.05 * grasp.approach

    frame = grasp.frame
    return [
        Box('hand_base', base_center, frame,
            (0.02, float(np.linalg.norm(right_bottom - left_bottom)), hand.height)),
        Box('finger', left_center, frame, (hand.depth, hand.finger_width, hand.height)),
        Box('finger', right_center, frame, (hand.depth, hand.finger_width, hand.height)),
        Box('finger', approach_center, frame, (0.08, hand.finger_width, hand.height)),
    ]


def save_detection(path, points, grasps, frame_id=''):
    np.savez(
        str(path),
        points=np.asarray(points, dtype=np.float32).reshape((-1, 3)),
        grasps=json.dumps([g.to_dict() for g in grasps]),
        frame_id=frame_id,
    )


def load_detection(path):
    with np.load(str(path), allow_pickle=False) as data:
        grasps = [Grasp.from_dict(d) for d in json.loads(str(data['grasps']))]
        return data['points'], grasps, str(data['frame_id'])
