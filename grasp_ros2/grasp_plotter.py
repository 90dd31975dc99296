#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Plot a detection round saved by the detector node (result_dir)."""

import argparse

import numpy as np
import matplotlib.pyplot as plt
from mpl_toolkits.mplot3d import Axes3D  # noqa: F401

from grasp_ros2.grasp import load_detection


def plot_grasps(points, grasps, top_k=5, ax=None, scale=0.05, max_points=5000):
    if ax is None:
        fig = plt.figure(figsize=(8, 6))
        ax = fig.add_subplot(111, projection='3d')

    pts = np.asarray(points).reshape((-1, 3))
    if pts.shape[0] > max_points:
        pts = pts[np.linspace(0, pts.shape[0] - 1, max_points).astype(int)]
    if pts.shape[0] > 0:
        ax.scatter(pts[:, 0], pts[:, 1], pts[:, 2], s=2, color='gray', alpha=0.3)

    best = sorted(grasps, key=lambda g: g.score, reverse=True)[:top_k]
    for g in best:
        o = g.bottom
        # approach red, binormal green, axis blue
        for v, color in zip((g.approach, g.binormal, g.axis), ('r', 'g', 'b')):
            ax.quiver(o[0], o[1], o[2], v[0], v[1], v[2], length=scale, color=color)

    ax.set_xlabel("X")
    ax.set_ylabel("Y")
    ax.set_zlabel("Z")
    return ax


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('path', help='detection_*.npz written by the detector node')
    parser.add_argument('--top-k', type=int, default=5)
    parser.add_argument('--output', help='save the figure instead of showing it')
    args = parser.parse_args(argv)

    points, grasps, frame_id = load_detection(args.path)
    ax = plot_grasps(points, grasps, top_k=args.top_k)
    ax.set_title(f"Top {min(args.top_k, len(grasps))} of {len(grasps)} grasps ({frame_id or 'no frame'})")
    if args.output:
        ax.figure.savefig(args.output)
    else:
        plt.show()


if __name__ == '__main__':
    main()
