"""
Initial map topology built from raw scan end points.
"""

import math

import numpy as np

from scanlines.geometry.polymap import Polymap
from scanlines.geometry.sequence import Polygon, Polyline
from scanlines.tracer import get_tracer


def build_initial_map(scan, lmax=math.inf, closed=None):
    """
    Connect the scan end points in ray order.

    No-return rays cut the sequence, and so does every edge longer than
    lmax. The result contains a polygon only if nothing was cut.

    Args:
        scan: LaserScan
        lmax: maximum admissible distance between neighbouring end points
        closed: connect the last end point to the first; by default only
            if the scan covers a full turn

    Returns:
        tuple (polymap, ray_indices) where ray_indices[k][v] is the ray that
        produced vertex v of element k
    """
    tracer = get_tracer()

    if scan.count == 0:
        return Polymap(), []

    if closed is None:
        closed = scan.is_closed_loop()

    ends = scan.end_points
    sequence = Polygon(ends) if closed else Polyline(ends)
    rays = np.arange(scan.count)

    dropped = np.flatnonzero(~scan.returned)
    if dropped.size == 0:
        pieces = [(sequence, rays)]
    else:
        pieces = [
            (Polyline(ends[idx]), rays[idx])
            for idx in sequence.piece_ranges(sequence.edges_around(dropped))
        ]

    polymap = Polymap()
    ray_indices = []
    for element, idx in pieces:
        long_edges = np.flatnonzero(element.lengths() > lmax)
        if long_edges.size == 0:
            polymap.append(element)
            ray_indices.append(idx)
            continue
        for piece in element.piece_ranges(long_edges):
            polymap.append(Polyline(element.vertices[piece]))
            ray_indices.append(idx[piece])

    tracer.event(
        f"Initial topology: {polymap.count} elements, {polymap.vertex_count} vertices "
        f"from {len(rays) - dropped.size}/{scan.count} returned rays (closed={closed})"
    )

    return polymap, ray_indices
