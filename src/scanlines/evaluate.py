"""
Quality metrics of an extracted map with respect to its scan.

The map is judged by how well it explains the measured radii of the
returned rays, how many of them it reflects at all, and how many no-return
rays it leaves unreflected. If a ground-truth polygon is known, the area
overlap of both shapes is reported as well.
"""

import math

import numpy as np
from shapely.geometry import Polygon as ShapelyPolygon

from scanlines.config import IntersectionConfig
from scanlines.intersect import ray_distances
from scanlines.models import ExtractionSummary
from scanlines.tracer import get_tracer, trace


def scan_residual(scan, polymap, angle_tol=1e-3, collinear_tol=1e-12):
    """
    Sum of squared radial residuals over the returned rays the map reflects.
    """
    r = ray_distances(scan, polymap, angle_tol, collinear_tol)
    used = scan.returned & np.isfinite(r)
    return float(np.sum((scan.radius[used] - r[used]) ** 2))


def _fraction(numerator, denominator):
    if denominator == 0:
        return None
    return numerator / denominator


def _shape_by_bearing(vertices, center):
    """Polygon through the vertices sorted by bearing around center."""
    d = vertices - center
    order = np.argsort(np.arctan2(d[:, 1], d[:, 0]), kind="stable")
    shape = ShapelyPolygon(vertices[order])
    if not shape.is_valid:
        shape = shape.buffer(0)
    return shape


def area_overlap(polymap, ground_truth, center):
    """
    Compare the area enclosed by a map with a ground-truth polygon.

    Args:
        polymap: extracted map; its vertices are ordered by bearing around
            center to form one polygon
        ground_truth: Polygon or Nx2 vertex array
        center: 2-vector, typically the sensor position

    Returns:
        tuple (area_error, iou): area of the symmetric difference relative
        to the ground-truth area, and intersection over union. (None, None)
        if the map has fewer than 3 vertices.
    """
    vertices = polymap.vertices
    if len(vertices) < 3:
        return None, None

    gt_vertices = getattr(ground_truth, "vertices", ground_truth)
    truth = ShapelyPolygon(np.asarray(gt_vertices, dtype=float))
    extracted = _shape_by_bearing(vertices, np.asarray(center, dtype=float))

    union = truth.union(extracted).area
    inter = truth.intersection(extracted).area

    area_error = (union - inter) / truth.area if truth.area > 0 else None
    iou = inter / union if union > 0 else None
    return area_error, iou


@trace(label="evaluate_map")
def evaluate_map(scan, polymap, ground_truth=None, method="", intersection=None):
    """
    Compute the quality figures of a map.

    Args:
        scan: LaserScan the map was extracted from
        polymap: extracted Polymap
        ground_truth: optional Polygon of the true environment
        method: name of the extraction method, copied to the summary
        intersection: IntersectionConfig, defaults if None

    Returns:
        ExtractionSummary
    """
    tracer = get_tracer()
    intersection = intersection or IntersectionConfig()

    r = ray_distances(
        scan, polymap, intersection.angle_tolerance, intersection.collinear_tolerance
    )
    hit = np.isfinite(r)
    returned = scan.returned
    used = returned & hit

    residual = float(np.sum((scan.radius[used] - r[used]) ** 2))
    n_used = int(used.sum())
    n_returned = int(returned.sum())
    n_no_return = scan.count - n_returned

    summary = ExtractionSummary(
        method=method,
        element_count=polymap.count,
        vertex_count=polymap.vertex_count,
        ray_count=scan.count,
        returned_count=n_returned,
        residual=residual,
        rmse=math.sqrt(residual / n_used) if n_used else None,
        reflected_fraction=_fraction(n_used, n_returned),
        no_return_unreflected_fraction=_fraction(int((~returned & ~hit).sum()), n_no_return),
    )

    if ground_truth is not None:
        center = scan.start_points[0] if scan.count else np.zeros(2)
        summary.area_error, summary.iou = area_overlap(polymap, ground_truth, center)

    tracer.event(
        f"Evaluated {polymap.vertex_count} vertices: rmse={summary.rmse} "
        f"reflected={summary.reflected_fraction}"
    )

    return summary
