"""
Ray/map intersection.

Computes, for every ray of a scan, how far the ray travels along its
half-line until it hits a segment of a polymap. This is the measurement
model shared by maximum-likelihood extraction and map evaluation.
"""

import numpy as np

from scanlines.geometry.primitives import angdiff, line_intersection


NO_HIT = -1


def intersect_rays_with_map(scan, polymap, angle_tol=1e-3, collinear_tol=1e-12):
    """
    Intersect the rays of a scan with the segments of a polymap.

    A ray is tested against a segment only if its heading lies within the
    angular interval the segment subtends as seen from the ray's start point
    (shorter arc, widened by angle_tol). The hit point is the intersection of
    the infinite ray line and the infinite segment line. Parallel or
    collinear pairs produce no hit. A later segment replaces an earlier hit
    only if it is strictly closer, so each ray reports its nearest hit rather
    than the first or last one found in segment order.

    Args:
        scan: LaserScan with N rays
        polymap: Polymap whose segments are tested
        angle_tol: tolerance [rad] admitting rays at segment boundaries
        collinear_tol: parallelism tolerance of the line intersection

    Returns:
        tuple (distance, element_index, segment_index) of N-element arrays.
        distance is inf and both indices are -1 where a ray hits nothing.
    """
    n = scan.count
    distance = np.full(n, np.inf)
    element_index = np.full(n, NO_HIT, dtype=int)
    segment_index = np.full(n, NO_HIT, dtype=int)

    if n == 0 or polymap.count == 0:
        return distance, element_index, segment_index

    start = np.ascontiguousarray(scan.start_points)
    direction = scan.directions
    heading = scan.headings
    through = start + direction

    for i, element in enumerate(polymap):
        seg_start, seg_end = element.segment_endpoints()
        for j in range(len(seg_start)):
            s = seg_start[j]
            e = seg_end[j]

            # Bearings of both segment endpoints seen from each ray start
            th_s = np.arctan2(s[1] - start[:, 1], s[0] - start[:, 0])
            th_e = np.arctan2(e[1] - start[:, 1], e[0] - start[:, 0])

            dth = angdiff(th_s, th_e)
            orientation = np.where(dth < 0, -1.0, 1.0)
            daz = orientation * angdiff(th_s, heading)
            candidates = np.flatnonzero((daz >= -angle_tol) & (daz <= np.abs(dth) + angle_tol))
            if candidates.size == 0:
                continue

            x = line_intersection(start[candidates], through[candidates], s, e, collinear_tol)
            r = np.einsum("ij,ij->i", x - start[candidates], direction[candidates])

            with np.errstate(invalid="ignore"):
                better = np.isfinite(r) & (r > 0) & (r < distance[candidates])
            hit = candidates[better]
            distance[hit] = r[better]
            element_index[hit] = i
            segment_index[hit] = j

    return distance, element_index, segment_index


def ray_distances(scan, polymap, angle_tol=1e-3, collinear_tol=1e-12):
    """Only the distance output of intersect_rays_with_map."""
    return intersect_rays_with_map(scan, polymap, angle_tol, collinear_tol)[0]
