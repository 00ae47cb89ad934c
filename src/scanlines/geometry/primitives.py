"""
Low-level geometric helpers.

All functions are vectorized over leading array dimensions.
"""

import numpy as np


def wrap_to_pi(angle):
    """Wrap angles to the interval [-pi, pi)."""
    return (np.asarray(angle, dtype=float) + np.pi) % (2.0 * np.pi) - np.pi


def angdiff(a, b):
    """Signed difference b - a of two angles, wrapped to [-pi, pi)."""
    return wrap_to_pi(np.asarray(b, dtype=float) - np.asarray(a, dtype=float))


def cross2(u, v):
    """z-component of the cross product of 2-D vectors."""
    u = np.asarray(u, dtype=float)
    v = np.asarray(v, dtype=float)
    return u[..., 0] * v[..., 1] - u[..., 1] * v[..., 0]


def line_intersection(p1, p2, q1, q2, collinear_tol=1e-12):
    """
    Intersection points of infinite lines.

    The n-th line pair is the line through p1[n] and p2[n] and the line
    through q1[n] and q2[n]. Inputs broadcast against each other.

    Args:
        p1, p2, q1, q2: (..., 2) arrays of points
        collinear_tol: lines whose directions differ by less than this
            angle (sine of it) are treated as parallel

    Returns:
        (..., 2) array of intersection points; NaN rows for parallel or
        collinear lines and for coincident defining points
    """
    p1, p2, q1, q2 = np.broadcast_arrays(
        *(np.asarray(a, dtype=float) for a in (p1, p2, q1, q2))
    )
    dp = p1 - p2
    dq = q1 - q2
    denom = cross2(dp, dq)

    norm = np.linalg.norm(dp, axis=-1) * np.linalg.norm(dq, axis=-1)
    degenerate = (norm == 0) | (np.abs(denom) <= collinear_tol * norm)

    cp = cross2(p1, p2)
    cq = cross2(q1, q2)

    with np.errstate(divide="ignore", invalid="ignore"):
        safe = np.where(degenerate, 1.0, denom)
        x = (cp[..., None] * dq - cq[..., None] * dp) / safe[..., None]

    x[degenerate] = np.nan
    return x


def point_line_distance(points, v1, v2):
    """
    Perpendicular distance of points to the infinite line through v1 and v2.

    Falls back to the distance to v1 when v1 and v2 coincide.
    """
    points = np.asarray(points, dtype=float)
    v1 = np.asarray(v1, dtype=float)
    v2 = np.asarray(v2, dtype=float)

    line_vec = v1 - v2
    line_len = np.linalg.norm(line_vec, axis=-1)

    if np.ndim(line_len) == 0 and line_len == 0:
        return np.linalg.norm(points - v1, axis=-1)

    with np.errstate(divide="ignore", invalid="ignore"):
        d = np.abs(cross2(line_vec, points - v2)) / line_len
    return np.where(line_len == 0, np.linalg.norm(points - v1, axis=-1), d)


def triangle_area(a, b, c):
    """Area of the triangles (a, b, c)."""
    return np.abs(cross2(np.asarray(b) - a, np.asarray(c) - a)) / 2.0


def triangle_altitude(a, b, c):
    """
    Altitude of apex b above the base a-c.

    For a zero-length base, the distance between a and b.
    """
    base = np.linalg.norm(np.asarray(c, dtype=float) - a, axis=-1)
    area = triangle_area(a, b, c)
    with np.errstate(divide="ignore", invalid="ignore"):
        alt = 2.0 * area / base
    return np.where(base == 0, np.linalg.norm(np.asarray(b, dtype=float) - a, axis=-1), alt)


def triangle_length_excess(a, b, c):
    """Length of the two outer sides a-b, b-c minus the base a-c."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    c = np.asarray(c, dtype=float)
    return (
        np.linalg.norm(b - a, axis=-1)
        + np.linalg.norm(c - b, axis=-1)
        - np.linalg.norm(c - a, axis=-1)
    )


TRIANGLE_METRICS = {
    "area": triangle_area,
    "alt": triangle_altitude,
    "length": triangle_length_excess,
}


def get_triangle_metric(name):
    """Look up a Visvalingam error metric by name."""
    try:
        return TRIANGLE_METRICS[name]
    except KeyError:
        raise ValueError(
            f"Unknown error metric {name!r}, expected one of {sorted(TRIANGLE_METRICS)}"
        ) from None
