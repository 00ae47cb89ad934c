"""
Maximum-likelihood line extraction.

Starts from the polygon or polylines connecting all scan end points and
greedily removes the vertex whose removal decreases the measurement
likelihood of the scan the least. Optionally, each remaining element is then
refined by moving its vertices to minimize the squared radial residual.
"""

import numpy as np
from scipy.optimize import minimize

from scanlines.config import IntersectionConfig
from scanlines.evaluate import scan_residual
from scanlines.extract.topology import build_initial_map
from scanlines.geometry.polymap import Polymap
from scanlines.geometry.sequence import Polyline
from scanlines.intersect import ray_distances
from scanlines.tracer import get_tracer, trace


def _hits(scan, sequence, tol):
    r = ray_distances(scan, Polymap([sequence]), **tol)
    return np.flatnonzero(np.isfinite(r)), r


def removal_cost(scan, sequence, i, dr=1.0, tol=None):
    """
    Increase of the negative log-likelihood caused by removing vertex i.

    For an inner vertex, the squared residuals of the rays reflected by its
    two adjacent edges are compared with those of the shortcut joining its
    neighbours. For a polyline end vertex, the rays reflected by the end
    edge lose their reflection, each costing dr^2 instead of its squared
    residual.

    Args:
        scan: LaserScan of returned rays
        sequence: Polyline or Polygon
        i: vertex index
        dr: residual equivalent of an unreflected ray
        tol: keyword arguments of ray_distances

    Returns:
        float cost
    """
    tol = tol or {}
    v = sequence.vertices
    n = sequence.count

    if not sequence.closed and i in (0, n - 1):
        first = 0 if i == 0 else n - 2
        idx, r = _hits(scan, Polyline(v[first:first + 2]), tol)
        drsq = dr ** 2
        return float(np.sum(drsq - (scan.radius[idx] - r[idx]) ** 2) - drsq * (n > 2))

    local = Polyline(v[np.arange(i - 1, i + 2) % n])
    idx, r = _hits(scan, local, tol)
    if idx.size == 0:
        return 0.0
    shortcut = Polyline(local.vertices[[0, 2]])
    r_without = ray_distances(scan.select(idx), Polymap([shortcut]), **tol)
    radius = scan.radius[idx]
    return float(np.sum((radius - r_without) ** 2 - (radius - r[idx]) ** 2))


def _argmin(costs):
    """Global minimum over per-element cost arrays; ties go to the lowest element."""
    best = (np.inf, -1, -1)
    for k, c in enumerate(costs):
        if c.size == 0:
            continue
        i = int(np.argmin(c))
        if best[1] < 0 or c[i] < best[0]:
            best = (c[i], k, i)
    return best


def _neighbours(sequence, i):
    """Vertices whose cost changes after vertex i was deleted."""
    m = sequence.count
    if sequence.closed:
        return sorted({(i - 1) % m, i % m})
    if m <= 2:
        return list(range(m))
    return [j for j in (i - 1, i) if 0 <= j < m]


def _remove_vertices(scan, elements, config, tol):
    """
    Greedy vertex removal.

    Args:
        scan: LaserScan of returned rays
        elements: list of (sequence, ray index array); modified in place
        config: MaxLikelihoodConfig
        tol: keyword arguments of ray_distances
    """
    tracer = get_tracer()
    dr = config.dr

    costs = [
        np.array([removal_cost(scan, seq, i, dr, tol) for i in range(seq.count)])
        for seq, _ in elements
    ]

    removed = 0
    while elements:
        total = sum(seq.count for seq, _ in elements)
        cmin, k, i = _argmin(costs)
        if total <= config.n or cmin > config.emax:
            break

        seq, rays = elements[k]
        if seq.count - 1 < max(seq.min_vertices, 2):
            del elements[k]
            del costs[k]
            removed += seq.count
            if config.display == "text":
                tracer.event(f"Dropped element {k} at cost {cmin:.4g}", level="DEBUG")
            continue

        seq.delete_vertex(i)
        elements[k] = (seq, np.delete(rays, i))
        costs[k] = np.delete(costs[k], i)
        for j in _neighbours(seq, i):
            costs[k][j] = removal_cost(scan, seq, j, dr, tol)
        removed += 1

        if config.display == "text":
            tracer.event(f"Removed vertex {i} of element {k} at cost {cmin:.4g}", level="DEBUG")

    tracer.event(
        f"Vertex removal: {removed} vertices removed, "
        f"{sum(seq.count for seq, _ in elements)} left in {len(elements)} elements"
    )


def to_parameters(sequence, rays, scan):
    """
    Polar parameters of the vertices relative to the start of their rays.

    Polyline ends keep the heading of their ray and contribute only their
    radius; every other vertex contributes (angle, radius).
    """
    d = sequence.vertices - scan.start_points[rays]
    th = np.arctan2(d[:, 1], d[:, 0])
    r = np.hypot(d[:, 0], d[:, 1])
    if sequence.closed:
        return np.column_stack([th, r]).ravel()
    inner = np.column_stack([th[1:-1], r[1:-1]]).ravel()
    return np.concatenate([[r[0]], inner, [r[-1]]])


def from_parameters(x, sequence, rays, scan):
    """Inverse of to_parameters."""
    x = np.asarray(x, dtype=float)
    if sequence.closed:
        polar = x.reshape(-1, 2)
    else:
        heading = scan.headings[rays]
        polar = np.vstack([
            [heading[0], x[0]],
            x[1:-1].reshape(-1, 2),
            [heading[-1], x[-1]],
        ])
    offset = polar[:, 1:2] * np.column_stack([np.cos(polar[:, 0]), np.sin(polar[:, 0])])
    return type(sequence)(scan.start_points[rays] + offset)


def _optimize(full_scan, scan, elements, config, tol):
    """
    Refine every element in turn by Nelder-Mead.

    The objective is the squared radial residual of the whole map with
    element k replaced, not of element k alone. Rays the element shadows
    from other elements are thus scored too, and a refined element is kept
    only if the map as a whole is not worse.
    """
    tracer = get_tracer()
    sequences = [seq for seq, _ in elements]

    options = {"xatol": config.xatol, "fatol": config.fatol}
    if config.max_iterations is not None:
        options["maxiter"] = config.max_iterations

    for k, (seq, rays) in enumerate(elements):
        before = sequences[:k]
        after = sequences[k + 1:]

        def objective(x):
            trial = from_parameters(x, seq, rays, full_scan)
            return scan_residual(scan, Polymap(before + [trial] + after), **tol)

        x0 = to_parameters(seq, rays, full_scan)
        f0 = objective(x0)
        result = minimize(objective, x0, method="Nelder-Mead", options=options)

        if not result.success:
            tracer.event(f"Element {k}: optimizer stopped early: {result.message}", level="WARN")

        if result.fun <= f0:
            sequences[k] = from_parameters(result.x, seq, rays, full_scan)

        if config.display == "text":
            tracer.event(
                f"Element {k}: residual {f0:.6g} -> {min(result.fun, f0):.6g} "
                f"after {result.nfev} evaluations"
            )

    return Polymap(sequences)


@trace(label="extract_max_likelihood")
def extract_max_likelihood(scan, config, intersection=None):
    """
    Extract a map from a scan by maximum-likelihood vertex removal.

    Args:
        scan: LaserScan
        config: MaxLikelihoodConfig
        intersection: IntersectionConfig, defaults if None

    Returns:
        Polymap
    """
    tracer = get_tracer()
    config.validate()
    intersection = intersection or IntersectionConfig()
    intersection.validate()
    tol = {
        "angle_tol": intersection.angle_tolerance,
        "collinear_tol": intersection.collinear_tolerance,
    }

    polymap, ray_indices = build_initial_map(scan, lmax=config.lmax)
    elements = [(seq.copy(), idx.copy()) for seq, idx in zip(polymap, ray_indices)]

    # Only returned rays carry a measured radius
    returned = scan.select(scan.returned)

    with tracer.span("remove_vertices", module="max_likelihood"):
        _remove_vertices(returned, elements, config, tol)

    if not config.optimize or not elements:
        return Polymap(seq for seq, _ in elements)

    with tracer.span("optimize", module="max_likelihood"):
        return _optimize(scan, returned, elements, config, tol)
