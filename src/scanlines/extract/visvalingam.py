"""
Visvalingam line simplification.

Progressively removes the vertex whose removal causes the least perceptible
change, measured on the triangle it forms with its two current neighbours.

M. Visvalingam and J. D. Whyatt. Line generalisation by repeated
elimination of points. The Cartographic Journal, 30:46-51, 1993.
"""

import heapq
import math

import numpy as np

from scanlines.extract.topology import build_initial_map
from scanlines.geometry.polymap import Polymap
from scanlines.geometry.primitives import get_triangle_metric
from scanlines.tracer import get_tracer, trace


@trace(label="visvalingam_simplify", arg_names=["metric", "n"])
def visvalingam_simplify(sequence, metric="area", emax=math.inf, n=10):
    """
    Simplify a polyline or polygon with Visvalingam's algorithm.

    Args:
        sequence: Polyline or Polygon, left unmodified
        metric: "area", "alt" or "length"
        emax: maximum admissible incremental error
        n: minimum number of remaining vertices

    Returns:
        tuple (simplified, removed, errors): the simplified sequence, the
        original indices of the removed vertices in removal order, and the
        error incurred by each removal
    """
    errfun = get_triangle_metric(metric)
    if n < 0:
        raise ValueError(f"n must be nonnegative, got {n}")

    v = sequence.vertices
    count = sequence.count
    closed = sequence.closed

    prev = np.arange(count) - 1
    nxt = np.arange(count) + 1
    if closed and count:
        prev %= count
        nxt %= count

    def candidate(i):
        return closed or 0 < i < count - 1

    def error(i):
        return float(errfun(v[prev[i]], v[i], v[nxt[i]]))

    # Heap entries are invalidated by bumping the vertex version
    version = np.zeros(count, dtype=int)
    heap = [(error(i), i, 0) for i in range(count) if candidate(i)]
    heapq.heapify(heap)

    alive = np.ones(count, dtype=bool)
    remaining = count
    removed = []
    errors = []

    while heap and remaining > n:
        err, i, ver = heap[0]
        if not alive[i] or ver != version[i]:
            heapq.heappop(heap)
            continue
        if err > emax:
            break
        heapq.heappop(heap)

        removed.append(i)
        errors.append(err)
        alive[i] = False
        remaining -= 1

        p, q = prev[i], nxt[i]
        nxt[p] = q
        prev[q] = p
        if remaining == 0:
            break
        for j in {p, q}:
            if candidate(j):
                version[j] += 1
                heapq.heappush(heap, (error(j), j, version[j]))

    # Reduce an open line to a point or delete it entirely
    if not closed and n < 2 and count and remaining == min(count, 2):
        ends = [count - 1, 0][:count]
        extra = ends[:max(remaining - n, 0)]
        removed.extend(extra)
        errors.extend([0.0] * len(extra))

    removed = np.array(removed, dtype=int)
    keep = np.ones(count, dtype=bool)
    keep[removed] = False
    simplified = type(sequence)(v[keep])

    return simplified, removed, np.array(errors, dtype=float)


@trace(label="extract_visvalingam")
def extract_visvalingam(scan, config):
    """
    Extract a map from scan end points with Visvalingam's algorithm.

    The complete removal order of every initial map element is merged
    across elements by cumulative per-element error. Vertices are removed
    in that order until n remain or the next incremental error exceeds emax.

    Args:
        scan: LaserScan
        config: VisvalingamConfig

    Returns:
        Polymap
    """
    tracer = get_tracer()
    config.validate()

    polymap, _ = build_initial_map(scan, lmax=config.lmax)

    # (cumulative error, element, removal rank, incremental error, vertex)
    order = []
    for k, element in enumerate(polymap):
        _, idx, err = visvalingam_simplify(element, metric=config.metric, emax=math.inf, n=0)
        cumulative = np.cumsum(err)
        for rank in range(idx.size):
            order.append((cumulative[rank], k, rank, err[rank], idx[rank]))
    order.sort()

    remaining = polymap.vertex_count
    removed = [[] for _ in range(polymap.count)]
    for _, k, _, err, i in order:
        if remaining <= config.n or err > config.emax:
            break
        removed[k].append(i)
        remaining -= 1

    result = Polymap()
    for element, idx in zip(polymap, removed):
        keep = np.ones(element.count, dtype=bool)
        keep[np.asarray(idx, dtype=int)] = False
        simplified = type(element)(element.vertices[keep])
        if simplified.count >= 2 and not simplified.is_degenerate():
            result.append(simplified)

    tracer.event(
        f"Visvalingam: {polymap.vertex_count} -> {result.vertex_count} vertices, "
        f"{result.count} elements"
    )

    return result
