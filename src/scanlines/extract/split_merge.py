"""
Split-and-merge line extraction and iterative endpoint fit.

Both work on an ordered array of scan end points. The points are covered by
a chain of line records; a record is split at the point farthest from its
line until every point lies close enough to its line. Split-and-merge then
refits each record by least squares and merges neighbouring records whose
shared point lies close to the line joining their outer ends.
"""

from dataclasses import dataclass

import numpy as np
from scipy.optimize import minimize

from scanlines.geometry.polymap import Polymap
from scanlines.geometry.primitives import point_line_distance
from scanlines.geometry.sequence import Polyline
from scanlines.tracer import get_tracer, trace


# Endpoints closer than this are stitched into one polyline
STITCH_TOLERANCE = 1e-10


@dataclass
class LineRecord:
    """A line fitted to the points first..last (inclusive)."""
    first: int
    last: int
    v1: np.ndarray
    v2: np.ndarray

    @property
    def size(self):
        return self.last - self.first + 1


class LineGroup:
    """
    Chain of line records over an array of points.

    Consecutive records share their boundary point and are ordered by
    `first`. Records may be dropped, leaving points uncovered.
    """

    def __init__(self, points):
        self.points = np.asarray(points, dtype=float)
        n = len(self.points)
        self.records = [LineRecord(0, n - 1, self.points[0].copy(), self.points[-1].copy())]

    def __len__(self):
        return len(self.records)

    def find(self, i):
        """Index of the first record covering point i, or -1."""
        for k, rec in enumerate(self.records):
            if rec.first <= i <= rec.last:
                return k
        return -1

    def is_endpoint(self, i):
        k = self.find(i)
        return k >= 0 and i in (self.records[k].first, self.records[k].last)

    def split_distances(self):
        """
        Distance of every point to the line of its record.

        NaN for record endpoints and uncovered points.
        """
        d = np.full(len(self.points), np.nan)
        for rec in self.records:
            inner = slice(rec.first + 1, rec.last)
            d[inner] = point_line_distance(self.points[inner], rec.v1, rec.v2)
        return d

    def merge_distances(self):
        """
        Distance of every shared boundary point to the line joining the
        outer ends of its two records; NaN elsewhere.
        """
        d = np.full(len(self.points), np.nan)
        for left, right in zip(self.records[:-1], self.records[1:]):
            if left.last == right.first:
                i = left.last
                d[i] = point_line_distance(self.points[i], left.v1, right.v2)
        return d

    def split(self, i):
        """Split the record covering point i at that point."""
        if self.is_endpoint(i):
            raise ValueError(f"Point {i} is already a record endpoint")
        k = self.find(i)
        rec = self.records[k]
        tail = LineRecord(i, rec.last, self.points[i].copy(), self.points[rec.last].copy())
        rec.last = i
        rec.v2 = self.points[i].copy()
        self.records.insert(k + 1, tail)
        return k

    def merge(self, i):
        """Merge the two records sharing boundary point i."""
        k = self.find(i)
        if k < 0 or k + 1 >= len(self.records) or self.records[k].last != i:
            raise ValueError(f"Point {i} is not a shared record boundary")
        rec = self.records[k]
        nxt = self.records.pop(k + 1)
        rec.last = nxt.last
        rec.v2 = nxt.v2
        return k

    def vertex_count(self):
        """Number of polyline vertices the records stitch into."""
        if not self.records:
            return 0
        n = 2
        for left, right in zip(self.records[:-1], self.records[1:]):
            n += 1
            if np.linalg.norm(left.v2 - right.v1) > STITCH_TOLERANCE:
                n += 1
        return n

    def select(self, nmin):
        """Drop records covering fewer than nmin points."""
        self.records = [rec for rec in self.records if rec.size >= nmin]

    def fit(self, k):
        """
        Least-squares refit of record k.

        The line is parameterized by the angle a of its direction
        [sin a, cos a] and its signed offset r along the normal
        [cos a, -sin a]. The new endpoints are the orthogonal projections of
        the first and last covered point.
        """
        rec = self.records[k]
        if rec.size <= 2:
            rec.v1 = self.points[rec.first].copy()
            rec.v2 = self.points[rec.last].copy()
            return

        pts = self.points[rec.first:rec.last + 1]

        def objective(x):
            a, r = x
            return np.sum((pts @ np.array([np.cos(a), -np.sin(a)]) - r) ** 2)

        dx, dy = rec.v2 - rec.v1
        a0 = np.arctan2(dx, dy)
        r0 = rec.v1 @ np.array([np.cos(a0), -np.sin(a0)])

        result = minimize(objective, np.array([a0, r0]), method="BFGS", tol=1e-6)
        if not result.success:
            get_tracer().event(
                f"Line fit over points {rec.first}..{rec.last} did not converge: {result.message}",
                level="WARN",
            )

        a, r = result.x
        normal = np.array([np.cos(a), -np.sin(a)])
        rec.v1 = _project(self.points[rec.first], normal, r)
        rec.v2 = _project(self.points[rec.last], normal, r)

    def to_polymap(self):
        """Stitch the records into polylines."""
        polylines = []
        vertices = []
        for k, rec in enumerate(self.records):
            if not vertices:
                vertices = [rec.v1]
            vertices.append(rec.v2)

            last = k == len(self.records) - 1
            if last or np.linalg.norm(rec.v2 - self.records[k + 1].v1) > STITCH_TOLERANCE:
                polylines.append(Polyline(np.array(vertices)))
                vertices = []
        return Polymap(polylines)


def _project(p, normal, r):
    """Orthogonal projection of p onto the line {x : x . normal = r}."""
    return p - (p @ normal - r) * normal


@trace(label="split_and_merge", arg_names=["n", "dth", "refit"])
def split_and_merge(points, n=0, dth=0.1, nmin=4, refit=True):
    """
    Extract polylines from ordered points by split-and-merge.

    Args:
        points: Nx2 array of ordered points, typically scan end points
        n: target number of vertices; 0 stops on dth alone
        dth: distance threshold for splitting and merging
        nmin: minimum number of points a line must cover
        refit: least-squares refit of every changed line, followed by the
            merge phase

    Returns:
        Polymap of polylines
    """
    tracer = get_tracer()

    points = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(points) < 2:
        return Polymap()

    group = LineGroup(points)
    if refit:
        group.fit(0)

    # Split
    while True:
        d = group.split_distances()
        if np.all(np.isnan(d)):
            break
        imax = int(np.nanargmax(d))
        if d[imax] < dth and (n <= 0 or group.vertex_count() >= n):
            break

        k = group.split(imax)
        if refit:
            group.fit(k)
            group.fit(k + 1)

        if not refit and n > 0:
            group.select(nmin)
            if group.vertex_count() >= n:
                break

    tracer.event(f"Split into {len(group)} lines")

    # Merge
    while refit:
        d = group.merge_distances()
        if np.all(np.isnan(d)):
            break
        imin = int(np.nanargmin(d))
        if n <= 0:
            if d[imin] >= dth:
                break
        elif group.vertex_count() <= n:
            break

        k = group.merge(imin)
        group.fit(k)

    group.select(nmin)
    polymap = group.to_polymap()

    tracer.event(
        f"{len(points)} points -> {len(group)} lines, {polymap.count} polylines, "
        f"{polymap.vertex_count} vertices"
    )

    return polymap


def iterative_endpoint_fit(points, n=0, dth=0.1, nmin=4):
    """Split-and-merge without refit and merge phase."""
    return split_and_merge(points, n=n, dth=dth, nmin=nmin, refit=False)


def _returned_end_points(scan):
    return scan.end_points[scan.returned]


@trace(label="extract_split_and_merge")
def extract_split_and_merge(scan, config):
    """Split-and-merge on the end points of the returned rays."""
    config.validate()
    return split_and_merge(
        _returned_end_points(scan), n=config.n, dth=config.dth, nmin=config.nmin, refit=True
    )


@trace(label="extract_iterative_endpoint_fit")
def extract_iterative_endpoint_fit(scan, config):
    """Iterative endpoint fit on the end points of the returned rays."""
    config.validate()
    return iterative_endpoint_fit(
        _returned_end_points(scan), n=config.n, dth=config.dth, nmin=config.nmin
    )
