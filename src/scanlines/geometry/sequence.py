"""
Open and closed vertex sequences.

A Polyline connects its vertices in order; a Polygon additionally connects
the last vertex back to the first. Both share the same capability set so
algorithms can treat map elements uniformly and branch on `closed` only
where the topology matters.
"""

from abc import ABC, abstractmethod

import numpy as np
from shapely.geometry import Polygon as ShapelyPolygon


def _as_vertex_array(vertices):
    v = np.array(vertices, dtype=float)
    if v.size == 0:
        return np.zeros((0, 2))
    if v.ndim != 2 or v.shape[1] != 2:
        raise ValueError(f"Vertices must be an Nx2 array, got shape {v.shape}")
    return v


def _as_index(index, n, what):
    """
    Convert a boolean mask or integer index array to sorted unique indices.

    Raises ValueError for masks of the wrong length and out-of-range indices.
    """
    index = np.asarray(index)
    if index.dtype == bool:
        if index.size != n:
            raise ValueError(f"{what} mask must have {n} elements, got {index.size}")
        return np.flatnonzero(index)

    index = np.unique(np.asarray(index, dtype=int).ravel())
    if index.size and (index[0] < 0 or index[-1] >= n):
        raise ValueError(f"{what} index out of range [0, {n - 1}]: {index.tolist()}")
    return index


class VertexSequence(ABC):
    """Shared behaviour of polylines and polygons."""

    closed = False
    kind = None
    min_vertices = 1

    def __init__(self, vertices=()):
        self._vertices = _as_vertex_array(vertices)

    @property
    def vertices(self):
        """Nx2 array of vertex coordinates."""
        return self._vertices

    @vertices.setter
    def vertices(self, vertices):
        self._vertices = _as_vertex_array(vertices)

    @property
    def count(self):
        """Number of vertices."""
        return len(self._vertices)

    def __len__(self):
        return self.count

    def __repr__(self):
        return f"{type(self).__name__}({self._vertices.tolist()})"

    def __eq__(self, other):
        return (
            type(self) is type(other)
            and self._vertices.shape == other._vertices.shape
            and np.array_equal(self._vertices, other._vertices, equal_nan=True)
        )

    def copy(self):
        return type(self)(self._vertices.copy())

    def is_degenerate(self):
        """True if the sequence has too few vertices to be kept in a map."""
        return self.count < self.min_vertices

    @abstractmethod
    def segment_endpoints(self):
        """Pair of (S, 2) arrays with the start and end point of each edge."""
        pass

    def segments(self):
        """(S, 4) array of line segments [x1, y1, x2, y2]."""
        start, end = self.segment_endpoints()
        return np.hstack([start, end])

    def lengths(self):
        """Length of each edge."""
        start, end = self.segment_endpoints()
        return np.linalg.norm(end - start, axis=1)

    def delete_vertex(self, i):
        """Remove vertex i in place."""
        if not 0 <= i < self.count:
            raise ValueError(f"Vertex index {i} out of range for {self.count} vertices")
        self._vertices = np.delete(self._vertices, i, axis=0)

    @abstractmethod
    def edge_count(self):
        pass

    @abstractmethod
    def edges_around(self, vertices):
        """Indices of the edges connected to the given vertices."""
        pass

    @abstractmethod
    def piece_ranges(self, edges):
        """
        Vertex index arrays of the open pieces left after cutting edges.

        Edge i connects vertex i and i+1. Pieces with a single vertex are
        dropped.
        """
        pass

    def remove_edges(self, index):
        """
        Remove edges; edge i connects vertex i and i+1.

        Args:
            index: boolean mask or integer indices of the edges

        Returns:
            Polymap of the remaining pieces. Without any cut, the map holds
            a copy of the sequence itself.
        """
        from scanlines.geometry.polymap import Polymap

        edges = _as_index(index, self.edge_count(), "Edge")
        if edges.size == 0 and self.closed:
            return Polymap([self.copy()])
        return Polymap(Polyline(self._vertices[idx]) for idx in self.piece_ranges(edges))

    def remove_vertices(self, index):
        """
        Remove vertices and their connected edges.

        Args:
            index: boolean mask or integer indices of the vertices

        Returns:
            Polymap of the remaining polylines
        """
        from scanlines.geometry.polymap import Polymap

        removed = _as_index(index, self.count, "Vertex")
        if removed.size == 0:
            return Polymap([self.copy()])
        # The isolated vertices end up as single-vertex pieces and are dropped
        return Polymap(
            Polyline(self._vertices[idx])
            for idx in self.piece_ranges(self.edges_around(removed))
        )

    def to_dict(self):
        return {"type": self.kind, "vertices": self._vertices.tolist()}


class Polyline(VertexSequence):
    """Open vertex sequence."""

    closed = False
    kind = "polyline"
    min_vertices = 1

    def segment_endpoints(self):
        v = self._vertices
        return v[:-1], v[1:]

    def edge_count(self):
        return max(self.count - 1, 0)

    def edges_around(self, vertices):
        if self.count < 2:
            return np.zeros(0, dtype=int)
        vertices = np.asarray(vertices, dtype=int)
        return np.unique(np.clip(np.concatenate([vertices - 1, vertices]), 0, self.count - 2))

    def piece_ranges(self, edges):
        edges = np.asarray(edges, dtype=int)
        starts = np.concatenate([[0], edges + 1])
        stops = np.concatenate([edges, [self.count - 1]])
        return [np.arange(a, b + 1) for a, b in zip(starts, stops) if b - a >= 1]


class Polygon(VertexSequence):
    """Closed vertex sequence."""

    closed = True
    kind = "polygon"
    min_vertices = 3

    def segment_endpoints(self):
        v = self._vertices
        return v, np.roll(v, -1, axis=0)

    def edge_count(self):
        return self.count

    def edges_around(self, vertices):
        if self.count == 0:
            return np.zeros(0, dtype=int)
        vertices = np.asarray(vertices, dtype=int)
        return np.unique(np.mod(np.concatenate([vertices - 1, vertices]), self.count))

    def piece_ranges(self, edges):
        edges = np.asarray(edges, dtype=int)
        if edges.size == 0:
            return [np.arange(self.count)]

        ranges = []
        for k, edge in enumerate(edges):
            nxt = edges[(k + 1) % edges.size]
            # From the vertex after this cut to the start of the next one
            length = (nxt - edge - 1) % self.count + 1
            if length >= 2:
                ranges.append((edge + 1 + np.arange(length)) % self.count)
        return ranges

    def area(self):
        """Enclosed area; 0 for degenerate polygons."""
        if self.count < 3:
            return 0.0
        return ShapelyPolygon(self._vertices).area

    def split(self, index):
        """
        Split the polygon at the given vertices into polylines.

        A single split vertex yields one polyline that starts and ends at
        that vertex. Each piece runs from one split vertex to the next,
        both inclusive.
        """
        from scanlines.geometry.polymap import Polymap

        cuts = _as_index(index, self.count, "Vertex")
        if cuts.size == 0:
            return Polymap([self.copy()])

        pieces = []
        for k, start in enumerate(cuts):
            stop = cuts[(k + 1) % cuts.size]
            length = (stop - start - 1) % self.count + 2
            pieces.append(Polyline(self._vertices[(start + np.arange(length)) % self.count]))
        return Polymap(pieces)


def sequence_from_kind(kind, vertices):
    """Build a Polyline or Polygon from its serialized type name."""
    if kind == Polyline.kind:
        return Polyline(vertices)
    if kind == Polygon.kind:
        return Polygon(vertices)
    raise ValueError(f"Unknown element type {kind!r}")
