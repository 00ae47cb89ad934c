"""
Composite maps of polylines and polygons.
"""

import numpy as np

from scanlines.geometry.sequence import VertexSequence, sequence_from_kind


class Polymap:
    """
    Ordered collection of Polyline and Polygon elements.

    Aggregate views (vertices, segments) concatenate the elements' views in
    collection order. Elements are owned by the map; `copy` never shares
    vertex storage.
    """

    def __init__(self, elements=()):
        self._elements = []
        self.extend(elements)

    @staticmethod
    def _check(element):
        if not isinstance(element, VertexSequence) or element.kind is None:
            raise TypeError(
                f"Polymap elements must be Polyline or Polygon, got {type(element).__name__}"
            )

    @property
    def elements(self):
        return list(self._elements)

    @property
    def count(self):
        """Number of elements."""
        return len(self._elements)

    @property
    def vertex_count(self):
        return sum(e.count for e in self._elements)

    @property
    def vertices(self):
        if not self._elements:
            return np.zeros((0, 2))
        return np.vstack([e.vertices for e in self._elements])

    @property
    def segments(self):
        if not self._elements:
            return np.zeros((0, 4))
        return np.vstack([e.segments().reshape(-1, 4) for e in self._elements])

    def __len__(self):
        return len(self._elements)

    def __iter__(self):
        return iter(self._elements)

    def __getitem__(self, i):
        return self._elements[i]

    def __repr__(self):
        kinds = ",".join(e.kind for e in self._elements)
        return f"Polymap([{kinds}], vertices={self.vertex_count})"

    def __eq__(self, other):
        return isinstance(other, Polymap) and self._elements == other._elements

    def append(self, element):
        self._check(element)
        self._elements.append(element)

    def extend(self, elements):
        for element in elements:
            self.append(element)

    def copy(self):
        return Polymap(e.copy() for e in self._elements)

    def without_degenerate(self):
        """New map without elements that have too few vertices for their type."""
        return Polymap(e.copy() for e in self._elements if not e.is_degenerate())

    def to_dicts(self):
        return [e.to_dict() for e in self._elements]

    def to_model(self):
        """Convert to a list of serializable MapElement models."""
        from scanlines.models import MapElement

        return [MapElement(type=e.kind, vertices=e.vertices.tolist()) for e in self._elements]

    @classmethod
    def from_model(cls, elements):
        """Build a map from MapElement models or plain {type, vertices} dicts."""
        pm = cls()
        for element in elements:
            if isinstance(element, dict):
                kind, vertices = element["type"], element["vertices"]
            else:
                kind, vertices = element.type.value, element.vertices
            pm.append(sequence_from_kind(kind, vertices))
        return pm
