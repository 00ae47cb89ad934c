"""Tests for geometric primitives, vertex sequences and maps."""

import math

import numpy as np
import pytest

from scanlines.geometry.polymap import Polymap
from scanlines.geometry.primitives import (
    angdiff, get_triangle_metric, line_intersection, point_line_distance,
    triangle_altitude, triangle_area, triangle_length_excess,
)
from scanlines.geometry.sequence import Polygon, Polyline, sequence_from_kind


class TestPrimitives:
    """Tests for low-level helpers."""

    def test_angdiff_wraps(self):
        """Test that angle differences are wrapped to [-pi, pi)."""
        assert angdiff(0.0, 1.5 * math.pi) == pytest.approx(-0.5 * math.pi)
        assert angdiff(0.1, -0.1) == pytest.approx(-0.2)
        assert angdiff(0.0, math.pi) == pytest.approx(-math.pi)

    def test_line_intersection_crossing(self):
        """Test intersection of two crossing lines."""
        x = line_intersection([0, 0], [1, 1], [0, 2], [2, 0])

        np.testing.assert_allclose(x, [1, 1])

    def test_line_intersection_parallel_is_nan(self):
        """Test that parallel and collinear lines yield NaN."""
        parallel = line_intersection([0, 0], [1, 0], [0, 1], [1, 1])
        collinear = line_intersection([0, 0], [1, 0], [2, 0], [3, 0])

        assert np.all(np.isnan(parallel))
        assert np.all(np.isnan(collinear))

    def test_line_intersection_degenerate_direction(self):
        """Test that coincident defining points yield NaN."""
        x = line_intersection([1, 1], [1, 1], [0, 2], [2, 0])

        assert np.all(np.isnan(x))

    def test_line_intersection_broadcasts(self):
        """Test that many lines are intersected with one line at once."""
        p1 = np.zeros((3, 2))
        p2 = np.array([[1, 0], [1, 1], [0, 1]], dtype=float)

        x = line_intersection(p1, p2, [2, -1], [2, 1])

        np.testing.assert_allclose(x[:2], [[2, 0], [2, 2]])
        assert np.all(np.isnan(x[2]))

    def test_point_line_distance(self):
        """Test perpendicular distances to a line."""
        d = point_line_distance([[0, 1], [5, -2], [3, 0]], [0, 0], [10, 0])

        np.testing.assert_allclose(d, [1, 2, 0])

    def test_point_line_distance_coincident(self):
        """Test fallback to point distance for a zero-length line."""
        d = point_line_distance([[3, 4]], [0, 0], [0, 0])

        np.testing.assert_allclose(d, [5])

    def test_triangle_metrics(self):
        """Test area, altitude and length excess of one triangle."""
        a, b, c = np.array([0, 0]), np.array([1, 1]), np.array([2, 0])

        assert triangle_area(a, b, c) == pytest.approx(1.0)
        assert triangle_altitude(a, b, c) == pytest.approx(1.0)
        assert triangle_length_excess(a, b, c) == pytest.approx(2 * math.sqrt(2) - 2)

    def test_unknown_metric(self):
        """Test that an unknown metric name raises ValueError."""
        with pytest.raises(ValueError):
            get_triangle_metric("volume")


class TestVertexSequence:
    """Tests for Polyline and Polygon."""

    def test_base_is_abstract(self):
        """Test that the shared base cannot be instantiated without a topology."""
        from scanlines.geometry.sequence import VertexSequence

        with pytest.raises(TypeError):
            VertexSequence([[0, 0], [1, 0]])

    def test_polyline_segments(self):
        """Test that a polyline has count-1 consecutive segments."""
        pl = Polyline([[0, 0], [1, 0], [1, 1]])

        segments = pl.segments()

        assert segments.shape == (2, 4)
        np.testing.assert_array_equal(segments[:-1, 2:4], segments[1:, 0:2])
        np.testing.assert_allclose(pl.lengths(), [1, 1])

    def test_polygon_segments_close(self, square_polygon):
        """Test that a polygon has count segments including the closing edge."""
        segments = square_polygon.segments()

        assert segments.shape == (4, 4)
        np.testing.assert_array_equal(segments[-1], [5, -5, 5, 5])
        np.testing.assert_allclose(square_polygon.lengths(), [10, 10, 10, 10])

    def test_invalid_vertices(self):
        """Test that non-2-D vertex arrays are rejected."""
        with pytest.raises(ValueError):
            Polyline([[0, 0, 0]])

    def test_degenerate_polygon(self):
        """Test that polygons with fewer than 3 vertices are degenerate."""
        assert Polygon([[0, 0], [1, 0]]).is_degenerate()
        assert not Polyline([[0, 0]]).is_degenerate()

    def test_polygon_area(self, square_polygon):
        """Test the enclosed area."""
        assert square_polygon.area() == pytest.approx(100.0)
        assert Polygon([[0, 0], [1, 0]]).area() == 0.0

    def test_delete_vertex(self):
        """Test in-place vertex deletion."""
        pl = Polyline([[0, 0], [1, 0], [2, 0]])
        pl.delete_vertex(1)

        np.testing.assert_array_equal(pl.vertices, [[0, 0], [2, 0]])
        with pytest.raises(ValueError):
            pl.delete_vertex(5)

    def test_copy_is_independent(self):
        """Test that copies do not share vertex storage."""
        pl = Polyline([[0, 0], [1, 0]])
        cp = pl.copy()
        cp.vertices[0, 0] = 9

        assert pl.vertices[0, 0] == 0
        assert cp != pl

    def test_polyline_remove_edges(self):
        """Test that removing an edge splits a polyline."""
        pl = Polyline([[0, 0], [1, 0], [2, 0], [3, 0], [4, 0]])

        pm = pl.remove_edges([1])

        assert pm.count == 2
        np.testing.assert_array_equal(pm[0].vertices, [[0, 0], [1, 0]])
        np.testing.assert_array_equal(pm[1].vertices, [[2, 0], [3, 0], [4, 0]])

    def test_polyline_remove_edges_drops_single_vertices(self):
        """Test that isolated vertices are dropped."""
        pl = Polyline([[0, 0], [1, 0], [2, 0]])

        pm = pl.remove_edges(np.array([True, True]))

        assert pm.count == 0

    def test_polygon_remove_edge_opens(self, square_polygon):
        """Test that removing one polygon edge yields one open polyline."""
        pm = square_polygon.remove_edges([0])

        assert pm.count == 1
        assert pm[0].kind == "polyline"
        np.testing.assert_array_equal(pm[0].vertices, [[-5, 5], [-5, -5], [5, -5], [5, 5]])

    def test_polygon_remove_no_edges(self, square_polygon):
        """Test that removing nothing keeps the polygon."""
        pm = square_polygon.remove_edges([])

        assert pm.count == 1
        assert pm[0] == square_polygon

    def test_polyline_remove_vertices(self):
        """Test that removing a vertex removes its edges."""
        pl = Polyline([[0, 0], [1, 0], [2, 0], [3, 0], [4, 0]])

        middle = pl.remove_vertices([2])
        first = pl.remove_vertices([0])

        assert [e.count for e in middle] == [2, 2]
        assert [e.count for e in first] == [4]
        np.testing.assert_array_equal(first[0].vertices[0], [1, 0])

    def test_polygon_remove_vertex(self, square_polygon):
        """Test that removing a polygon vertex leaves the other three."""
        pm = square_polygon.remove_vertices([0])

        assert pm.count == 1
        np.testing.assert_array_equal(pm[0].vertices, [[-5, 5], [-5, -5], [5, -5]])

    def test_remove_vertices_bad_index(self, square_polygon):
        """Test index validation."""
        with pytest.raises(ValueError):
            square_polygon.remove_vertices([4])
        with pytest.raises(ValueError):
            square_polygon.remove_vertices(np.array([True, False]))

    def test_polygon_split(self, square_polygon):
        """Test splitting a polygon at two vertices."""
        pm = square_polygon.split([0, 2])

        assert pm.count == 2
        np.testing.assert_array_equal(pm[0].vertices, [[5, 5], [-5, 5], [-5, -5]])
        np.testing.assert_array_equal(pm[1].vertices, [[-5, -5], [5, -5], [5, 5]])

    def test_polygon_split_single_vertex(self, square_polygon):
        """Test that one split vertex opens the polygon at that vertex."""
        pm = square_polygon.split([1])

        assert pm.count == 1
        assert pm[0].count == 5
        np.testing.assert_array_equal(pm[0].vertices[0], pm[0].vertices[-1])

    def test_sequence_from_kind(self):
        """Test construction by type name."""
        assert isinstance(sequence_from_kind("polygon", [[0, 0], [1, 0], [0, 1]]), Polygon)
        with pytest.raises(ValueError):
            sequence_from_kind("circle", [])


class TestPolymap:
    """Tests for composite maps."""

    def test_aggregates(self, square_polygon):
        """Test vertex and segment concatenation."""
        pm = Polymap([square_polygon, Polyline([[0, 0], [1, 0]])])

        assert pm.count == 2
        assert pm.vertex_count == 6
        assert pm.vertices.shape == (6, 2)
        assert pm.segments.shape == (5, 4)

    def test_empty(self):
        """Test aggregates of an empty map."""
        pm = Polymap()

        assert pm.vertices.shape == (0, 2)
        assert pm.segments.shape == (0, 4)

    def test_rejects_other_types(self):
        """Test that only polylines and polygons are accepted."""
        pm = Polymap()

        with pytest.raises(TypeError):
            pm.append([[0, 0], [1, 1]])

    def test_deep_copy(self, square_polygon):
        """Test that map copies do not alias vertices."""
        pm = Polymap([square_polygon])
        cp = pm.copy()
        cp[0].vertices[0, 0] = 0

        assert square_polygon.vertices[0, 0] == 5

    def test_without_degenerate(self):
        """Test that degenerate polygons are removed."""
        pm = Polymap([Polygon([[0, 0], [1, 0]]), Polyline([[0, 0]])])

        assert pm.without_degenerate().count == 1

    def test_model_conversion(self, square_polygon):
        """Test conversion to and from serializable elements."""
        pm = Polymap([square_polygon, Polyline([[0, 0], [1, 0]])])

        models = pm.to_model()
        restored = Polymap.from_model(models)

        assert models[0].type.value == "polygon"
        assert restored == pm
        assert Polymap.from_model(pm.to_dicts()) == pm
