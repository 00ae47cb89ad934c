"""Tests for split-and-merge and iterative endpoint fit."""

import numpy as np
import pytest

from scanlines.config import SplitMergeConfig
from scanlines.extract.split_merge import (
    LineGroup, extract_iterative_endpoint_fit, extract_split_and_merge,
    iterative_endpoint_fit, split_and_merge,
)


def _l_shape():
    """21 points along (0,0)-(10,0)-(10,10)."""
    bottom = np.column_stack([np.arange(0, 11), np.zeros(11)])
    right = np.column_stack([np.full(10, 10.0), np.arange(1, 11)])
    return np.vstack([bottom, right]).astype(float)


class TestLineGroup:
    """Tests for the line record bookkeeping."""

    def test_split_and_merge_records(self):
        """Test that split and merge keep records chained."""
        group = LineGroup(_l_shape())

        group.split(10)

        assert [(r.first, r.last) for r in group.records] == [(0, 10), (10, 20)]
        assert group.is_endpoint(10)
        assert group.vertex_count() == 3

        group.merge(10)

        assert [(r.first, r.last) for r in group.records] == [(0, 20)]

    def test_split_at_endpoint_rejected(self):
        """Test that a record cannot be split at its own endpoint."""
        group = LineGroup(_l_shape())

        with pytest.raises(ValueError):
            group.split(0)

    def test_select_and_vertex_count(self):
        """Test that dropping records leaves gaps counted as extra vertices."""
        group = LineGroup(_l_shape())
        group.split(2)
        group.split(4)

        group.select(3)

        assert [(r.first, r.last) for r in group.records] == [(0, 2), (2, 4), (4, 20)]
        group.select(4)
        assert group.vertex_count() == 2

    def test_fit_collinear(self):
        """Test that the least-squares fit reproduces an exact line."""
        points = np.column_stack([np.linspace(0, 10, 11), 2.0 + 0.5 * np.linspace(0, 10, 11)])
        group = LineGroup(points)

        group.fit(0)

        np.testing.assert_allclose(group.records[0].v1, points[0], atol=1e-4)
        np.testing.assert_allclose(group.records[0].v2, points[-1], atol=1e-4)


class TestSplitAndMerge:
    """Tests for split_and_merge."""

    def test_collinear_points(self):
        """Test that noise-free collinear points give one two-vertex line."""
        points = np.column_stack([np.linspace(0, 10, 50), np.linspace(0, 5, 50)])

        pm = split_and_merge(points, dth=0.1, nmin=0)

        assert pm.count == 1
        assert pm[0].count == 2
        np.testing.assert_allclose(pm[0].vertices, [[0, 0], [10, 5]], atol=1e-3)

    def test_l_shape_corner(self):
        """Test that the corner of an L-shape becomes a vertex."""
        pm = split_and_merge(_l_shape(), dth=0.1, nmin=3)

        assert pm.vertex_count in (3, 4)
        corner = np.min(np.linalg.norm(pm.vertices - [10, 0], axis=1))
        assert corner < 1e-3

    def test_count_mode_merges(self):
        """Test that a target of two vertices merges the L-shape back."""
        pm = split_and_merge(_l_shape(), n=2, dth=0.1, nmin=0)

        assert pm.count == 1
        assert pm[0].count == 2

    def test_too_few_points(self):
        """Test that fewer than two points give an empty map."""
        assert split_and_merge(np.zeros((1, 2))).count == 0
        assert split_and_merge(np.zeros((0, 2))).count == 0

    def test_nmin_drops_short_lines(self):
        """Test that lines covering fewer than nmin points are dropped."""
        pm = split_and_merge(_l_shape(), dth=0.1, nmin=30)

        assert pm.count == 0


class TestIterativeEndpointFit:
    """Tests for iterative_endpoint_fit."""

    def test_l_shape_exact(self):
        """Test that the split points are kept verbatim."""
        pm = iterative_endpoint_fit(_l_shape(), dth=0.1, nmin=0)

        assert pm.count == 1
        np.testing.assert_array_equal(pm[0].vertices, [[0, 0], [10, 0], [10, 10]])

    def test_square_corners(self, square_scan):
        """Test that all four room corners become vertices."""
        pm = extract_iterative_endpoint_fit(square_scan, SplitMergeConfig(dth=0.1, nmin=0))

        assert pm.count == 1
        assert pm.vertex_count <= 8
        for corner in ([5, 5], [-5, 5], [-5, -5], [5, -5]):
            assert np.min(np.linalg.norm(pm.vertices - corner, axis=1)) < 1e-9

    def test_count_mode(self):
        """Test that the target vertex count stops splitting."""
        pm = iterative_endpoint_fit(_l_shape(), n=3, dth=0.0, nmin=0)

        assert pm.vertex_count == 3


class TestExtractors:
    """Tests for the scan-level entry points."""

    def test_uses_returned_rays_only(self, gapped_square_scan):
        """Test that no-return rays are skipped."""
        pm = extract_split_and_merge(gapped_square_scan, SplitMergeConfig(dth=0.1, nmin=4))

        assert np.all(np.isfinite(pm.vertices))
        assert pm.vertex_count >= 4

    def test_invalid_config(self, square_scan):
        """Test that an invalid configuration is rejected."""
        with pytest.raises(ValueError):
            extract_split_and_merge(square_scan, SplitMergeConfig(dth=-1.0))

    def test_span_records_parameters(self, small_square_scan, capsys):
        """Test that the traced span reports the split parameters."""
        from scanlines.tracer import configure_tracer

        configure_tracer(enabled=True, level="INFO")
        try:
            extract_iterative_endpoint_fit(small_square_scan, SplitMergeConfig(n=4, dth=0.1))
        finally:
            configure_tracer(enabled=False)

        err = capsys.readouterr().err
        assert "split_and_merge" in err
        assert "n=4" in err
        assert "refit=False" in err
