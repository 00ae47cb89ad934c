"""Pytest fixtures for scanlines tests."""

import os
import tempfile

import numpy as np
import pytest


def _square_radii(headings, half):
    """Distance from the center of an axis-aligned square to its walls."""
    return half / np.maximum(np.abs(np.cos(headings)), np.abs(np.sin(headings)))


def _square_scan(n_rays, half=5.0, noise=0.0, seed=0):
    from scanlines.scan import LaserScan

    azimuth = np.arange(n_rays) * 2.0 * np.pi / n_rays
    radius = _square_radii(azimuth, half)
    if noise:
        radius = radius + np.random.default_rng(seed).normal(0.0, noise, n_rays)
    return LaserScan([0.0, 0.0, 0.0], azimuth, radius)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def square_scan():
    """Noise-free scan of a 10x10 square room by 360 rays from its center."""
    return _square_scan(360)


@pytest.fixture
def small_square_scan():
    """Noise-free scan of a 10x10 square room by 72 rays from its center."""
    return _square_scan(72)


@pytest.fixture
def noisy_square_scan():
    """Scan of a 10x10 square room by 72 rays with Gaussian range noise."""
    return _square_scan(72, noise=0.02, seed=42)


@pytest.fixture
def square_polygon():
    """The 10x10 square room as a polygon."""
    from scanlines.geometry.sequence import Polygon
    return Polygon([[5, 5], [-5, 5], [-5, -5], [5, -5]])


@pytest.fixture
def wall_arc_scan():
    """Open scan of the wall x=5 by 81 rays between -40 and 40 degrees."""
    from scanlines.scan import LaserScan

    azimuth = np.deg2rad(np.arange(-40, 41))
    radius = 5.0 / np.cos(azimuth)
    return LaserScan([0.0, 0.0, 0.0], azimuth, radius)


@pytest.fixture
def gapped_square_scan():
    """Square room scan by 72 rays where every 18th ray has no return."""
    from scanlines.scan import LaserScan

    scan = _square_scan(72)
    radius = scan.radius.copy()
    radius[9::18] = np.inf
    return LaserScan([0.0, 0.0, 0.0], scan.azimuth, radius)


@pytest.fixture
def default_config():
    """Create default extraction configuration."""
    from scanlines.config import ExtractionConfig
    return ExtractionConfig()


@pytest.fixture
def scan_file(temp_dir, small_square_scan):
    """Write the small square scan to a JSON file."""
    from scanlines.io.scan_io import save_scan

    path = os.path.join(temp_dir, "scan.json")
    save_scan(small_square_scan, path)
    return path
