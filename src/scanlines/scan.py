"""
2-D laser range scans.

A scan is an immutable snapshot of N rays. Each ray has an azimuth in the
sensor frame, a measured radius and the sensor pose [x, y, yaw] at the time
of measurement. Radii outside the valid range interval `rlim` are no-return
rays.
"""

import math

import numpy as np

from scanlines.geometry.primitives import angdiff


def _frozen(a):
    a = np.array(a, dtype=float)
    a.setflags(write=False)
    return a


class LaserScan:
    """
    Immutable 2-D laser scan.

    Args:
        poses: [x, y, yaw] of the sensor, either one row shared by all rays
            or one row per ray
        azimuth: N finite ray angles in the sensor frame [rad]
        radius: N measured ray lengths; inf/NaN mark missing returns
        rlim: (min, max) measurable radius, 0 <= min <= max

    Raises:
        ValueError: on mismatched lengths, non-finite poses or azimuths, or
            an invalid range interval
    """

    def __init__(self, poses, azimuth, radius, rlim=(0.0, math.inf)):
        azimuth = np.asarray(azimuth, dtype=float).ravel()
        radius = np.asarray(radius, dtype=float).ravel()
        poses = np.asarray(poses, dtype=float)

        if poses.ndim == 1:
            poses = poses.reshape(1, -1)
        if poses.ndim != 2 or poses.shape[1] != 3:
            raise ValueError(f"Poses must be a 3-vector or an Nx3 array, got shape {poses.shape}")
        if not np.all(np.isfinite(poses)):
            raise ValueError("Poses must be finite")
        if not np.all(np.isfinite(azimuth)):
            raise ValueError("Azimuth angles must be finite")
        if azimuth.size != radius.size:
            raise ValueError(
                f"Azimuth and radius must have the same length, got {azimuth.size} and {radius.size}"
            )
        if poses.shape[0] not in (1, azimuth.size):
            raise ValueError(f"Poses must have 1 or {azimuth.size} rows, got {poses.shape[0]}")

        rlim = np.asarray(rlim, dtype=float).ravel()
        if rlim.size != 2 or np.any(np.isnan(rlim)) or rlim[0] < 0 or rlim[0] > rlim[1]:
            raise ValueError(f"rlim must be an increasing pair of nonnegative values, got {rlim.tolist()}")

        # Collapse identical per-ray poses to one shared pose
        if poses.shape[0] > 1 and np.all(poses == poses[0]):
            poses = poses[:1]

        self._poses = _frozen(poses)
        self._azimuth = _frozen(azimuth)
        self._radius = _frozen(radius)
        self._rlim = (float(rlim[0]), float(rlim[1]))

    @property
    def count(self):
        """Number of rays."""
        return self._azimuth.size

    def __len__(self):
        return self.count

    def __repr__(self):
        return f"LaserScan(rays={self.count}, returned={int(self.returned.sum())}, rlim={self._rlim})"

    @property
    def azimuth(self):
        return self._azimuth

    @property
    def radius(self):
        return self._radius

    @property
    def rlim(self):
        return self._rlim

    @property
    def shared_pose(self):
        """True if all rays were measured from the same pose."""
        return self._poses.shape[0] == 1

    @property
    def poses(self):
        """Nx3 array of sensor poses, one row per ray."""
        return np.broadcast_to(self._poses, (self.count, 3))

    @property
    def headings(self):
        """Ray directions in the global frame [rad]."""
        return self._poses[:, 2] + self._azimuth

    @property
    def start_points(self):
        """Nx2 ray start points in the global frame."""
        return np.broadcast_to(self._poses[:, :2], (self.count, 2))

    @property
    def directions(self):
        """Nx2 unit ray direction vectors in the global frame."""
        h = self.headings
        return np.column_stack([np.cos(h), np.sin(h)])

    @property
    def returned(self):
        """Boolean mask of rays whose radius lies inside rlim."""
        with np.errstate(invalid="ignore"):
            return (
                np.isfinite(self._radius)
                & (self._radius >= self._rlim[0])
                & (self._radius <= self._rlim[1])
            )

    @property
    def below_range(self):
        """Boolean mask of rays that reflected closer than rlim[0]."""
        with np.errstate(invalid="ignore"):
            return self._radius < self._rlim[0]

    @property
    def beyond_range(self):
        """Boolean mask of rays that reflected beyond rlim[1] or not at all."""
        with np.errstate(invalid="ignore"):
            return ~self.returned & ~self.below_range

    @property
    def end_points(self):
        """Nx2 ray end points in the global frame; NaN for no-return rays."""
        with np.errstate(invalid="ignore"):
            ends = self.start_points + self.directions * self._radius[:, None]
        ends[~self.returned] = np.nan
        return ends

    def select(self, index):
        """
        Return a new scan with the rays given by a boolean mask or indices.
        """
        index = np.asarray(index)
        if index.dtype == bool:
            if index.size != self.count:
                raise ValueError(f"Mask must have {self.count} elements, got {index.size}")
            index = np.flatnonzero(index)
        else:
            index = np.asarray(index, dtype=int).ravel()
            if index.size and (index.min() < 0 or index.max() >= self.count):
                raise ValueError(f"Ray index out of range [0, {self.count - 1}]")

        poses = self._poses if self.shared_pose else self._poses[index]
        return LaserScan(poses, self._azimuth[index], self._radius[index], self._rlim)

    def angular_gap(self):
        """
        Angle between the last and the first ray in scanning direction.

        The scanning direction is taken from the first two rays.
        """
        if self.count < 2:
            return 2.0 * math.pi
        direction = np.sign(angdiff(self._azimuth[0], self._azimuth[1])) or 1.0
        return float(np.mod(direction * (self._azimuth[0] - self._azimuth[-1]), 2.0 * math.pi))

    def is_closed_loop(self):
        """True if the rays cover a full turn with a gap of at most two ray spacings."""
        if self.count < 3:
            return False
        return self.angular_gap() <= 4.0 * math.pi / self.count
