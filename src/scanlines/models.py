"""
Pydantic data models for serialized scans, maps and run summaries.

Everything written to or read from disk passes through these models.
Content-based ID generation keeps outputs deterministic.
"""

import hashlib
import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class ElementKind(str, Enum):
    """Type tag of a map element."""
    POLYLINE = "polyline"
    POLYGON = "polygon"


def encode_float(value):
    """JSON-safe float: NaN becomes None, infinities become strings."""
    if value is None or math.isnan(value):
        return None
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return value


def decode_float(value):
    """Inverse of encode_float."""
    if value is None:
        return math.nan
    return float(value)


class MapElement(BaseModel):
    """A single polyline or polygon."""
    type: ElementKind
    vertices: List[List[float]] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @field_validator("vertices")
    @classmethod
    def _check_vertices(cls, vertices):
        for v in vertices:
            if len(v) != 2:
                raise ValueError(f"Vertex must have 2 coordinates, got {v}")
        return vertices


class ScanRecord(BaseModel):
    """Serialized 2-D range scan."""
    poses: List[List[float]]  # [[x, y, yaw]], one row or one per ray
    azimuth: List[float]
    radius: List[float]
    rlim: List[float] = Field(default_factory=lambda: [0.0, math.inf])

    model_config = ConfigDict(extra="forbid")

    @field_validator("radius", "rlim", mode="before")
    @classmethod
    def _decode_non_finite(cls, values):
        return [decode_float(v) for v in values]

    @field_validator("poses")
    @classmethod
    def _check_poses(cls, poses):
        for p in poses:
            if len(p) != 3:
                raise ValueError(f"Pose must be [x, y, yaw], got {p}")
        return poses

    @field_validator("rlim")
    @classmethod
    def _check_rlim(cls, rlim):
        if len(rlim) != 2:
            raise ValueError(f"rlim must have 2 elements, got {rlim}")
        return rlim

    @field_serializer("radius", "rlim")
    def _encode_non_finite(self, values):
        return [encode_float(v) for v in values]


class ExtractionSummary(BaseModel):
    """Quality figures of an extracted map with respect to its scan."""
    method: str
    element_count: int = 0
    vertex_count: int = 0
    ray_count: int = 0
    returned_count: int = 0
    residual: Optional[float] = None  # sum of squared radial residuals
    rmse: Optional[float] = None
    reflected_fraction: Optional[float] = None
    no_return_unreflected_fraction: Optional[float] = None
    area_error: Optional[float] = None
    iou: Optional[float] = None
    elapsed_ms: Optional[float] = None

    model_config = ConfigDict(extra="forbid")


class MapDocument(BaseModel):
    """Root document written by the pipeline."""
    map_id: str
    method: str
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())
    elements: List[MapElement] = Field(default_factory=list)
    summary: Optional[ExtractionSummary] = None
    config: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


def generate_map_id(scan_record, method, round_digits=6):
    """
    Generate a deterministic map ID from the scan content and method name.

    Rounds values to avoid floating point instability.
    """
    radius = [encode_float(round(r, round_digits)) if math.isfinite(r) else encode_float(r)
              for r in scan_record.radius]
    azimuth = [round(a, round_digits) for a in scan_record.azimuth]
    data = f"{method}:{scan_record.poses}:{azimuth}:{radius}"
    h = hashlib.sha256(data.encode()).hexdigest()[:12]
    return f"map_{h}"
