"""
JSON persistence of scans and extracted maps.

Scans are stored as ScanRecord documents, maps as MapDocument documents.
Non-finite numbers are written as null or "inf" strings so that the files
stay valid JSON.
"""

import json
import math
import os

from scanlines.geometry.polymap import Polymap
from scanlines.models import MapDocument, ScanRecord, encode_float
from scanlines.scan import LaserScan
from scanlines.tracer import get_tracer


def ensure_dir(path):
    """Create directory if it does not exist."""
    if path:
        os.makedirs(path, exist_ok=True)


def json_safe(value):
    """Recursively replace non-finite floats by their JSON-safe encoding."""
    if isinstance(value, float) and not math.isfinite(value):
        return encode_float(value)
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return value


def save_json(data, path, indent=2):
    """
    Save a dictionary or Pydantic model to JSON.
    """
    tracer = get_tracer()

    ensure_dir(os.path.dirname(path))

    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump(json_safe(data), f, indent=indent, default=str)

    tracer.event(f"Saved JSON: {path}")


def read_json(path):
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def scan_to_record(scan):
    """Convert a LaserScan to its serializable record."""
    poses = scan.poses[:1] if scan.shared_pose else scan.poses
    return ScanRecord(
        poses=poses.tolist(),
        azimuth=scan.azimuth.tolist(),
        radius=scan.radius.tolist(),
        rlim=list(scan.rlim),
    )


def scan_from_record(record):
    """Build a LaserScan from a ScanRecord."""
    return LaserScan(record.poses, record.azimuth, record.radius, record.rlim)


def load_scan(path):
    """
    Load a scan from a JSON file.

    Raises:
        FileNotFoundError: if the file does not exist
        pydantic.ValidationError: if the document is malformed
        ValueError: if the scan arrays are inconsistent
    """
    tracer = get_tracer()

    record = ScanRecord.model_validate(read_json(path))
    scan = scan_from_record(record)

    tracer.event(f"Loaded scan: {path}", scan=scan)
    return scan


def save_scan(scan, path):
    """Save a LaserScan as JSON."""
    save_json(scan_to_record(scan), path)


def save_map(document, path):
    """Save a MapDocument as JSON."""
    save_json(document, path)


def load_map(path):
    """
    Load a map document from a JSON file.

    Returns:
        tuple (document, polymap)
    """
    tracer = get_tracer()

    document = MapDocument.model_validate(read_json(path))
    polymap = Polymap.from_model(document.elements)

    tracer.event(f"Loaded map: {path}", polymap=polymap)
    return document, polymap
