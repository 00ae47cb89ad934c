"""
Pipeline orchestrator for scanlines.

Loads a scan, runs the configured extraction method, evaluates the result
and writes the map and its summary.
"""

import os
import time
from dataclasses import asdict

from scanlines.config import load_config
from scanlines.evaluate import evaluate_map
from scanlines.extract.max_likelihood import extract_max_likelihood
from scanlines.extract.split_merge import extract_iterative_endpoint_fit, extract_split_and_merge
from scanlines.extract.visvalingam import extract_visvalingam
from scanlines.geometry.sequence import Polygon
from scanlines.io.scan_io import (
    ensure_dir, json_safe, load_scan, read_json, save_json, save_map, scan_to_record,
)
from scanlines.models import MapDocument, MapElement, generate_map_id
from scanlines.tracer import configure_tracer, get_tracer, trace


def run_extraction(scan, config):
    """
    Run the extraction method named by config.method.

    Returns:
        Polymap
    """
    config.validate()

    if config.method == "max_likelihood":
        return extract_max_likelihood(scan, config.max_likelihood, config.intersection)
    if config.method == "visvalingam":
        return extract_visvalingam(scan, config.visvalingam)
    if config.method == "split_and_merge":
        return extract_split_and_merge(scan, config.split_merge)
    return extract_iterative_endpoint_fit(scan, config.split_merge)


def load_ground_truth(path):
    """Load a ground-truth polygon stored as a {type, vertices} element."""
    element = MapElement.model_validate(read_json(path))
    return Polygon(element.vertices)


@trace(label="run_pipeline")
def run_pipeline(scan_path, out_dir, config=None, config_path=None, method=None,
                 ground_truth_path=None):
    """
    Extract a map from a scan file and save the results.

    Args:
        scan_path: path to a scan JSON file
        out_dir: output directory, receives map.json and summary.json
        config: ExtractionConfig object (optional)
        config_path: path to YAML config file (optional)
        method: overrides config.method
        ground_truth_path: optional ground-truth polygon JSON file

    Returns:
        MapDocument
    """
    tracer = get_tracer()

    if config is None:
        config = load_config(config_path)
    if method is not None:
        config.method = method

    if config.tracing.enabled and not tracer.config.enabled:
        configure_tracer(
            enabled=True,
            level=config.tracing.level,
            file_path=config.tracing.file_path,
            json_output=config.tracing.json_output,
        )

    config.validate()
    ensure_dir(out_dir)

    with tracer.span("load", module="pipeline"):
        scan = load_scan(scan_path)
        ground_truth = load_ground_truth(ground_truth_path) if ground_truth_path else None

    with tracer.span("extract", module="pipeline", method=config.method):
        start = time.perf_counter()
        polymap = run_extraction(scan, config)
        elapsed_ms = (time.perf_counter() - start) * 1000

    with tracer.span("evaluate", module="pipeline"):
        summary = evaluate_map(
            scan, polymap, ground_truth=ground_truth,
            method=config.method, intersection=config.intersection,
        )
        summary.elapsed_ms = elapsed_ms

    document = MapDocument(
        map_id=generate_map_id(scan_to_record(scan), config.method),
        method=config.method,
        elements=polymap.to_model(),
        summary=summary,
        config=json_safe(asdict(config)),
    )

    with tracer.span("save", module="pipeline"):
        save_map(document, os.path.join(out_dir, "map.json"))
        save_json(summary, os.path.join(out_dir, "summary.json"))

    tracer.event(
        f"Extracted {polymap.count} elements with {polymap.vertex_count} vertices "
        f"from {scan.count} rays"
    )

    return document
