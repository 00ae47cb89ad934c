"""
Command-line interface for scanlines.

Provides commands for extracting a map from a scan file and for writing the
default configuration.
"""

import argparse
import sys

from scanlines.config import METHODS, save_default_config
from scanlines.tracer import configure_tracer, get_tracer


def build_parser():
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        description="scanlines: extract polyline maps from 2-D laser scans",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Extract a map from a scan")
    run_parser.add_argument(
        "--scan", "-s",
        required=True,
        help="Scan JSON file",
    )
    run_parser.add_argument(
        "--out", "-o",
        required=True,
        help="Output directory",
    )
    run_parser.add_argument(
        "--method", "-m",
        default=None,
        choices=METHODS,
        help="Extraction method, overrides the configuration",
    )
    run_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file",
    )
    run_parser.add_argument(
        "--ground-truth",
        default=None,
        help="Ground-truth polygon JSON file for area metrics",
    )
    run_parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable runtime tracing",
    )
    run_parser.add_argument(
        "--trace-level",
        default="INFO",
        choices=["ERROR", "WARN", "INFO", "DEBUG"],
        help="Trace log level",
    )
    run_parser.add_argument(
        "--trace-file",
        default=None,
        help="Path to write trace logs",
    )
    run_parser.add_argument(
        "--trace-json",
        action="store_true",
        help="Enable JSON trace output",
    )

    # Init config command
    init_parser = subparsers.add_parser("init-config", help="Create default config file")
    init_parser.add_argument(
        "--out", "-o",
        default="scanlines_config.yaml",
        help="Output path for config file",
    )

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return handle_run(args)
    elif args.command == "init-config":
        return handle_init_config(args)

    return 0


def handle_run(args):
    """Handle the run command."""
    configure_tracer(
        enabled=args.trace,
        level=args.trace_level,
        file_path=args.trace_file,
        json_output=args.trace_json,
    )

    tracer = get_tracer()

    try:
        from scanlines.pipeline import run_pipeline

        with tracer.span("cli_run", module="cli"):
            document = run_pipeline(
                scan_path=args.scan,
                out_dir=args.out,
                config_path=args.config,
                method=args.method,
                ground_truth_path=args.ground_truth,
            )

        summary = document.summary
        print(f"\nExtraction completed successfully.")
        print(f"  Method: {document.method}")
        print(f"  Elements: {summary.element_count}")
        print(f"  Vertices: {summary.vertex_count}")
        print(f"  Rays: {summary.ray_count} ({summary.returned_count} returned)")
        if summary.rmse is not None:
            print(f"  RMSE: {summary.rmse:.4f}")
        if summary.iou is not None:
            print(f"  IoU: {summary.iou:.4f}")
        print(f"\nOutputs saved to: {args.out}/")
        print(f"  - map.json")
        print(f"  - summary.json")

        return 0

    except Exception as e:
        tracer.event(f"Extraction failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1
    finally:
        tracer.config.close()


def handle_init_config(args):
    """Handle the init-config command."""
    save_default_config(args.out)
    print(f"Default configuration saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
