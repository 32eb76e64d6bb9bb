"""Command line entry point for the InfluxDB to Prometheus converter."""
import argparse
import logging
import sys
from typing import List, Optional

from influx2prom.config import load_config
from influx2prom.engine import ConversionEngine
from influx2prom.prom_exporter import MetricEncoder


def setup_logging(log_level: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    # stdout carries the exposition, logs go to stderr
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert InfluxDB line protocol to Prometheus exposition format"
    )
    parser.add_argument("input", help="Path to a line protocol file")
    parser.add_argument(
        "--precision",
        "-p",
        default=None,
        help="Timestamp precision of the input (n, ns, u, us, ms, s, m, h); default ns"
    )
    parser.add_argument(
        "--output",
        "-o",
        default=None,
        help="Write to this file instead of stdout"
    )
    parser.add_argument(
        "--format",
        "-f",
        default=None,
        choices=["text", "openmetrics"],
        help="Exposition format; default text"
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to configuration YAML file"
    )
    parser.add_argument("--log-level", default=None, help="Logging level; default INFO")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    args = build_parser().parse_args(argv)

    # Load configuration
    try:
        config = load_config(
            args.config,
            overrides={
                "precision": args.precision,
                "output": args.output,
                "format": args.format,
                "log_level": args.log_level,
            },
        )
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.global_.log_level)
    logger = logging.getLogger("influx2prom")

    try:
        with open(args.input, "rb") as f:
            buf = f.read()
    except OSError as e:
        print(f"Error reading input: {e}", file=sys.stderr)
        return 1

    output_path = config.converter.output
    try:
        stream = open(output_path, "wb") if output_path else sys.stdout.buffer
    except OSError as e:
        print(f"Error opening output: {e}", file=sys.stderr)
        return 1

    try:
        encoder = MetricEncoder(stream, config.converter.format)
        engine = ConversionEngine(config, encoder, logger)
        engine.run(buf)
    except Exception as e:
        print(f"Error converting {args.input}: {e}", file=sys.stderr)
        return 1
    finally:
        if output_path:
            stream.close()
        else:
            stream.flush()

    return 0


if __name__ == "__main__":
    sys.exit(main())
