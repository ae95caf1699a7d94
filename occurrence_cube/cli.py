"""Command-line argument parser for the occurrence cube builder."""

import argparse
from typing import NamedTuple, Self

from occurrence_cube import defaults


class PipelineConfig(NamedTuple):
    taxa_file: str
    occurrence_file: str
    cube_file: str
    taxa_output_file: str
    log_file: str
    separator: str
    taxa_separator: str | None
    api_url: str
    lookup_timeout: float
    lookup_retries: int
    max_workers: int
    deadline: float | None

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> Self:
        return cls(
            taxa_file=args.taxa_file,
            occurrence_file=args.occurrence_file,
            cube_file=args.cube_file,
            taxa_output_file=args.taxa_output_file,
            log_file=args.log_file,
            separator=args.separator,
            taxa_separator=args.taxa_separator,
            api_url=args.api_url,
            lookup_timeout=args.lookup_timeout,
            lookup_retries=args.lookup_retries,
            max_workers=args.max_workers,
            deadline=args.deadline if args.deadline and args.deadline > 0 else None,
        )


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the CLI argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Aggregate GBIF occurrences into an occurrence cube for a list of taxa."
    )

    parser.add_argument(
        "--cube-file",
        type=str,
        default=defaults.CUBE_FILENAME,
        help="Path of the cube to write",
    )
    parser.add_argument(
        "--taxa-output-file",
        type=str,
        default=defaults.TAXON_MAPPING_FILENAME,
        help="Path of the taxon mapping table to write",
    )
    parser.add_argument(
        "--log-file", type=str, default=defaults.LOG_FILE, help="Path to the log file"
    )
    parser.add_argument(
        "--separator",
        type=str,
        default=defaults.OCCURRENCE_SEPARATOR,
        help="Field separator of the occurrence file",
    )
    parser.add_argument(
        "--taxa-separator",
        type=str,
        default=None,
        help="Field separator of the taxa file (detected from its header if omitted)",
    )
    parser.add_argument(
        "--api-url",
        type=str,
        default=defaults.GBIF_API_URL,
        help="Base URL of the GBIF API",
    )
    parser.add_argument(
        "--lookup-timeout",
        type=float,
        default=defaults.LOOKUP_TIMEOUT_SECONDS,
        help="Timeout in seconds of a single taxonomy lookup",
    )
    parser.add_argument(
        "--lookup-retries",
        type=int,
        default=defaults.LOOKUP_RETRIES,
        help="Retries of a taxonomy lookup on rate limiting or server errors",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=defaults.LOOKUP_MAX_WORKERS,
        help="Maximum number of concurrent taxonomy lookups",
    )
    parser.add_argument(
        "--deadline",
        type=float,
        default=defaults.LOOKUP_DEADLINE_SECONDS,
        help="Seconds allowed for all taxonomy lookups (0 for no limit)",
    )

    # Positional arguments
    parser.add_argument("taxa_file", type=str, help="Path to the taxa of interest file")
    parser.add_argument(
        "occurrence_file",
        type=str,
        help="Path to the occurrence file (delimited text or Parquet)",
    )

    return parser


def parse_args(argv: list[str] | None = None) -> PipelineConfig:
    return PipelineConfig.from_args(create_argument_parser().parse_args(argv))
