from typing import NamedTuple

import polars as pl

from occurrence_cube.constants import TAXON_KEY_COLUMN
from occurrence_cube.dataframes.taxon_bucket import (
    ClassificationReport,
    with_bucket_columns,
)
from occurrence_cube.types import Bucket, TaxonKey


class PipelineSummary(NamedTuple):
    """Counts of the non-fatal conditions met while building a cube."""

    taxa_of_interest: int
    missing_rank_or_status: int
    unclassified: int
    bucket_keys: dict[Bucket, int]
    empty_buckets: list[Bucket]
    represented_taxa: int
    cube_cells: int
    mapped_taxa: int
    failed_lookups: list[TaxonKey]


def count_represented_taxa(
    taxa_df: pl.DataFrame,
    cube_df: pl.DataFrame,
    canonical_key_by_key: dict[TaxonKey, TaxonKey],
) -> int:
    """
    Count taxa of interest whose (possibly remapped) bucket key appears in the cube.

    Args:
        taxa_df: Taxa of interest
        cube_df: The merged cube
        canonical_key_by_key: Infraspecific keys replaced by their accepted key
    """
    cube_keys = cube_df.get_column(TAXON_KEY_COLUMN).unique()
    bucket_key = pl.col("bucketKey")
    if canonical_key_by_key:
        bucket_key = (
            pl.when(pl.col("bucket") == Bucket.INFRASPECIFIC.value)
            .then(bucket_key.replace(canonical_key_by_key))
            .otherwise(bucket_key)
        )
    return (
        with_bucket_columns(taxa_df)
        .filter(bucket_key.is_in(cube_keys.implode()))
        .height
    )


def build_summary(
    report: ClassificationReport,
    bucket_key_counts: dict[Bucket, int],
    partial_cubes: dict[Bucket, pl.DataFrame],
    represented_taxa: int,
    cube_df: pl.DataFrame,
    mapping_df: pl.DataFrame,
    failed_lookups: list[TaxonKey],
) -> PipelineSummary:
    return PipelineSummary(
        taxa_of_interest=report.total,
        missing_rank_or_status=len(report.missing_rank_or_status),
        unclassified=len(report.unclassified),
        bucket_keys=bucket_key_counts,
        empty_buckets=[bucket for bucket, df in partial_cubes.items() if df.is_empty()],
        represented_taxa=represented_taxa,
        cube_cells=cube_df.height,
        mapped_taxa=mapping_df.height,
        failed_lookups=sorted(set(failed_lookups)),
    )


def format_summary(summary: PipelineSummary) -> str:
    lines = [
        f"{summary.represented_taxa} of {summary.taxa_of_interest} "
        f"taxa-of-interest represented in the cube",
        f"Taxa without rank or status: {summary.missing_rank_or_status}",
        f"Taxa matching no bucket: {summary.unclassified}",
    ]
    for bucket, count in summary.bucket_keys.items():
        empty = " (no occurrences)" if bucket in summary.empty_buckets else ""
        lines.append(f"{bucket.value} bucket keys: {count}{empty}")
    lines.append(f"Cube cells: {summary.cube_cells}")
    lines.append(f"Mapped taxa: {summary.mapped_taxa}")
    lines.append(f"Failed taxonomy lookups: {len(summary.failed_lookups)}")
    return "\n".join(lines)
