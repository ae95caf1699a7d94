import logging

import dataframely as dy
import polars as pl

from occurrence_cube.constants import (
    CELL_CODE_COLUMN,
    TAXON_KEY_COLUMN,
    UNCERTAINTY_COLUMN,
    YEAR_COLUMN,
)
from occurrence_cube.dataframes.occurrence import OccurrenceSchema
from occurrence_cube.types import Bucket, TaxonKey

logger = logging.getLogger(__name__)

# Occurrence column each bucket groups on. This is also the name of the taxon
# column in that bucket's partial cube until the cubes are merged.
BUCKET_GROUPING_COLUMNS: dict[Bucket, str] = {
    Bucket.SPECIES: "speciesKey",
    Bucket.INFRASPECIFIC: "acceptedTaxonKey",
    Bucket.SYNONYM: "taxonKey",
}


def key_filter_expr(grouping_column: str, keys: list[TaxonKey]) -> pl.Expr:
    return pl.col(grouping_column).is_in(pl.Series(keys, dtype=pl.Int64()).implode())


def bucket_occurrences_lf(
    occurrence_lf: dy.LazyFrame[OccurrenceSchema],
    keys: list[TaxonKey],
    grouping_column: str,
) -> pl.LazyFrame:
    """Occurrences of one bucket that can be placed in a cube cell."""
    return occurrence_lf.filter(
        key_filter_expr(grouping_column, keys),
        pl.col(YEAR_COLUMN).is_not_null(),
        pl.col(CELL_CODE_COLUMN).is_not_null(),
    )


def aggregate_bucket_lf(
    occurrence_lf: dy.LazyFrame[OccurrenceSchema],
    keys: list[TaxonKey],
    grouping_column: str,
) -> pl.LazyFrame:
    """
    Aggregate the occurrences of one bucket into cube cells.

    Occurrences whose `grouping_column` value is one of `keys` are grouped by
    (year, cell code, grouping column). Rows without a year or cell code have
    no place in the cube and are skipped.

    Args:
        occurrence_lf: Occurrence records
        keys: The bucket's key set
        grouping_column: Occurrence column holding the bucket's canonical key

    Returns:
        A lazyframe with `year`, `eea_cell_code`, `grouping_column`, `count` and
        `min_uncertainty`, sorted by the first three. `min_uncertainty` is null
        when no contributing record has an uncertainty.
    """
    return (
        bucket_occurrences_lf(occurrence_lf, keys, grouping_column)
        .group_by(YEAR_COLUMN, CELL_CODE_COLUMN, grouping_column)
        .agg(
            pl.len().cast(pl.UInt32()).alias("count"),
            pl.col(UNCERTAINTY_COLUMN).min().alias("min_uncertainty"),
        )
        .sort(YEAR_COLUMN, CELL_CODE_COLUMN, grouping_column)
    )


def reaggregate_cube_df(
    cube_df: pl.DataFrame,
    key_remapping_df: pl.DataFrame,
    grouping_column: str,
) -> pl.DataFrame:
    """
    Replace the taxon keys of a partial cube with their canonical keys.

    Cells of keys that collapse onto the same canonical key are combined:
    counts are summed and the minimum uncertainty is taken.

    Args:
        cube_df: A partial cube as produced by `aggregate_bucket_lf`
        key_remapping_df: `key` to `canonicalKey` pairs; unlisted keys are kept
        grouping_column: Name of the partial cube's taxon column

    Returns:
        The partial cube keyed on canonical keys, sorted like the input
    """
    if key_remapping_df.filter(pl.col("key") != pl.col("canonicalKey")).is_empty():
        return cube_df

    return (
        cube_df.join(
            key_remapping_df.select("key", "canonicalKey"),
            left_on=grouping_column,
            right_on="key",
            how="left",
        )
        .with_columns(pl.coalesce("canonicalKey", grouping_column).alias(grouping_column))
        .group_by(YEAR_COLUMN, CELL_CODE_COLUMN, grouping_column)
        .agg(
            pl.col("count").sum().cast(pl.UInt32()),
            pl.col("min_uncertainty").min(),
        )
        .sort(YEAR_COLUMN, CELL_CODE_COLUMN, grouping_column)
    )


class OccurrenceCubeSchema(dy.Schema):
    """
    The merged occurrence cube: one row per (year, cell, canonical taxon key).
    """

    year = dy.Int64(nullable=False, primary_key=True)
    eea_cell_code = dy.String(nullable=False, primary_key=True)
    taxonKey = dy.Int64(nullable=False, primary_key=True)
    count = dy.UInt32(nullable=False)
    min_uncertainty = dy.Float64(nullable=True, allow_inf=True, allow_nan=True)

    @dy.rule()
    def positive_count(cls) -> pl.Expr:
        """Every cell is backed by at least one occurrence."""
        return pl.col("count") >= 1

    @classmethod
    def build(cls, partial_cube_dfs: list[pl.DataFrame]) -> dy.DataFrame["OccurrenceCubeSchema"]:
        """Concatenate partial cubes that already share the `taxonKey` column."""
        df = (
            pl.concat(
                [empty_cube_df(), *partial_cube_dfs],
                how="diagonal_relaxed",
            )
            .select(cls.columns().keys())
            .cast({"count": pl.UInt32(), TAXON_KEY_COLUMN: pl.Int64()})
            .sort(YEAR_COLUMN, CELL_CODE_COLUMN, TAXON_KEY_COLUMN)
        )
        return cls.validate(df)


def empty_cube_df(grouping_column: str = TAXON_KEY_COLUMN) -> pl.DataFrame:
    return pl.DataFrame(
        schema={
            YEAR_COLUMN: pl.Int64(),
            CELL_CODE_COLUMN: pl.String(),
            grouping_column: pl.Int64(),
            "count": pl.UInt32(),
            "min_uncertainty": pl.Float64(),
        }
    )
