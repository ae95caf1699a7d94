import logging
from collections.abc import Mapping

import dataframely as dy
import polars as pl

from occurrence_cube.constants import TAXON_KEY_COLUMN
from occurrence_cube.dataframes.occurrence_cube import (
    BUCKET_GROUPING_COLUMNS,
    OccurrenceCubeSchema,
)
from occurrence_cube.dataframes.taxon_mapping import TaxonMappingSchema
from occurrence_cube.errors import check_disjoint_keys
from occurrence_cube.types import Bucket

logger = logging.getLogger(__name__)


def harmonize_taxon_key_column(df: pl.DataFrame, bucket: Bucket) -> pl.DataFrame:
    """Rename a partial table's grouping column to the shared `taxonKey` column."""
    grouping_column = BUCKET_GROUPING_COLUMNS[bucket]
    if grouping_column == TAXON_KEY_COLUMN:
        return df
    return df.rename({grouping_column: TAXON_KEY_COLUMN})


def _harmonize_all(
    partials: Mapping[Bucket, pl.DataFrame],
) -> dict[Bucket, pl.DataFrame]:
    harmonized = {
        bucket: harmonize_taxon_key_column(df, bucket)
        for bucket, df in partials.items()
    }
    check_disjoint_keys(
        {
            bucket: df.get_column(TAXON_KEY_COLUMN).unique().to_list()
            for bucket, df in harmonized.items()
        }
    )
    return harmonized


def merge_cubes(
    partial_cubes: Mapping[Bucket, pl.DataFrame],
) -> dy.DataFrame[OccurrenceCubeSchema]:
    """
    Merge the partial cubes of all buckets into one cube.

    Raises:
        OverlappingTaxonKeysError: if two buckets produced the same taxon key
    """
    harmonized = _harmonize_all(partial_cubes)
    for bucket, df in harmonized.items():
        if df.is_empty():
            logger.info(f"merge_cubes: {bucket.value} bucket has no cube cells")
    cube_df = OccurrenceCubeSchema.build(list(harmonized.values()))
    logger.info(f"merge_cubes: {cube_df.height} cube cells")
    return cube_df


def merge_taxon_mappings(
    partial_mappings: Mapping[Bucket, pl.DataFrame],
) -> dy.DataFrame[TaxonMappingSchema]:
    """
    Merge the partial taxon mapping tables of all buckets into one table.

    Raises:
        OverlappingTaxonKeysError: if two buckets mapped the same taxon key
    """
    harmonized = _harmonize_all(partial_mappings)
    mapping_df = TaxonMappingSchema.build(list(harmonized.values()))
    logger.info(f"merge_taxon_mappings: {mapping_df.height} taxa")
    return mapping_df
