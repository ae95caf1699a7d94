import logging
import time
from typing import NamedTuple

import dataframely as dy
import polars as pl
from contexttimer import Timer

from occurrence_cube.dataframes.occurrence import OccurrenceSchema
from occurrence_cube.dataframes.occurrence_cube import (
    BUCKET_GROUPING_COLUMNS,
    OccurrenceCubeSchema,
    aggregate_bucket_lf,
    reaggregate_cube_df,
)
from occurrence_cube.dataframes.taxa_of_interest import TaxaOfInterestSchema
from occurrence_cube.dataframes.taxon_bucket import TaxonBucketSchema, bucket_keys
from occurrence_cube.dataframes.taxon_mapping import (
    TaxonMappingResult,
    TaxonMappingSchema,
    build_taxon_mapping,
)
from occurrence_cube.defaults import LOOKUP_DEADLINE_SECONDS, LOOKUP_MAX_WORKERS
from occurrence_cube.logging import log_action
from occurrence_cube.merge import merge_cubes, merge_taxon_mappings
from occurrence_cube.summary import (
    PipelineSummary,
    build_summary,
    count_represented_taxa,
)
from occurrence_cube.taxonomy_lookup import TaxonomyLookup
from occurrence_cube.types import Bucket, TaxonKey

logger = logging.getLogger(__name__)


class CubeResult(NamedTuple):
    cube_df: dy.DataFrame[OccurrenceCubeSchema]
    mapping_df: dy.DataFrame[TaxonMappingSchema]
    summary: PipelineSummary


def aggregate_buckets(
    occurrence_lf: dy.LazyFrame[OccurrenceSchema],
    keys_by_bucket: dict[Bucket, list[TaxonKey]],
) -> dict[Bucket, pl.DataFrame]:
    """Aggregate every bucket, collecting the independent query plans in parallel."""
    buckets = list(keys_by_bucket)
    with Timer(output=logger.info, prefix="Aggregating buckets"):
        dfs = pl.collect_all(
            [
                aggregate_bucket_lf(
                    occurrence_lf, keys_by_bucket[bucket], BUCKET_GROUPING_COLUMNS[bucket]
                )
                for bucket in buckets
            ]
        )
    return dict(zip(buckets, dfs))


def build_taxon_mappings(
    occurrence_lf: dy.LazyFrame[OccurrenceSchema],
    keys_by_bucket: dict[Bucket, list[TaxonKey]],
    lookup: TaxonomyLookup,
    max_workers: int,
    deadline: float | None,
) -> dict[Bucket, TaxonMappingResult]:
    """Build every bucket's partial mapping within one shared deadline."""
    expires_at = None if deadline is None else time.monotonic() + deadline
    results: dict[Bucket, TaxonMappingResult] = {}
    for bucket, keys in keys_by_bucket.items():
        remaining = None if expires_at is None else max(0.0, expires_at - time.monotonic())
        results[bucket] = build_taxon_mapping(
            occurrence_lf,
            keys,
            bucket,
            lookup,
            max_workers=max_workers,
            deadline=remaining,
        )
    return results


def build_occurrence_cube(
    taxa_df: dy.DataFrame[TaxaOfInterestSchema],
    occurrence_lf: dy.LazyFrame[OccurrenceSchema],
    lookup: TaxonomyLookup,
    max_workers: int = LOOKUP_MAX_WORKERS,
    deadline: float | None = LOOKUP_DEADLINE_SECONDS,
) -> CubeResult:
    """
    Build the occurrence cube and taxon mapping table for a list of taxa.

    Taxa are classified into the species, infraspecific and synonym buckets;
    each bucket is aggregated on its own grouping key and mapped to its
    contributing identifiers; the partial results are then merged.

    Args:
        taxa_df: Taxa of interest
        occurrence_lf: Occurrence records
        lookup: Taxonomy lookup resolving canonical key metadata
        max_workers: Maximum number of concurrent taxonomy lookups
        deadline: Seconds allowed for all taxonomy lookups

    Returns:
        The merged cube, the merged mapping table and a run summary

    Raises:
        OverlappingTaxonKeysError: if two buckets produced the same canonical key
    """
    bucket_df, report = log_action(
        "classify taxa", lambda: TaxonBucketSchema.build(taxa_df)
    )
    keys_by_bucket = {bucket: bucket_keys(bucket_df, bucket) for bucket in Bucket}

    partial_cubes = log_action(
        "aggregate buckets", lambda: aggregate_buckets(occurrence_lf, keys_by_bucket)
    )
    mappings = log_action(
        "build taxon mappings",
        lambda: build_taxon_mappings(
            occurrence_lf, keys_by_bucket, lookup, max_workers, deadline
        ),
    )

    infraspecific = mappings[Bucket.INFRASPECIFIC]
    partial_cubes[Bucket.INFRASPECIFIC] = reaggregate_cube_df(
        partial_cubes[Bucket.INFRASPECIFIC],
        infraspecific.key_remapping_df,
        BUCKET_GROUPING_COLUMNS[Bucket.INFRASPECIFIC],
    )

    cube_df = merge_cubes(partial_cubes)
    mapping_df = merge_taxon_mappings(
        {bucket: result.mapping_df for bucket, result in mappings.items()}
    )

    remapped_df = infraspecific.key_remapping_df.filter(
        pl.col("key") != pl.col("canonicalKey")
    )
    represented = count_represented_taxa(
        taxa_df,
        cube_df,
        dict(zip(remapped_df["key"].to_list(), remapped_df["canonicalKey"].to_list())),
    )
    summary = build_summary(
        report,
        {bucket: len(keys) for bucket, keys in keys_by_bucket.items()},
        partial_cubes,
        represented,
        cube_df,
        mapping_df,
        [key for result in mappings.values() for key in result.failed_keys],
    )
    return CubeResult(cube_df=cube_df, mapping_df=mapping_df, summary=summary)
