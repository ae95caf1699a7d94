import logging
import time
from typing import NamedTuple

import dataframely as dy
import polars as pl

from occurrence_cube.constants import INCLUDES_SEPARATOR, TAXON_KEY_COLUMN
from occurrence_cube.dataframes.occurrence import OccurrenceSchema
from occurrence_cube.dataframes.occurrence_cube import (
    BUCKET_GROUPING_COLUMNS,
    bucket_occurrences_lf,
)
from occurrence_cube.defaults import LOOKUP_DEADLINE_SECONDS, LOOKUP_MAX_WORKERS
from occurrence_cube.taxonomy_lookup import TaxonomyLookup, resolve_many
from occurrence_cube.types import Bucket, TaxonKey, TaxonMetadata

logger = logging.getLogger(__name__)

METADATA_SCHEMA: dict[str, pl.DataType] = {
    "key": pl.Int64(),
    "scientificName": pl.String(),
    "rank": pl.String(),
    "taxonomicStatus": pl.String(),
}

KEY_REMAPPING_SCHEMA: dict[str, pl.DataType] = {
    "key": pl.Int64(),
    "canonicalKey": pl.Int64(),
}


class TaxonMappingResult(NamedTuple):
    """The partial mapping table of one bucket.

    `mapping_df` is keyed on the bucket's grouping column. `key_remapping_df`
    lists, for every key queried, the canonical key it was folded into; it is
    only non-trivial for the infraspecific bucket.
    """

    bucket: Bucket
    mapping_df: pl.DataFrame
    key_remapping_df: pl.DataFrame
    failed_keys: list[TaxonKey]


def distinct_identifiers_df(
    occurrence_lf: dy.LazyFrame[OccurrenceSchema],
    keys: list[TaxonKey],
    grouping_column: str,
) -> pl.DataFrame:
    """
    Distinct (canonical key, raw taxon key, raw scientific name) triples of a
    bucket, in the order they are first seen in the occurrence data.
    """
    return (
        bucket_occurrences_lf(occurrence_lf, keys, grouping_column)
        .select(
            pl.col(grouping_column).alias("key"),
            pl.col("taxonKey").alias("includedKey"),
            pl.col("scientificName").alias("includedName"),
        )
        .unique(maintain_order=True)
        .collect()
    )


def build_includes_df(identifiers_df: pl.DataFrame) -> pl.DataFrame:
    """
    Fold raw identifiers into one `includes` listing per canonical key.

    Entries are formatted `"<taxonKey>: <scientificName>"` and joined with
    `INCLUDES_SEPARATOR`, keeping the order of `identifiers_df`. Duplicate
    entries, which appear when several keys were remapped onto one canonical
    key, are listed once.
    """
    return (
        identifiers_df.unique(maintain_order=True)
        .with_columns(
            entry=pl.format(
                "{}: {}",
                pl.col("includedKey").cast(pl.String).fill_null(""),
                pl.col("includedName").fill_null(""),
            )
        )
        .group_by("key", maintain_order=True)
        .agg(pl.col("entry").str.join(INCLUDES_SEPARATOR).alias("includes"))
    )


def metadata_df(metadata: dict[TaxonKey, TaxonMetadata]) -> pl.DataFrame:
    return pl.DataFrame(
        [
            {
                "key": key,
                "scientificName": item.scientific_name,
                "rank": item.rank,
                "taxonomicStatus": item.taxonomic_status,
            }
            for key, item in metadata.items()
        ],
        schema=METADATA_SCHEMA,
    )


def key_remapping_df(
    keys: list[TaxonKey],
    metadata: dict[TaxonKey, TaxonMetadata],
    use_accepted_keys: bool,
) -> pl.DataFrame:
    """
    Decide the canonical key of every queried key.

    With `use_accepted_keys`, a key whose lookup reported an `acceptedKey` is
    replaced by it. Keys without metadata, and every key when no response
    exposed an `acceptedKey`, are their own canonical key.
    """
    exposes_accepted = use_accepted_keys and any(
        item.accepted_key is not None for item in metadata.values()
    )
    canonical_keys = [
        metadata[key].canonical_key if exposes_accepted and key in metadata else key
        for key in keys
    ]
    return pl.DataFrame(
        {"key": keys, "canonicalKey": canonical_keys}, schema=KEY_REMAPPING_SCHEMA
    )


def build_taxon_mapping(
    occurrence_lf: dy.LazyFrame[OccurrenceSchema],
    keys: list[TaxonKey],
    bucket: Bucket,
    lookup: TaxonomyLookup,
    max_workers: int = LOOKUP_MAX_WORKERS,
    deadline: float | None = LOOKUP_DEADLINE_SECONDS,
) -> TaxonMappingResult:
    """
    Build the partial taxon mapping table of one bucket.

    Every canonical key observed in the bucket's occurrences gets its
    scientific name, rank and status from `lookup`, and an `includes` listing
    of the raw taxon keys folded into it. In the infraspecific bucket, keys
    that the lookup reports as synonyms are replaced by their accepted key,
    whose metadata is then resolved too.

    Args:
        occurrence_lf: Occurrence records
        keys: The bucket's key set
        bucket: Which bucket `keys` belong to
        lookup: Taxonomy lookup used to resolve metadata
        max_workers: Maximum number of concurrent lookups
        deadline: Seconds allowed for all lookups of the bucket

    Returns:
        A `TaxonMappingResult`. Keys whose lookup failed keep null metadata.
    """
    grouping_column = BUCKET_GROUPING_COLUMNS[bucket]
    identifiers_df = distinct_identifiers_df(occurrence_lf, keys, grouping_column)
    observed_keys: list[TaxonKey] = identifiers_df["key"].unique().sort().to_list()
    logger.info(
        f"build_taxon_mapping: {bucket.value} bucket has {len(observed_keys)} "
        f"of {len(keys)} keys with occurrences"
    )

    expires_at = None if deadline is None else time.monotonic() + deadline

    def remaining() -> float | None:
        if expires_at is None:
            return None
        return max(0.0, expires_at - time.monotonic())

    resolved = resolve_many(
        lookup, observed_keys, max_workers=max_workers, deadline=remaining()
    )
    metadata = dict(resolved.metadata)
    failed = list(resolved.failed)

    remapping_df = key_remapping_df(
        observed_keys, metadata, use_accepted_keys=bucket is Bucket.INFRASPECIFIC
    )
    remapped_df = remapping_df.filter(pl.col("key") != pl.col("canonicalKey"))
    if not remapped_df.is_empty():
        logger.info(
            f"build_taxon_mapping: {remapped_df.height} {bucket.value} keys are "
            f"synonyms and were replaced by their accepted key"
        )
        # Metadata describes the queried key; the canonical key needs its own
        canonical_keys = remapped_df["canonicalKey"].unique().sort().to_list()
        for key in remapped_df["key"].to_list():
            metadata.pop(key, None)
        accepted = resolve_many(
            lookup, canonical_keys, max_workers=max_workers, deadline=remaining()
        )
        metadata.update(accepted.metadata)
        failed.extend(accepted.failed)

    canonical_key_by_key = dict(
        zip(remapped_df["key"].to_list(), remapped_df["canonicalKey"].to_list())
    )
    if canonical_key_by_key:
        identifiers_df = identifiers_df.with_columns(
            pl.col("key").replace(canonical_key_by_key)
        )
    includes_df = build_includes_df(identifiers_df)

    mapping_df = (
        includes_df.join(metadata_df(metadata), on="key", how="left")
        .select(
            pl.col("key").alias(grouping_column),
            "scientificName",
            "rank",
            "taxonomicStatus",
            "includes",
        )
        .sort(grouping_column)
    )

    if failed:
        logger.warning(
            f"build_taxon_mapping: metadata missing for {len(failed)} "
            f"{bucket.value} keys: {sorted(set(failed))}"
        )

    return TaxonMappingResult(
        bucket=bucket,
        mapping_df=mapping_df,
        key_remapping_df=remapping_df,
        failed_keys=sorted(set(failed)),
    )


class TaxonMappingSchema(dy.Schema):
    """
    For every canonical taxon key of the cube, its metadata and the raw
    identifiers (synonyms, infraspecific taxa, name usages) folded into it.
    """

    taxonKey = dy.Int64(nullable=False, primary_key=True)
    scientificName = dy.String(nullable=True)
    rank = dy.String(nullable=True)
    taxonomicStatus = dy.String(nullable=True)
    includes = dy.String(nullable=False)

    @classmethod
    def build(
        cls, partial_mapping_dfs: list[pl.DataFrame]
    ) -> dy.DataFrame["TaxonMappingSchema"]:
        """Concatenate partial mappings that already share the `taxonKey` column."""
        df = (
            pl.concat(
                [empty_mapping_df(), *partial_mapping_dfs],
                how="diagonal_relaxed",
            )
            .select(cls.columns().keys())
            .sort(TAXON_KEY_COLUMN)
        )
        return cls.validate(df)


def empty_mapping_df(grouping_column: str = TAXON_KEY_COLUMN) -> pl.DataFrame:
    return pl.DataFrame(
        schema={
            grouping_column: pl.Int64(),
            "scientificName": pl.String(),
            "rank": pl.String(),
            "taxonomicStatus": pl.String(),
            "includes": pl.String(),
        }
    )
