import logging
from typing import NamedTuple

import dataframely as dy
import polars as pl

from occurrence_cube.constants import (
    ACCEPTED_STATUS_VALUES,
    INFRASPECIFIC_RANK_VALUES,
    SPECIES_RANK,
)
from occurrence_cube.dataframes.taxa_of_interest import TaxaOfInterestSchema
from occurrence_cube.errors import check_disjoint_keys
from occurrence_cube.types import Bucket, TaxonKey

logger = logging.getLogger(__name__)

BUCKET_VALUES: list[str] = [bucket.value for bucket in Bucket]

BUCKET_DATA_TYPE: pl.Enum = pl.Enum(BUCKET_VALUES)


def _normalized(expr: pl.Expr) -> pl.Expr:
    return expr.str.strip_chars().str.to_uppercase()


def classify_taxa_expr(
    rank: pl.Expr | None = None, taxonomic_status: pl.Expr | None = None
) -> pl.Expr:
    """
    Build the expression assigning each taxon to exactly one bucket.

    - species: rank SPECIES with an accepted or doubtful status
    - infraspecific: a rank below species with an accepted or doubtful status
    - synonym: any other status, whatever the rank

    Taxa with a null rank or status, and accepted taxa above species rank
    (e.g. GENUS), evaluate to null.

    Args:
        rank: Rank expression, defaults to the `rank` column
        taxonomic_status: Status expression, defaults to the `taxonomicStatus` column

    Returns:
        An expression of type `BUCKET_DATA_TYPE`
    """
    rank = _normalized(pl.col("rank") if rank is None else rank)
    status = _normalized(
        pl.col("taxonomicStatus") if taxonomic_status is None else taxonomic_status
    )
    accepted = status.is_in(ACCEPTED_STATUS_VALUES)

    return (
        pl.when(rank.is_null() | status.is_null())
        .then(pl.lit(None, dtype=pl.String))
        .when(accepted & (rank == SPECIES_RANK))
        .then(pl.lit(Bucket.SPECIES.value))
        .when(accepted & rank.is_in(INFRASPECIFIC_RANK_VALUES))
        .then(pl.lit(Bucket.INFRASPECIFIC.value))
        .when(~accepted)
        .then(pl.lit(Bucket.SYNONYM.value))
        .otherwise(pl.lit(None, dtype=pl.String))
        .cast(BUCKET_DATA_TYPE)
    )


def classify_taxon(rank: str | None, taxonomic_status: str | None) -> Bucket | None:
    """Classify a single (rank, status) pair with `classify_taxa_expr`."""
    value = pl.select(
        classify_taxa_expr(
            pl.lit(rank, dtype=pl.String), pl.lit(taxonomic_status, dtype=pl.String)
        )
    ).item()
    return None if value is None else Bucket(value)


def bucket_key_expr() -> pl.Expr:
    """
    The key a classified taxon contributes to its bucket's key set.

    Species contribute their species key; other buckets contribute the
    backbone key of the taxon itself. Missing keys fall back to the row `key`.
    """
    return (
        pl.when(pl.col("bucket") == Bucket.SPECIES.value)
        .then(pl.coalesce("speciesKey", "backboneTaxonKey", "key"))
        .otherwise(pl.coalesce("backboneTaxonKey", "key"))
        .cast(pl.Int64())
    )


def with_bucket_columns(taxa_df: pl.DataFrame) -> pl.DataFrame:
    """Add the `bucket` of every taxon and the `bucketKey` it contributes (null if unclassified)."""
    return taxa_df.with_columns(bucket=classify_taxa_expr()).with_columns(
        bucketKey=pl.when(pl.col("bucket").is_not_null()).then(bucket_key_expr())
    )


class ClassificationReport(NamedTuple):
    """Taxa of interest that could not be placed in any bucket."""

    total: int
    missing_rank_or_status: list[TaxonKey]
    unclassified: list[TaxonKey]

    @property
    def excluded(self) -> int:
        return len(self.missing_rank_or_status) + len(self.unclassified)

    @property
    def classified(self) -> int:
        return self.total - self.excluded


class TaxonBucketSchema(dy.Schema):
    """
    The key sets of the three buckets. Each key belongs to exactly one bucket.
    """

    key = dy.Int64(nullable=False, primary_key=True)
    bucket = dy.Enum(BUCKET_VALUES, nullable=False)

    @classmethod
    def build(
        cls, taxa_df: dy.DataFrame[TaxaOfInterestSchema]
    ) -> tuple[dy.DataFrame["TaxonBucketSchema"], ClassificationReport]:
        classified = with_bucket_columns(taxa_df)

        missing = classified.filter(
            pl.col("rank").is_null() | pl.col("taxonomicStatus").is_null()
        )
        unclassified = classified.filter(
            pl.col("bucket").is_null()
            & pl.col("rank").is_not_null()
            & pl.col("taxonomicStatus").is_not_null()
        )

        for row in missing.iter_rows(named=True):
            logger.warning(
                f"Taxon {row['key']} ({row['scientificName']}) has no rank or "
                f"taxonomic status and is excluded from the cube"
            )
        for row in unclassified.iter_rows(named=True):
            logger.warning(
                f"Taxon {row['key']} ({row['scientificName']}) with rank "
                f"{row['rank']} and status {row['taxonomicStatus']} matches no "
                f"bucket and is excluded from the cube"
            )

        df = (
            classified.filter(pl.col("bucket").is_not_null())
            .select(key=pl.col("bucketKey"), bucket=pl.col("bucket"))
            .unique(maintain_order=True)
            .sort("bucket", "key")
        )

        check_disjoint_keys(
            {bucket: bucket_keys(df, bucket) for bucket in Bucket}
        )

        report = ClassificationReport(
            total=taxa_df.height,
            missing_rank_or_status=missing["key"].to_list(),
            unclassified=unclassified["key"].to_list(),
        )
        logger.info(
            f"Classified {report.classified} of {report.total} taxa of interest"
        )

        return cls.validate(df), report


def bucket_keys(bucket_df: pl.DataFrame, bucket: Bucket) -> list[TaxonKey]:
    return (
        bucket_df.filter(pl.col("bucket") == bucket.value)
        .get_column("key")
        .sort()
        .to_list()
    )
