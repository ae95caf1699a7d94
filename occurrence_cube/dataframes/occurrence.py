"""GBIF occurrence data schema.

This module defines the schema for the occurrence records that feed the
cube, together with readers for GBIF CSV downloads and Parquet snapshots.
"""

import logging
from pathlib import Path
from typing import Union

import dataframely as dy
import polars as pl

from occurrence_cube.column_types import infer_schema_from_columns
from occurrence_cube.defaults import OCCURRENCE_SEPARATOR

logger = logging.getLogger(__name__)


def get_parquet_to_darwin_core_column_mapping() -> dict[str, str]:
    """
    Get the mapping from lowercase column names (used in parquet snapshots)
    to camelCase column names (Darwin Core standard).

    Returns:
        Dictionary mapping lowercase column names to camelCase column names
    """
    return {
        "taxonkey": "taxonKey",
        "specieskey": "speciesKey",
        "acceptedtaxonkey": "acceptedTaxonKey",
        "scientificname": "scientificName",
        "acceptedscientificname": "acceptedScientificName",
        "taxonrank": "taxonRank",
        "taxonomicstatus": "taxonomicStatus",
        "coordinateuncertaintyinmeters": "coordinateUncertaintyInMeters",
        "decimallatitude": "decimalLatitude",
        "decimallongitude": "decimalLongitude",
        "eeacellcode": "eea_cell_code",
        "datasetkey": "datasetKey",
        "gbifid": "gbifID",
    }


def scan_occurrence_csv(
    path: Union[str, Path], separator: str = OCCURRENCE_SEPARATOR
) -> pl.LazyFrame:
    """Scan a GBIF occurrence download lazily.

    Column types are inferred from the header names rather than the data.

    Args:
        path: Path to the delimited occurrence file.
        separator: Field separator, tab for GBIF downloads.

    Returns:
        A Polars LazyFrame containing the occurrence data.
    """
    columns = (
        pl.scan_csv(path, separator=separator, quote_char=None, infer_schema=False)
        .collect_schema()
        .names()
    )
    return pl.scan_csv(
        path,
        separator=separator,
        quote_char=None,
        schema=infer_schema_from_columns(columns),
        low_memory=True,
    )


def scan_occurrence_parquet(path: Union[str, Path]) -> pl.LazyFrame:
    """Scan a GBIF occurrence Parquet snapshot lazily, renaming columns to camelCase."""
    return pl.scan_parquet(path, low_memory=True).rename(
        get_parquet_to_darwin_core_column_mapping(),
        strict=False,
    )


class OccurrenceSchema(dy.Schema):
    """Schema for occurrence records.

    Only the columns needed to build the cube are kept. Every column is
    nullable: rows lacking a year, cell code or grouping key are dropped at
    aggregation time, not here. Uncertainty values are kept as reported,
    including negative, infinite and NaN values.
    """

    year = dy.Int64(nullable=True)
    eea_cell_code = dy.String(nullable=True)
    taxonKey = dy.Int64(nullable=True)
    acceptedTaxonKey = dy.Int64(nullable=True)
    speciesKey = dy.Int64(nullable=True)
    scientificName = dy.String(nullable=True)
    coordinateUncertaintyInMeters = dy.Float64(
        nullable=True, allow_inf=True, allow_nan=True
    )

    @classmethod
    def build_lf(cls, occurrence_lf: pl.LazyFrame) -> dy.LazyFrame["OccurrenceSchema"]:
        """Build a validated occurrence lazyframe.

        Columns missing from the input are added as nulls so downstream
        buckets can still run (and come out empty).

        Args:
            occurrence_lf: A LazyFrame with GBIF occurrence columns.

        Returns:
            A validated LazyFrame conforming to OccurrenceSchema.
        """
        available = set(occurrence_lf.collect_schema().names())
        missing = [column for column in cls.columns().keys() if column not in available]
        if missing:
            logger.warning(f"Occurrence data is missing columns {missing}")

        lf = occurrence_lf.with_columns(
            pl.lit(None).alias(column) for column in missing
        ).select(
            pl.col("year").cast(pl.Int64()),
            pl.col("eea_cell_code").cast(pl.String()),
            pl.col("taxonKey").cast(pl.Int64()),
            pl.col("acceptedTaxonKey").cast(pl.Int64()),
            pl.col("speciesKey").cast(pl.Int64()),
            pl.col("scientificName").cast(pl.String()),
            pl.col("coordinateUncertaintyInMeters").cast(pl.Float64()),
        )

        return cls.validate(lf, eager=False)

    @classmethod
    def from_csv(
        cls, path: Union[str, Path], separator: str = OCCURRENCE_SEPARATOR
    ) -> dy.LazyFrame["OccurrenceSchema"]:
        return cls.build_lf(scan_occurrence_csv(path, separator=separator))

    @classmethod
    def from_parquet(cls, path: Union[str, Path]) -> dy.LazyFrame["OccurrenceSchema"]:
        return cls.build_lf(scan_occurrence_parquet(path))
