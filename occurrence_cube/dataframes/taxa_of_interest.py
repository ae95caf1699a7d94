import logging
from pathlib import Path
from typing import Union

import dataframely as dy
import polars as pl

from occurrence_cube.column_types import infer_schema_from_columns

logger = logging.getLogger(__name__)

OPTIONAL_COLUMNS: dict[str, pl.DataType] = {
    "backboneTaxonKey": pl.Int64(),
    "speciesKey": pl.Int64(),
    "scientificName": pl.String(),
}


class TaxaOfInterestSchema(dy.Schema):
    """
    The curated list of taxa a cube is built for. Rank and status are kept as
    free text: values outside the known vocabularies simply fail to classify.
    """

    key = dy.Int64(nullable=False)
    backboneTaxonKey = dy.Int64(nullable=True)
    speciesKey = dy.Int64(nullable=True)
    scientificName = dy.String(nullable=True)
    rank = dy.String(nullable=True)
    taxonomicStatus = dy.String(nullable=True)

    @classmethod
    def build(cls, taxa_df: pl.DataFrame) -> dy.DataFrame["TaxaOfInterestSchema"]:
        df = taxa_df.with_columns(
            pl.lit(None, dtype=dtype).alias(column)
            for column, dtype in OPTIONAL_COLUMNS.items()
            if column not in taxa_df.columns
        ).select(
            pl.col("key").cast(pl.Int64()),
            pl.col("backboneTaxonKey").cast(pl.Int64()),
            pl.col("speciesKey").cast(pl.Int64()),
            pl.col("scientificName").cast(pl.String()),
            pl.col("rank").cast(pl.String()),
            pl.col("taxonomicStatus").cast(pl.String()),
        )
        return cls.validate(df)

    @classmethod
    def from_csv(
        cls, path: Union[str, Path], separator: str | None = None
    ) -> dy.DataFrame["TaxaOfInterestSchema"]:
        """
        Read the taxa of interest from a delimited file.

        Args:
            path: Path to the taxon list
            separator: Field separator; detected from the header line if not given

        Returns:
            A validated DataFrame conforming to TaxaOfInterestSchema
        """
        if separator is None:
            separator = detect_separator(path)
        columns = (
            pl.scan_csv(path, separator=separator, infer_schema=False)
            .collect_schema()
            .names()
        )
        df = pl.read_csv(
            path,
            separator=separator,
            schema=infer_schema_from_columns(columns),
        )
        logger.info(f"Loaded {df.height} taxa of interest from {path}")
        return cls.build(df)


def detect_separator(path: Union[str, Path]) -> str:
    """Tab if the header line of `path` contains one, comma otherwise."""
    with open(path, encoding="utf-8") as f:
        header = f.readline()
    return "\t" if "\t" in header else ","
