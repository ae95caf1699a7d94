"""Column type inference for GBIF occurrence downloads.

GBIF "simple" and Darwin Core downloads carry no type information, and
letting polars guess from a sample mis-types sparse columns. Types are
therefore derived from the column names alone.
"""

import polars as pl

from occurrence_cube.constants import TEXT_KEY_COLUMNS

INTEGER_COLUMNS: frozenset[str] = frozenset({"year", "month", "day"})
FLOAT_COLUMNS: frozenset[str] = frozenset({"pointRadiusSpatialFit"})
FLOAT_PREFIXES: tuple[str, ...] = ("decimal", "coordinate")


def infer_column_type(column: str) -> pl.DataType:
    """
    Infer the polars data type of a column from its name.

    Args:
        column: A Darwin Core / GBIF column name, e.g. `speciesKey`

    Returns:
        `Int64` for taxon keys, day-of-year and date part columns, `Float64`
        for coordinate columns, `String` for everything else
    """
    if column.endswith("Key") and column not in TEXT_KEY_COLUMNS:
        return pl.Int64()
    if column.endswith("DayOfYear") or column in INTEGER_COLUMNS:
        return pl.Int64()
    if column.startswith(FLOAT_PREFIXES) or column in FLOAT_COLUMNS:
        return pl.Float64()
    return pl.String()


def infer_schema_from_columns(columns: list[str]) -> dict[str, pl.DataType]:
    return {column: infer_column_type(column) for column in columns}
