import dataframely as dy
import polars as pl

from occurrence_cube.dataframes.occurrence import OccurrenceSchema

OCCURRENCE_SCHEMA = {
    "year": pl.Int64(),
    "eea_cell_code": pl.String(),
    "taxonKey": pl.Int64(),
    "acceptedTaxonKey": pl.Int64(),
    "speciesKey": pl.Int64(),
    "scientificName": pl.String(),
    "coordinateUncertaintyInMeters": pl.Float64(),
}


def occurrence_lazyframe(
    rows: list[tuple],
) -> dy.LazyFrame[OccurrenceSchema]:
    """
    Build an occurrence lazyframe from
    (year, cell, taxonKey, acceptedTaxonKey, speciesKey, name, uncertainty) tuples.
    """
    df = pl.DataFrame(rows, schema=OCCURRENCE_SCHEMA, orient="row")
    return OccurrenceSchema.build_lf(df.lazy())


def mock_occurrence_lazyframe() -> dy.LazyFrame[OccurrenceSchema]:
    """
    Occurrences matching `mock_taxa_of_interest_dataframe`.

    Expected cube, by (year, cell, taxonKey):
    - (2020, E1, 1): 4 occurrences, min uncertainty 5
    - (2020, E1, 20): 1 occurrence, min uncertainty 5
    - (2020, E3, 1): 1 occurrence, min uncertainty 100
    - (2020, E3, 20): 1 occurrence, min uncertainty 100
    - (2021, E2, 1): 1 occurrence, no uncertainty
    - (2022, E1, 5): 1 occurrence, no uncertainty
    - (2022, E1, 99): 1 occurrence, min uncertainty 50
    """
    return occurrence_lazyframe(
        [
            (2020, "E1", 1, 1, 1, "Vespa velutina", 30.0),
            (2020, "E1", 1, 1, 1, "Vespa velutina", 10.0),
            (2020, "E1", 11, 1, 1, "Vespa velutina auct.", None),
            (2021, "E2", 1, 1, 1, "Vespa velutina", None),
            (2020, "E1", 20, 20, 1, "Vespa velutina nigrithorax", 5.0),
            (2020, "E3", 21, 20, 1, "Vespa velutina var. nigrithorax", 100.0),
            (2022, "E1", 7, 7, 3, "Fallopia japonica var. compacta", None),
            (2022, "E1", 99, 4, 4, "Reynoutria japonica", 50.0),
            (None, "E1", 1, 1, 1, "Vespa velutina", 1.0),
            (2019, "E9", 500, 500, 500, "Unrelated species", 1.0),
        ]
    )
