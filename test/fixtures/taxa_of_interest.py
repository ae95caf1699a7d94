import dataframely as dy
import polars as pl

from occurrence_cube.dataframes.taxa_of_interest import TaxaOfInterestSchema


def mock_taxa_of_interest_dataframe() -> dy.DataFrame[TaxaOfInterestSchema]:
    """
    Creates a mock taxa of interest list covering every bucket.

    - 1: accepted species (species bucket, key 1)
    - 20: accepted subspecies (infraspecific bucket, key 20)
    - 7: doubtful variety whose backbone key is a synonym of 5
      (infraspecific bucket, key 7, remapped to 5)
    - 99: synonym (synonym bucket, key 99)
    - 300: accepted genus (matches no bucket)
    - 400: no rank (excluded)
    """
    taxa_data = [
        {
            "key": 1,
            "backboneTaxonKey": None,
            "speciesKey": 1,
            "scientificName": "Vespa velutina",
            "rank": "SPECIES",
            "taxonomicStatus": "ACCEPTED",
        },
        {
            "key": 20,
            "backboneTaxonKey": 20,
            "speciesKey": 1,
            "scientificName": "Vespa velutina nigrithorax",
            "rank": "SUBSPECIES",
            "taxonomicStatus": "ACCEPTED",
        },
        {
            "key": 70,
            "backboneTaxonKey": 7,
            "speciesKey": 3,
            "scientificName": "Fallopia japonica var. compacta",
            "rank": "VARIETY",
            "taxonomicStatus": "DOUBTFUL",
        },
        {
            "key": 99,
            "backboneTaxonKey": None,
            "speciesKey": 4,
            "scientificName": "Reynoutria japonica",
            "rank": "SPECIES",
            "taxonomicStatus": "SYNONYM",
        },
        {
            "key": 300,
            "backboneTaxonKey": 300,
            "speciesKey": None,
            "scientificName": "Vespa",
            "rank": "GENUS",
            "taxonomicStatus": "ACCEPTED",
        },
        {
            "key": 400,
            "backboneTaxonKey": 400,
            "speciesKey": None,
            "scientificName": "Unknown",
            "rank": None,
            "taxonomicStatus": "ACCEPTED",
        },
    ]
    schema = {
        "key": pl.Int64(),
        "backboneTaxonKey": pl.Int64(),
        "speciesKey": pl.Int64(),
        "scientificName": pl.String(),
        "rank": pl.String(),
        "taxonomicStatus": pl.String(),
    }
    return TaxaOfInterestSchema.validate(pl.DataFrame(taxa_data, schema=schema))
