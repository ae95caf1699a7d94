"""Constants for occurrence cube processing.

This module defines the taxonomic ranks, statuses and column names used when
classifying taxa of interest and aggregating GBIF occurrence data into cubes.
"""

# Statuses treated as "accepted" by the GBIF backbone taxonomy. Any other
# status (SYNONYM, HETEROTYPIC_SYNONYM, PROPARTE_SYNONYM, ...) is a synonym.
ACCEPTED_STATUS_VALUES: list[str] = [
    "ACCEPTED",
    "DOUBTFUL",
]

SPECIES_RANK = "SPECIES"

# Ranks below species that roll up to an accepted infraspecific taxon
INFRASPECIFIC_RANK_VALUES: list[str] = [
    "SUBSPECIFICAGGREGATE",
    "SUBSPECIES",
    "VARIETY",
    "SUBVARIETY",
    "FORM",
    "SUBFORM",
]

# Columns that identify a cube cell apart from the taxon
YEAR_COLUMN = "year"
CELL_CODE_COLUMN = "eea_cell_code"

# Shared name of the taxon dimension in the merged cube and mapping table
TAXON_KEY_COLUMN = "taxonKey"

UNCERTAINTY_COLUMN = "coordinateUncertaintyInMeters"

# Separator between "<key>: <name>" entries of the `includes` column
INCLUDES_SEPARATOR = " | "

# Key-like columns that are identifiers of datasets or organisations rather
# than taxa. These hold UUIDs and must stay text.
TEXT_KEY_COLUMNS: frozenset[str] = frozenset(
    {
        "datasetKey",
        "publishingOrgKey",
        "installationKey",
        "networkKey",
        "hostingOrganizationKey",
        "programmeKey",
    }
)
