"""Centralized default configuration values for the occurrence cube pipeline.

These defaults are used by CLI argument parsing as fallbacks when arguments
aren't provided, and by the taxonomy lookup when constructed without options.
"""

# Input defaults
OCCURRENCE_SEPARATOR = "\t"
LOG_FILE = "run.log"

# Output defaults
CUBE_FILENAME = "cube.csv"
TAXON_MAPPING_FILENAME = "taxa.csv"
OUTPUT_SEPARATOR = ","

# Taxonomy lookup defaults
GBIF_API_URL = "https://api.gbif.org/v1"
LOOKUP_TIMEOUT_SECONDS = 30.0
LOOKUP_RETRIES = 3
LOOKUP_MAX_WORKERS = 8
# Deadline for resolving metadata of every key in a run
LOOKUP_DEADLINE_SECONDS: float | None = 600.0
USER_AGENT = "OccurrenceCube/1.0"
