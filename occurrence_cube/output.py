"""
Output module for managing file paths and writing the cube tables.

This module centralizes output directory management and path standardization
to ensure consistent output file handling across the project.
"""

import logging
import os

import dataframely as dy

from occurrence_cube.dataframes.occurrence_cube import OccurrenceCubeSchema
from occurrence_cube.dataframes.taxon_mapping import TaxonMappingSchema
from occurrence_cube.defaults import OUTPUT_SEPARATOR

logger = logging.getLogger(__name__)

# Default output directory
OUTPUT_DIR = "output"


def normalize_path(path: str) -> str:
    """
    Normalize a path to ensure it's in the output directory if it doesn't have a directory component.

    Args:
        path: The path to normalize

    Returns:
        The normalized path
    """
    if not path.startswith(f"{OUTPUT_DIR}/") and not os.path.dirname(path):
        return os.path.join(OUTPUT_DIR, path)
    return path


def prepare_file_path(path: str) -> str:
    """
    Prepare a file path for writing by ensuring its directory exists.

    Args:
        path: The path to prepare

    Returns:
        The same path after ensuring its directory exists
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return path


def write_cube(
    cube_df: dy.DataFrame[OccurrenceCubeSchema],
    output_path: str,
    separator: str = OUTPUT_SEPARATOR,
) -> None:
    """
    Writes the occurrence cube as delimited text. Nulls are written as empty fields.
    """
    output_file = prepare_file_path(output_path)
    cube_df.write_csv(output_file, separator=separator, null_value="")
    logger.info(f"Wrote {cube_df.height} cube cells to {output_file}")


def write_taxon_mapping(
    mapping_df: dy.DataFrame[TaxonMappingSchema],
    output_path: str,
    separator: str = OUTPUT_SEPARATOR,
) -> None:
    """
    Writes the taxon mapping table as delimited text. Nulls are written as empty fields.
    """
    output_file = prepare_file_path(output_path)
    mapping_df.write_csv(output_file, separator=separator, null_value="")
    logger.info(f"Wrote {mapping_df.height} taxa to {output_file}")
