import logging
import sys

from occurrence_cube import output
from occurrence_cube.cli import PipelineConfig, parse_args
from occurrence_cube.dataframes.occurrence import OccurrenceSchema
from occurrence_cube.dataframes.taxa_of_interest import TaxaOfInterestSchema
from occurrence_cube.pipeline import build_occurrence_cube
from occurrence_cube.summary import format_summary
from occurrence_cube.taxonomy_lookup import CachedTaxonomyLookup, GbifTaxonomyLookup


def run(config: PipelineConfig) -> None:
    # Normalize paths to ensure bare file names land in the output directory
    log_file = output.normalize_path(config.log_file)
    cube_file = output.normalize_path(config.cube_file)
    taxa_output_file = output.normalize_path(config.taxa_output_file)

    output.prepare_file_path(log_file)

    logging.basicConfig(filename=log_file, encoding="utf-8", level=logging.INFO)

    taxa_df = TaxaOfInterestSchema.from_csv(
        config.taxa_file, separator=config.taxa_separator
    )

    if config.occurrence_file.endswith(".parquet"):
        occurrence_lf = OccurrenceSchema.from_parquet(config.occurrence_file)
    else:
        occurrence_lf = OccurrenceSchema.from_csv(
            config.occurrence_file, separator=config.separator
        )

    lookup = CachedTaxonomyLookup(
        GbifTaxonomyLookup(
            api_url=config.api_url,
            timeout=config.lookup_timeout,
            retries=config.lookup_retries,
        )
    )

    result = build_occurrence_cube(
        taxa_df,
        occurrence_lf,
        lookup,
        max_workers=config.max_workers,
        deadline=config.deadline,
    )

    output.write_cube(result.cube_df, cube_file)
    output.write_taxon_mapping(result.mapping_df, taxa_output_file)

    summary_text = format_summary(result.summary)
    logging.info(summary_text)
    print(summary_text)


def main() -> None:
    run(parse_args(sys.argv[1:]))


if __name__ == "__main__":
    main()
