import unittest
import warnings

import polars as pl

from occurrence_cube.dataframes.occurrence_cube import (
    aggregate_bucket_lf,
    reaggregate_cube_df,
)
from test.fixtures.occurrence import mock_occurrence_lazyframe, occurrence_lazyframe


class TestAggregateBucketLf(unittest.TestCase):
    def test_species_scenario(self):
        occurrence_lf = occurrence_lazyframe(
            [
                (2020, "E1", 1, 1, 1, "Vespa velutina", 30.0),
                (2020, "E1", 1, 1, 1, "Vespa velutina", 10.0),
            ]
        )
        df = aggregate_bucket_lf(occurrence_lf, [1], "speciesKey").collect()

        self.assertEqual(
            df.rows(),
            [(2020, "E1", 1, 2, 10.0)],
        )
        self.assertEqual(
            df.columns,
            ["year", "eea_cell_code", "speciesKey", "count", "min_uncertainty"],
        )
        self.assertEqual(df.schema["count"], pl.UInt32)

    def test_species_bucket(self):
        df = aggregate_bucket_lf(
            mock_occurrence_lazyframe(), [1], "speciesKey"
        ).collect()

        self.assertEqual(
            df.rows(),
            [
                (2020, "E1", 1, 4, 5.0),
                (2020, "E3", 1, 1, 100.0),
                (2021, "E2", 1, 1, None),
            ],
        )

    def test_infraspecific_bucket_groups_on_accepted_key(self):
        df = aggregate_bucket_lf(
            mock_occurrence_lazyframe(), [7, 20], "acceptedTaxonKey"
        ).collect()

        self.assertEqual(
            df.rows(),
            [
                (2020, "E1", 20, 1, 5.0),
                (2020, "E3", 20, 1, 100.0),
                (2022, "E1", 7, 1, None),
            ],
        )

    def test_synonym_bucket_groups_on_taxon_key(self):
        df = aggregate_bucket_lf(
            mock_occurrence_lazyframe(), [99], "taxonKey"
        ).collect()

        self.assertEqual(df.rows(), [(2022, "E1", 99, 1, 50.0)])

    def test_all_null_uncertainty_stays_null(self):
        occurrence_lf = occurrence_lazyframe(
            [
                (2020, "E1", 3, 3, 3, "A", None),
                (2020, "E1", 3, 3, 3, "A", None),
            ]
        )
        df = aggregate_bucket_lf(occurrence_lf, [3], "taxonKey").collect()

        self.assertEqual(df["count"].to_list(), [2])
        self.assertEqual(df["min_uncertainty"].to_list(), [None])

    def test_zero_uncertainty_is_kept(self):
        occurrence_lf = occurrence_lazyframe(
            [
                (2020, "E1", 3, 3, 3, "A", 0.0),
                (2020, "E1", 3, 3, 3, "A", None),
            ]
        )
        df = aggregate_bucket_lf(occurrence_lf, [3], "taxonKey").collect()

        self.assertEqual(df["min_uncertainty"].to_list(), [0.0])

    def test_empty_key_set(self):
        df = aggregate_bucket_lf(
            mock_occurrence_lazyframe(), [], "speciesKey"
        ).collect()

        self.assertTrue(df.is_empty())
        self.assertEqual(
            df.columns,
            ["year", "eea_cell_code", "speciesKey", "count", "min_uncertainty"],
        )

    def test_key_filter_emits_no_deprecation_warning(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            df = aggregate_bucket_lf(
                mock_occurrence_lazyframe(), [1, 20], "acceptedTaxonKey"
            ).collect()

        self.assertEqual(df["acceptedTaxonKey"].unique().sort().to_list(), [1, 20])

    def test_no_matching_occurrences(self):
        df = aggregate_bucket_lf(
            mock_occurrence_lazyframe(), [123456], "taxonKey"
        ).collect()

        self.assertTrue(df.is_empty())

    def test_rows_without_year_or_cell_are_skipped(self):
        occurrence_lf = occurrence_lazyframe(
            [
                (None, "E1", 3, 3, 3, "A", 1.0),
                (2020, None, 3, 3, 3, "A", 1.0),
                (2020, "E1", 3, 3, 3, "A", 2.0),
            ]
        )
        df = aggregate_bucket_lf(occurrence_lf, [3], "taxonKey").collect()

        self.assertEqual(df.rows(), [(2020, "E1", 3, 1, 2.0)])

    def test_output_is_sorted(self):
        occurrence_lf = occurrence_lazyframe(
            [
                (2021, "B", 2, 2, 2, "B", None),
                (2020, "B", 1, 1, 1, "A", None),
                (2020, "A", 2, 2, 2, "B", None),
                (2020, "A", 1, 1, 1, "A", None),
            ]
        )
        df = aggregate_bucket_lf(occurrence_lf, [1, 2], "taxonKey").collect()

        self.assertEqual(
            df.select("year", "eea_cell_code", "taxonKey").rows(),
            [(2020, "A", 1), (2020, "A", 2), (2020, "B", 1), (2021, "B", 2)],
        )


class TestReaggregateCubeDf(unittest.TestCase):
    def _cube_df(self) -> pl.DataFrame:
        return pl.DataFrame(
            {
                "year": [2020, 2020, 2021],
                "eea_cell_code": ["E1", "E1", "E1"],
                "acceptedTaxonKey": [7, 8, 7],
                "count": [2, 3, 1],
                "min_uncertainty": [10.0, None, None],
            },
            schema={
                "year": pl.Int64(),
                "eea_cell_code": pl.String(),
                "acceptedTaxonKey": pl.Int64(),
                "count": pl.UInt32(),
                "min_uncertainty": pl.Float64(),
            },
        )

    def test_collapsed_keys_are_combined(self):
        remapping_df = pl.DataFrame({"key": [7, 8], "canonicalKey": [5, 5]})
        df = reaggregate_cube_df(self._cube_df(), remapping_df, "acceptedTaxonKey")

        self.assertEqual(
            df.rows(),
            [(2020, "E1", 5, 5, 10.0), (2021, "E1", 5, 1, None)],
        )
        self.assertEqual(df.schema["count"], pl.UInt32)

    def test_identity_remapping_is_a_no_op(self):
        cube_df = self._cube_df()
        remapping_df = pl.DataFrame({"key": [7, 8], "canonicalKey": [7, 8]})
        df = reaggregate_cube_df(cube_df, remapping_df, "acceptedTaxonKey")

        self.assertTrue(df.equals(cube_df))

    def test_unlisted_keys_are_kept(self):
        remapping_df = pl.DataFrame({"key": [8], "canonicalKey": [9]})
        df = reaggregate_cube_df(self._cube_df(), remapping_df, "acceptedTaxonKey")

        self.assertEqual(
            df["acceptedTaxonKey"].to_list(),
            [7, 9, 7],
        )


if __name__ == "__main__":
    unittest.main()
