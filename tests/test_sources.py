"""Unit tests for data ingestion using unittest framework."""

import json
import unittest

import pandas as pd

from cellhealth.data.sources import (
    DataSource,
    ExampleSource,
    dataset_records,
    load_upload,
    parse_csv,
    parse_json,
    require_columns,
    serialize_csv,
    split_dataset,
)
from cellhealth.errors import MissingColumnsError, ParseError, SizeLimitError


class TestParseCsv(unittest.TestCase):
    """Tests for delimited text parsing."""

    def test_numeric_values(self) -> None:
        """Numeric cells should be converted and blank lines skipped."""
        df = parse_csv("voltage_measured,capacity\n3.9,1.8\n\n4.0,1.7\n")
        self.assertEqual(list(df.columns), ["voltage_measured", "capacity"])
        self.assertEqual(len(df), 2)
        self.assertEqual(df.loc[1, "voltage_measured"], 4.0)
        self.assertEqual(df.loc[0, "capacity"], 1.8)

    def test_header_names_trimmed(self) -> None:
        """Whitespace around header names should be removed."""
        df = parse_csv(" a , b\n1,2\n")
        self.assertEqual(list(df.columns), ["a", "b"])
        self.assertEqual(df.loc[0, "a"], 1)

    def test_text_values_kept(self) -> None:
        """Cells that do not parse as numbers should stay text."""
        df = parse_csv("id,val\nA1,1\n2,x\n")
        self.assertEqual(df.loc[0, "id"], "A1")
        self.assertEqual(df.loc[1, "id"], 2)
        self.assertEqual(df.loc[0, "val"], 1)
        self.assertEqual(df.loc[1, "val"], "x")

    def test_round_trip_numeric(self) -> None:
        """parse_csv(serialize_csv(df)) should reproduce a numeric table."""
        df = pd.DataFrame(
            {
                "cycle": [1, 2, 3],
                "capacity": [1.85, 1.8, 1.7512345678901234],
                "time": [0.0, 2.5e3, 1e-3],
            }
        )
        pd.testing.assert_frame_equal(parse_csv(serialize_csv(df)), df)

    def test_empty_text(self) -> None:
        with self.assertRaises(ParseError):
            parse_csv("   \n")


class TestParseJson(unittest.TestCase):
    """Tests for structured record parsing."""

    def test_list_of_records(self) -> None:
        df = parse_json(json.dumps([{"capacity": 1.8}, {"capacity": 1.7}]))
        self.assertEqual(df["capacity"].tolist(), [1.8, 1.7])

    def test_data_wrapper(self) -> None:
        df = parse_json(json.dumps({"data": [{"capacity": 1.8}]}))
        self.assertEqual(len(df), 1)

    def test_rejects_non_list(self) -> None:
        with self.assertRaises(ParseError):
            parse_json(json.dumps({"capacity": 1.8}))
        with self.assertRaises(ParseError):
            parse_json(json.dumps([1, 2]))

    def test_rejects_invalid_json(self) -> None:
        with self.assertRaises(ParseError):
            parse_json("{not json")


class TestLoadUpload(unittest.TestCase):
    """Tests for upload dispatch and the size limit."""

    def test_csv_upload(self) -> None:
        df = load_upload("data.CSV", b"capacity\n1.8\n")
        self.assertEqual(len(df), 1)

    def test_json_upload(self) -> None:
        df = load_upload("data.json", b'[{"capacity": 1.8}]')
        self.assertEqual(len(df), 1)

    def test_size_limit_checked_first(self) -> None:
        """Oversized files should be rejected before the format is inspected."""
        with self.assertRaises(SizeLimitError):
            load_upload("data.txt", b"x" * 11, max_bytes=10)

    def test_unsupported_format(self) -> None:
        with self.assertRaises(ParseError):
            load_upload("data.txt", b"capacity\n1.8\n")

    def test_invalid_encoding(self) -> None:
        with self.assertRaises(ParseError):
            load_upload("data.csv", b"\xff\xfe\x00bad")


class TestSplitDataset(unittest.TestCase):
    """Tests for the ordered train/test split."""

    def setUp(self) -> None:
        self.df = pd.DataFrame({"capacity": [1.9, 1.8, 1.7, 1.6, 1.5, 1.4, 1.3]})

    def test_lengths_and_prefix(self) -> None:
        """Train should be a prefix and both parts should cover every row."""
        for ratio in [0.0, 0.1, 0.25, 0.5, 0.8, 0.99, 1.0]:
            split = split_dataset(self.df, ratio)
            self.assertEqual(len(split.train) + len(split.test), len(self.df))
            pd.testing.assert_frame_equal(split.train, self.df.iloc[: len(split.train)].reset_index(drop=True))
            pd.testing.assert_frame_equal(split.test, self.df.iloc[len(split.train) :].reset_index(drop=True))

    def test_default_ratio(self) -> None:
        split = split_dataset(self.df)
        self.assertEqual(len(split.train), 5)  # floor(7 * 0.8)

    def test_invalid_ratio(self) -> None:
        with self.assertRaises(ValueError):
            split_dataset(self.df, 1.5)


class TestSources(unittest.TestCase):
    """Tests for DataSource implementations."""

    def test_example_source_columns(self) -> None:
        """ExampleSource.load should return the discharge columns."""
        df = ExampleSource(n_cycles=10, samples_per_cycle=3).load()
        self.assertIsInstance(df, pd.DataFrame)
        self.assertEqual(len(df), 30)
        require_columns(
            df,
            ["voltage_measured", "current_measured", "temperature_measured", "time", "cycle", "capacity"],
        )

    def test_example_source_reproducible(self) -> None:
        pd.testing.assert_frame_equal(
            ExampleSource(n_cycles=5, random_state=3).load(),
            ExampleSource(n_cycles=5, random_state=3).load(),
        )

    def test_base_source_not_implemented(self) -> None:
        with self.assertRaises(NotImplementedError):
            DataSource().load()

    def test_require_columns(self) -> None:
        with self.assertRaises(MissingColumnsError) as ctx:
            require_columns(pd.DataFrame({"a": [1]}), ["a", "capacity"])
        self.assertEqual(ctx.exception.missing, ["capacity"])

    def test_dataset_records(self) -> None:
        records = dataset_records(pd.DataFrame({"a": [1.0, float("nan")], "b": ["x", "y"]}))
        self.assertEqual(records, [{"a": 1.0, "b": "x"}, {"a": None, "b": "y"}])


if __name__ == "__main__":
    unittest.main()
