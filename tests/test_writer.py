"""Tests for the event writer and the stored record layout."""

import logging
from unittest.mock import MagicMock

import pytest

from pixelcount.core.collect import classify
from pixelcount.core.models import BeaconRequest
from pixelcount.core.schema import (
    BLOB_FIELDS,
    COLUMN_MAPPINGS,
    DOUBLE_FIELDS,
    MAX_BLOBS,
    MAX_DOUBLES,
    UnknownColumnError,
    column,
)
from pixelcount.core.writer import EventWriter, to_stored_record

CHROME_LINUX = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/51.0.2704.103 Safari/537.36"
)


def _event(**params):
    query = {
        "sid": "example",
        "h": "example.com",
        "p": "/post/123",
        "r": "https://google.com",
        "us": "google",
        "um": "search",
        "uc": "summer_sale",
        "ut": "running_shoes",
        "uco": "ad1",
        "v": "1",
        "b": "1",
    }
    query.update(params)
    beacon = BeaconRequest.from_query(query, user_agent=CHROME_LINUX)
    event, _ = classify(beacon)
    return event


class TestStoredRecord:
    """Test the positional layout of a data point."""

    def test_full_layout(self):
        record = to_stored_record(_event(), {"country": "US"})

        assert record.indexes == ["example"]
        assert record.blobs == [
            "example.com",     # host
            CHROME_LINUX,      # user agent
            "/post/123",       # path
            "US",              # country
            "https://google.com",
            "Chrome",          # browser name
            "",                # device model
            "example",         # site id
            "51.x.x.x",        # browser version
            "desktop",         # device type
            "google",
            "search",
            "summer_sale",
            "running_shoes",
            "ad1",
        ]
        assert record.doubles == [1, 0, 1]

    def test_missing_optional_fields_stored_as_empty(self):
        beacon = BeaconRequest.from_query({"sid": "example", "v": "0", "b": "-1"})
        event, _ = classify(beacon)
        record = to_stored_record(event)

        assert len(record.blobs) == len(BLOB_FIELDS)
        assert record.blobs[BLOB_FIELDS.index("site_id")] == "example"
        assert all(blob == "" for i, blob in enumerate(record.blobs) if BLOB_FIELDS[i] != "site_id")
        assert record.doubles == [0, 0, -1]

    def test_extra_overrides_known_fields_only(self):
        record = to_stored_record(_event(), {"country": "CA", "not_a_field": "x"})
        assert record.blobs[BLOB_FIELDS.index("country")] == "CA"
        assert "x" not in record.blobs

    def test_index_truncated_to_96_bytes(self):
        record = to_stored_record(_event(sid="s" * 200))
        assert record.indexes == ["s" * 96]
        # blob keeps the full site id
        assert record.blobs[BLOB_FIELDS.index("site_id")] == "s" * 200

    def test_index_truncation_keeps_valid_utf8(self):
        # 3-byte characters: 96 bytes is exactly 32 of them
        record = to_stored_record(_event(sid="€" * 40))
        assert record.indexes == ["€" * 32]


class TestColumnMapping:
    def test_blob_positions(self):
        assert column("host") == "blob1"
        assert column("country") == "blob4"
        assert column("site_id") == "blob8"
        assert column("utm_content") == "blob15"

    def test_double_positions(self):
        assert column("new_visitor") == "double1"
        assert column("new_session") == "double2"
        assert column("bounce") == "double3"

    def test_unknown_column(self):
        with pytest.raises(UnknownColumnError):
            column("password")

    def test_mapping_is_read_only(self):
        with pytest.raises(TypeError):
            COLUMN_MAPPINGS["host"] = "blob2"

    def test_layout_within_store_limits(self):
        assert len(BLOB_FIELDS) <= MAX_BLOBS
        assert len(DOUBLE_FIELDS) <= MAX_DOUBLES
        assert len(COLUMN_MAPPINGS) == len(BLOB_FIELDS) + len(DOUBLE_FIELDS)


class TestEventWriter:
    """Test writing to the dataset handle."""

    def test_writes_data_point(self):
        dataset = MagicMock()
        writer = EventWriter(dataset)

        writer.write(_event(), {"country": "US"})

        dataset.write_data_point.assert_called_once()
        data_point = dataset.write_data_point.call_args[0][0]
        assert data_point["indexes"] == ["example"]
        assert data_point["blobs"][3] == "US"
        assert data_point["doubles"] == [1, 0, 1]

    def test_no_dataset_logs_and_drops(self, caplog):
        writer = EventWriter(None)

        with caplog.at_level(logging.WARNING, logger="pixelcount.core.writer"):
            record = writer.write(_event())

        assert "Can't save datapoint: Analytics unavailable" in caplog.text
        assert record.indexes == ["example"]

    def test_dataset_errors_propagate(self):
        dataset = MagicMock()
        dataset.write_data_point.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(RuntimeError):
            EventWriter(dataset).write(_event())
