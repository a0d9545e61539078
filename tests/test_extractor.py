import json
from datetime import datetime, timezone

from tokenmeter.extractor import USAGE_SEARCH_LIMIT, extract, parse_timestamp

TS = "2026-02-14T03:46:50.563Z"


class TestExtractDirectPath:
    def test_parses_common_shape(self) -> "None":
        line = json.dumps(
            {
                "type": "assistant",
                "timestamp": TS,
                "message": {
                    "id": "msg_01",
                    "usage": {
                        "input_tokens": 100,
                        "output_tokens": 50,
                        "cache_creation_input_tokens": 1000,
                        "cache_read_input_tokens": 2000,
                    },
                },
            }
        )
        record = extract(line)
        assert record is not None
        assert record.identifier == "msg_01"
        assert record.input_tokens == 100
        assert record.output_tokens == 50
        assert record.cache_creation_tokens == 1000
        assert record.cache_read_tokens == 2000
        assert record.timestamp == datetime(
            2026, 2, 14, 3, 46, 50, 563000, tzinfo=timezone.utc
        )

    def test_missing_fields_default_to_zero(self) -> "None":
        line = json.dumps(
            {
                "timestamp": TS,
                "message": {"id": "msg_02", "usage": {"output_tokens": 7}},
            }
        )
        record = extract(line)
        assert record is not None
        assert record.input_tokens == 0
        assert record.output_tokens == 7
        assert record.cache_creation_tokens == 0
        assert record.cache_read_tokens == 0

    def test_cache_creation_from_ephemeral_breakdown(self) -> "None":
        line = json.dumps(
            {
                "timestamp": TS,
                "message": {
                    "id": "msg_03",
                    "usage": {
                        "input_tokens": 1,
                        "cache_creation": {
                            "ephemeral_5m_input_tokens": 300,
                            "ephemeral_1h_input_tokens": 200,
                        },
                    },
                },
            }
        )
        record = extract(line)
        assert record is not None
        assert record.cache_creation_tokens == 500

    def test_falls_back_to_top_level_uuid(self) -> "None":
        line = json.dumps(
            {
                "timestamp": TS,
                "uuid": "u-1",
                "message": {"usage": {"input_tokens": 5}},
            }
        )
        record = extract(line)
        assert record is not None
        assert record.identifier == "u-1"

    def test_numeric_strings_and_floats(self) -> "None":
        line = json.dumps(
            {
                "timestamp": TS,
                "message": {
                    "id": "msg_04",
                    "usage": {"input_tokens": "12", "output_tokens": 3.9},
                },
            }
        )
        record = extract(line)
        assert record is not None
        assert record.input_tokens == 12
        assert record.output_tokens == 3


class TestExtractGenericSearch:
    def test_finds_nested_usage(self) -> "None":
        line = json.dumps(
            {
                "time": "2026-02-14T03:46:50Z",
                "payload": {
                    "events": [
                        {"kind": "noise"},
                        {"messageId": "m-9", "usage": {"input_tokens": 42}},
                    ]
                },
            }
        )
        record = extract(line)
        assert record is not None
        assert record.identifier == "m-9"
        assert record.input_tokens == 42

    def test_nested_timestamp(self) -> "None":
        line = json.dumps(
            {
                "meta": {"timestamp": "2026-02-14T01:00:00+00:00"},
                "message": {"id": "msg_05", "usage": {"input_tokens": 1}},
            }
        )
        record = extract(line)
        assert record is not None
        assert record.timestamp == datetime(2026, 2, 14, 1, 0, tzinfo=timezone.utc)

    def test_usage_beyond_search_cap_is_not_found(self) -> "None":
        filler = [{"n": i} for i in range(USAGE_SEARCH_LIMIT + 10)]
        # the stack is LIFO, so the usage object placed first is visited last
        line = json.dumps(
            {
                "timestamp": TS,
                "items": [{"id": "deep", "usage": {"input_tokens": 1}}] + filler,
            }
        )
        assert extract(line) is None


class TestExtractRejects:
    def test_malformed_json(self) -> "None":
        assert extract("{not json") is None

    def test_blank_line(self) -> "None":
        assert extract("   ") is None

    def test_non_object(self) -> "None":
        assert extract("[1, 2, 3]") is None

    def test_no_usage_anywhere(self) -> "None":
        line = json.dumps({"timestamp": TS, "message": {"id": "x", "content": "hi"}})
        assert extract(line) is None

    def test_zero_tokens(self) -> "None":
        line = json.dumps(
            {
                "timestamp": TS,
                "message": {
                    "id": "msg_06",
                    "usage": {"input_tokens": 0, "output_tokens": 0},
                },
            }
        )
        assert extract(line) is None

    def test_usage_without_identifier(self) -> "None":
        line = json.dumps({"timestamp": TS, "message": {"usage": {"input_tokens": 9}}})
        assert extract(line) is None

    def test_no_timestamp(self) -> "None":
        line = json.dumps({"message": {"id": "msg_07", "usage": {"input_tokens": 9}}})
        assert extract(line) is None


class TestParseTimestamp:
    def test_without_fraction(self) -> "None":
        assert parse_timestamp("2026-02-14T03:46:50Z") == datetime(
            2026, 2, 14, 3, 46, 50, tzinfo=timezone.utc
        )

    def test_naive_is_utc(self) -> "None":
        parsed = parse_timestamp("2026-02-14T03:46:50")
        assert parsed is not None
        assert parsed.tzinfo == timezone.utc

    def test_garbage(self) -> "None":
        assert parse_timestamp("yesterday") is None
