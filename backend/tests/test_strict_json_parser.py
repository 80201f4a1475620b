"""
Tests for extracting JSON objects from model completions
"""

from services.pipeline_contracts import VisualizationData
from services.strict_json_parser import StrictJSONParser


class TestExtractJson:

    def test_plain_object(self):
        assert StrictJSONParser.extract_json('{"chartData": "a", "csvData": "b"}') == {
            "chartData": "a", "csvData": "b"
        }

    def test_markdown_fence(self):
        content = 'Sure! Here it is:\n```json\n{"chartData": "a", "csvData": "b"}\n```\nLet me know.'

        assert StrictJSONParser.extract_json(content) == {"chartData": "a", "csvData": "b"}

    def test_response_prefix_is_stripped(self):
        assert StrictJSONParser.extract_json('JSON: {"csvData": "x"}') == {"csvData": "x"}

    def test_object_embedded_in_prose(self):
        content = 'The visualization is {"chartData": "a", "csvData": "room,btu"} as requested.'

        assert StrictJSONParser.extract_json(content) == {"chartData": "a", "csvData": "room,btu"}

    def test_braces_inside_strings_do_not_end_the_object(self):
        content = 'Result: {"chartData": "a}b{", "csvData": "c"} trailing'

        assert StrictJSONParser.extract_json(content) == {"chartData": "a}b{", "csvData": "c"}

    def test_nested_objects(self):
        content = 'prefix {"chart": {"type": "bar", "series": [1, 2]}, "csvData": "x"} suffix'

        assert StrictJSONParser.extract_json(content)["chart"] == {"type": "bar", "series": [1, 2]}

    def test_top_level_array_is_rejected(self):
        assert StrictJSONParser.extract_json('[1, 2, 3]') is None

    def test_garbage_returns_none(self):
        assert StrictJSONParser.extract_json("I could not produce a chart for this building.") is None

    def test_empty_returns_none(self):
        assert StrictJSONParser.extract_json("") is None
        assert StrictJSONParser.extract_json("   ") is None

    def test_unbalanced_returns_none(self):
        assert StrictJSONParser.extract_json('{"chartData": "a", "csvData": ') is None

    def test_schema_skips_example_objects_in_prose(self):
        content = 'Example {"unit": "BTU"}. Result: {"chartData": "abc", "csvData": "a,b"}'

        assert StrictJSONParser.extract_json(content) == {"unit": "BTU"}
        assert StrictJSONParser.extract_json(content, VisualizationData) == {"chartData": "abc", "csvData": "a,b"}

    def test_schema_falls_back_to_first_object(self):
        content = 'Result: {"chartData": "abc"} and {"unit": "BTU"}'

        assert StrictJSONParser.extract_json(content, VisualizationData) == {"chartData": "abc"}

    def test_later_fence_is_tried_when_first_is_invalid(self):
        content = '```json\n{"unit": "BTU"}\n```\n```json\n{"chartData": "a", "csvData": "b"}\n```'

        assert StrictJSONParser.extract_json(content, VisualizationData) == {"chartData": "a", "csvData": "b"}


class TestValidateAgainstSchema:

    def test_valid_visualization(self):
        ok, obj, message = StrictJSONParser.validate_against_schema(
            {"chartData": "abc", "csvData": "a,b"}, VisualizationData
        )

        assert ok
        assert obj.chart_data == "abc"
        assert message is None

    def test_snake_case_keys_are_accepted(self):
        ok, obj, _ = StrictJSONParser.validate_against_schema(
            {"chart_data": "abc", "csv_data": "a,b"}, VisualizationData
        )

        assert ok
        assert obj.csv_data == "a,b"

    def test_missing_field_reports_path(self):
        ok, obj, message = StrictJSONParser.validate_against_schema({"chartData": "abc"}, VisualizationData)

        assert not ok
        assert obj is None
        assert message.startswith("Schema validation failed")
        assert "csvData" in message

    def test_blank_field_is_invalid(self):
        ok, _, _ = StrictJSONParser.validate_against_schema({"chartData": " ", "csvData": "x"}, VisualizationData)

        assert not ok
