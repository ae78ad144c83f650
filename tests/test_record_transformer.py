#!/usr/bin/env python3
"""Tests for the jq record transformer."""

import pytest
import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).parent.parent))
from shared.errors import FilterCompileError, TransformError
from shared.record_transformer import SKIP, Emit, JqTransformer, check_single_object


class TestJqTransformer:

    def test_projection(self):
        """Test a field projection is emitted as compact JSON plus newline."""
        transformer = JqTransformer(".id")
        assert transformer.transform('{"id":"Q1","type":"item"}') == Emit(b'"Q1"\n')

    def test_object_output_is_compact(self):
        transformer = JqTransformer("{id, type}")
        result = transformer.transform('{"id": "Q1", "type": "item", "labels": {}}')
        assert result == Emit(b'{"id":"Q1","type":"item"}\n')

    def test_multiple_outputs_one_per_line(self):
        transformer = JqTransformer(".aliases[]")
        assert transformer.transform('{"aliases":["a","b"]}') == Emit(b'"a"\n"b"\n')

    def test_no_output_is_skip(self):
        transformer = JqTransformer('select(.type == "property")')
        assert transformer.transform('{"id":"Q1","type":"item"}') is SKIP

    def test_empty_record_is_skip(self):
        assert JqTransformer(".").transform("") is SKIP

    def test_program_reused_across_records(self):
        transformer = JqTransformer(".id")
        outputs = [transformer.transform(f'{{"id":"Q{i}"}}') for i in range(100)]
        assert outputs[-1] == Emit(b'"Q99"\n')

    def test_invalid_filter(self):
        with pytest.raises(FilterCompileError) as excinfo:
            JqTransformer(".[")
        assert excinfo.value.expression == ".["
        assert excinfo.value.stage == "filter compile"

    def test_invalid_json_raises_transform_error(self):
        transformer = JqTransformer(".id")
        with pytest.raises(TransformError) as excinfo:
            transformer.transform('{"id":')
        assert excinfo.value.record_text == '{"id":'
        assert excinfo.value.cause is not None

    def test_runtime_error_raises_transform_error(self):
        transformer = JqTransformer(".labels.en.value")
        with pytest.raises(TransformError):
            transformer.transform('{"labels":"oops"}')

    def test_unicode_round_trip(self):
        transformer = JqTransformer(".labels.en.value")
        result = transformer.transform('{"labels":{"en":{"value":"Здравствуй 🌍"}}}')
        assert result.data.decode("utf-8").strip('\n"') == "Здравствуй 🌍"

    def test_built_object_keeps_utf8(self):
        """Test non-ASCII text is written as UTF-8, not as \\u escapes."""
        transformer = JqTransformer("{id, label: .labels.en.value}")
        result = transformer.transform('{"id":"Q1","labels":{"en":{"value":"Zürich 🌍"}}}')
        assert result == Emit('{"id":"Q1","label":"Zürich 🌍"}\n'.encode("utf-8"))

    def test_nested_output_is_compact(self):
        transformer = JqTransformer(".claims")
        result = transformer.transform('{"claims": {"P31": [ {"id": "Q5"}, 1 ]}}')
        assert result == Emit(b'{"P31":[{"id":"Q5"},1]}\n')


class TestValidation:
    """Structural check of records with ijson."""

    def test_single_object_passes(self):
        check_single_object('{"id":"Q1","claims":{"P31":[]}}')

    @pytest.mark.parametrize("text", [
        '{"id":"Q1"} {"id":"Q2"}',
        '["Q1"]',
        '42',
        '',
        '{"id":',
        '{"id":"Q1"',
    ])
    def test_rejects(self, text):
        with pytest.raises(TransformError):
            check_single_object(text)

    def test_validate_flag_runs_check(self):
        transformer = JqTransformer(".", validate=True)
        with pytest.raises(TransformError):
            transformer.transform('["not", "an", "object"]')
