"""Tests for eval rate extraction from `ollama run --verbose` output."""

from __future__ import annotations

import pytest

from obench.parse_results import EvalRate, EvalRateNotFoundError, parse_eval_rate


VERBOSE_OUTPUT = """\
total duration:       4.211394708s
load duration:        28.415459ms
prompt eval count:    31 token(s)
prompt eval duration: 151.09ms
prompt eval rate:     205.18 tokens/s
eval count:           312 token(s)
eval duration:        4.030237s
eval rate:            77.41 tokens/s
"""


class TestParseEvalRate:

    def test_extracts_third_field(self):
        result = parse_eval_rate(VERBOSE_OUTPUT)
        assert result == EvalRate(value=77.41, line="eval rate:            77.41 tokens/s")

    def test_prompt_eval_rate_is_not_mistaken_for_eval_rate(self):
        output = "prompt eval rate:     205.18 tokens/s\n"
        with pytest.raises(EvalRateNotFoundError):
            parse_eval_rate(output)

    def test_first_matching_line_wins(self):
        output = "eval rate: 10.5 tokens/s\neval rate: 99.0 tokens/s\n"
        assert parse_eval_rate(output).value == 10.5

    def test_integer_value(self):
        assert parse_eval_rate("eval rate: 12 tokens/s").value == 12.0

    def test_trailing_whitespace_stripped_from_line(self):
        result = parse_eval_rate("eval rate:   8.25 tokens/s   \r\n")
        assert result.line == "eval rate:   8.25 tokens/s"

    def test_empty_output(self):
        with pytest.raises(EvalRateNotFoundError):
            parse_eval_rate("")

    def test_indented_label_does_not_match(self):
        with pytest.raises(EvalRateNotFoundError):
            parse_eval_rate("   eval rate: 5.0 tokens/s")

    def test_missing_value(self):
        with pytest.raises(EvalRateNotFoundError, match="no value"):
            parse_eval_rate("eval rate:")

    def test_non_numeric_value(self):
        with pytest.raises(EvalRateNotFoundError, match="not a number"):
            parse_eval_rate("eval rate: fast tokens/s")

    @pytest.mark.parametrize("value", ["nan", "inf", "-Infinity"])
    def test_non_finite_value(self, value):
        with pytest.raises(EvalRateNotFoundError, match="not a number"):
            parse_eval_rate(f"eval rate: {value} tokens/s")

    def test_error_is_a_value_error(self):
        assert issubclass(EvalRateNotFoundError, ValueError)
