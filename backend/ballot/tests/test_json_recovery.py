"""
JSON Recovery Tests
===================
Verifies fence stripping, control-character repair and the one-shot
model repair call.
"""

import os
import sys
from unittest.mock import MagicMock

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from ballot.services.gateway import GatewayError
from ballot.services.json_recovery import (
    JsonRecovery,
    JsonRecoveryResult,
    extract_json_object,
    escape_control_chars_in_strings,
    try_parse_object,
)


def create_mock_gateway(repair_response=None, error=None):
    gateway = MagicMock()
    if error is not None:
        gateway.generate.side_effect = error
    else:
        gateway.generate.return_value = repair_response
    return gateway


# =============================================================================
# PURE HELPERS
# =============================================================================

def test_extract_from_fences():
    """Code fences and surrounding prose are stripped."""
    raw = '```json\n{"a": 1}\n```'
    assert extract_json_object(raw) == '{"a": 1}'

    prose = 'Here is the result: {"a": {"b": 2}} Hope this helps.'
    assert extract_json_object(prose) == '{"a": {"b": 2}}'

    print("[PASS] Fence extraction test passed")


def test_escape_control_chars():
    """Raw newlines inside strings are escaped; structure is left alone."""
    raw = '{\n"feedback": "line one\nline two\ttabbed\r"\n}'
    escaped = escape_control_chars_in_strings(raw)

    assert escaped == '{\n"feedback": "line one\\nline two\\ttabbed"\n}'

    print("[PASS] Control character escape test passed")


def test_escape_respects_escaped_quotes():
    raw = '{"quote": "she said \\"go\nnow\\""}'
    escaped = escape_control_chars_in_strings(raw)

    assert escaped == '{"quote": "she said \\"go\\nnow\\""}'

    print("[PASS] Escaped quote test passed")


def test_try_parse_object():
    assert try_parse_object('{"score": 8}') == {"score": 8}
    assert try_parse_object('{"feedback": "a\nb"}') == {"feedback": "a\nb"}
    assert try_parse_object('[1, 2, 3]') is None
    assert try_parse_object('not json at all') is None
    assert try_parse_object('') is None

    print("[PASS] try_parse_object test passed")


# =============================================================================
# RECOVERY PROTOCOL
# =============================================================================

def test_clean_parse_needs_no_repair():
    gateway = create_mock_gateway()
    result = JsonRecovery(gateway).recover('```json\n{"transcript": "hello"}\n```', schema="{}")

    assert result.ok
    assert result.value == {"transcript": "hello"}
    assert result.parse_fail_count == 0
    assert result.repair_used is False
    assert result.raw_output is None
    gateway.generate.assert_not_called()

    print("[PASS] Clean parse test passed")


def test_newline_repair_counts_as_clean():
    """The in-process newline repair does not count as a failure."""
    result = JsonRecovery(create_mock_gateway()).recover('{"feedback": "first\nsecond"}', schema="{}")

    assert result.ok
    assert result.parse_fail_count == 0

    print("[PASS] Newline repair test passed")


def test_model_repair_success():
    gateway = create_mock_gateway(repair_response='{"overallScore": 7.5}')
    result = JsonRecovery(gateway).recover('{"overallScore": 7.5,,,', schema='{"overallScore": 0}')

    assert result.ok
    assert result.value == {"overallScore": 7.5}
    assert result.parse_fail_count == 1
    assert result.repair_used is True
    assert result.raw_output == '{"overallScore": 7.5,,,'
    assert gateway.generate.call_count == 1

    kwargs = gateway.generate.call_args.kwargs
    assert kwargs['sampling'].temperature == 0.0
    assert "Fix formatting ONLY" in kwargs['system_instruction']

    print("[PASS] Model repair success test passed")


def test_model_repair_failure():
    """A failed repair reports two failures and keeps the raw text."""
    gateway = create_mock_gateway(repair_response="still not json")
    result = JsonRecovery(gateway).recover("garbage output", schema="{}")

    assert not result.ok
    assert result.parse_fail_count == 2
    assert result.repair_used is True
    assert result.raw_output == "garbage output"

    metrics = result.to_parse_metrics()
    assert metrics.parse_fail_count == 2
    assert metrics.raw_output == "garbage output"

    print("[PASS] Model repair failure test passed")


def test_repair_gateway_error():
    """A gateway error during repair is a failed repair, not an exception."""
    gateway = create_mock_gateway(error=GatewayError("timeout"))
    result = JsonRecovery(gateway).recover("garbage output", schema="{}")

    assert not result.ok
    assert result.parse_fail_count == 2

    print("[PASS] Repair gateway error test passed")


def test_no_schema_no_repair():
    gateway = create_mock_gateway()
    result = JsonRecovery(gateway).recover("garbage output")

    assert result == JsonRecoveryResult(value=None, parse_fail_count=1, repair_used=False,
                                        raw_output="garbage output")
    gateway.generate.assert_not_called()

    print("[PASS] No-schema test passed")


def run_all_tests():
    """Run all JSON recovery tests."""
    print("\n" + "="*60)
    print("JSON RECOVERY TESTS")
    print("="*60 + "\n")

    test_extract_from_fences()
    test_escape_control_chars()
    test_escape_respects_escaped_quotes()
    test_try_parse_object()
    test_clean_parse_needs_no_repair()
    test_newline_repair_counts_as_clean()
    test_model_repair_success()
    test_model_repair_failure()
    test_repair_gateway_error()
    test_no_schema_no_repair()

    print("\n" + "="*60)
    print("ALL JSON RECOVERY TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
