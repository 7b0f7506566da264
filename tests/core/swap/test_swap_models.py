from decimal import Decimal

import pytest

from stableswap.core.swap.constants import format_amount, to_base_units
from stableswap.core.swap.models import (
    AttemptOutcome,
    RetryState,
    SlotState,
    SwapAttemptResult,
    SwapDirection,
    summarize,
)


def _ok(slot, attempt=1, gas=5_000, outcome=AttemptOutcome.SUCCESS):
    return SwapAttemptResult(
        direction=SwapDirection.for_slot(slot),
        outcome=outcome,
        input_amount=1_000,
        output_amount=998,
        signature=f"sig{slot}{attempt}",
        gas_lamports=gas,
        slot_index=slot,
        attempt=attempt,
    )


def _fail(slot, attempt=1):
    return SwapAttemptResult.failed(
        SwapDirection.for_slot(slot),
        1_000,
        "Quote failed",
        slot_index=slot,
        attempt=attempt,
    )


@pytest.mark.parametrize("slot", range(8))
def test_direction_for_slot(slot):
    expected = SwapDirection.USDC_TO_USDT if slot % 2 == 0 else SwapDirection.USDT_TO_USDC
    assert SwapDirection.for_slot(slot) is expected


def test_direction_tokens():
    assert SwapDirection.USDC_TO_USDT.input_token == "USDC"
    assert SwapDirection.USDC_TO_USDT.output_token == "USDT"
    assert SwapDirection.USDT_TO_USDC.input_token == "USDT"
    assert SwapDirection.USDT_TO_USDC.output_token == "USDC"


def test_direction_parse():
    assert SwapDirection.parse(" usdt_to_usdc ") is SwapDirection.USDT_TO_USDC
    with pytest.raises(ValueError):
        SwapDirection.parse("SOL_TO_USDC")


def test_attempt_result_is_frozen():
    result = _ok(0)
    with pytest.raises(AttributeError):
        result.signature = "other"


def test_unconfirmed_counts_as_success():
    assert _ok(0, outcome=AttemptOutcome.UNCONFIRMED).success is True
    assert _fail(0).success is False


class TestRetryState:

    def test_attempt_budget(self):
        state = RetryState(slot_index=0, direction=SwapDirection.USDC_TO_USDT, max_retries=2)

        assert state.state is SlotState.PENDING
        assert state.max_attempts == 3

        for expected in (1, 2):
            assert state.begin_attempt() == expected
            state.record_failure("boom")
            assert state.state is SlotState.ATTEMPT_FAILED

        state.begin_attempt()
        state.record_failure("final boom")

        assert state.exhausted
        assert state.state is SlotState.EXHAUSTED
        assert state.last_error == "final boom"
        with pytest.raises(RuntimeError):
            state.begin_attempt()

    def test_success_is_terminal(self):
        state = RetryState(slot_index=3, direction=SwapDirection.USDT_TO_USDC, max_retries=1)
        state.begin_attempt()
        state.record_success()

        assert state.state.is_terminal
        with pytest.raises(RuntimeError):
            state.begin_attempt()


class TestSummarize:

    def test_counts(self):
        log = [
            _fail(0, 1), _ok(0, 2),
            _ok(1, gas=None),
            _fail(2, 1), _fail(2, 2),
            _ok(3, outcome=AttemptOutcome.UNCONFIRMED),
        ]

        summary = summarize(log, target_count=3)

        assert summary.successful == 3
        assert summary.failed == 1
        assert summary.total_attempts == 6
        assert summary.unconfirmed == 1
        # Unmeasured gas is skipped, failed attempts never count
        assert summary.total_gas_lamports == 10_000
        assert summary.slots_resolved == 4

    def test_idempotent(self):
        log = [_fail(0), _ok(0, 2), _ok(1)]

        first = summarize(log, 2)
        second = summarize(log, 2)

        assert first == second
        assert first.results == tuple(log)

    def test_empty_log(self):
        summary = summarize([], target_count=5, cancelled=True)

        assert summary.successful == 0
        assert summary.failed == 0
        assert summary.average_gas_sol is None
        assert summary.cancelled is True

    def test_gas_in_sol(self):
        summary = summarize([_ok(0, gas=10_000), _ok(1, gas=20_000)], 2)

        assert summary.total_gas_sol == Decimal("0.00003")
        assert summary.average_gas_sol == Decimal("0.000015")


def test_to_base_units_rounds_down():
    assert to_base_units(Decimal("0.001"), "USDC") == 1_000
    assert to_base_units(Decimal("1.2345678"), "USDT") == 1_234_567


def test_format_amount():
    assert format_amount(1_500, "USDC") == "0.001500 USDC"
