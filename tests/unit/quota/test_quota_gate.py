"""Tests for quota.quota_gate module."""

from __future__ import annotations

import json
import threading
from datetime import timedelta
from pathlib import Path

import pytest

from quota.quota_gate import QuotaGate, QuotaState, RateLimited


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "quota.json"


@pytest.fixture
def gate(state_path, clock):
    gate = QuotaGate(state_path, clock=clock)
    yield gate
    gate.close()


class TestQuotaGate:
    def test_starts_unknown(self, gate) -> None:
        assert gate.is_rate_limited() is False
        assert gate.remaining() is None
        assert gate.state == QuotaState()

    def test_rate_limit_expires(self, gate, clock) -> None:
        gate.set_rate_limited(clock.now + timedelta(minutes=10))
        assert gate.is_rate_limited() is True
        assert gate.rate_limit_minutes_remaining() == 10

        clock.advance(timedelta(minutes=10))
        assert gate.is_rate_limited() is False
        assert gate.rate_limit_minutes_remaining() == 0

    def test_check_raises_when_limited(self, gate) -> None:
        gate.check()
        gate.record_rate_limit_response(retry_after_seconds=120)
        with pytest.raises(RateLimited):
            gate.check()

    def test_default_retry_after(self, gate, clock) -> None:
        until = gate.record_rate_limit_response()
        assert until == clock.now + timedelta(hours=1)

    def test_negative_remaining_is_unknown(self, gate) -> None:
        gate.update_remaining(42)
        assert gate.remaining() == 42
        gate.update_remaining(-1)
        assert gate.remaining() is None

    def test_state_survives_restart(self, state_path, clock) -> None:
        first = QuotaGate(state_path, clock=clock)
        first.set_rate_limited(clock.now + timedelta(minutes=30))
        first.update_remaining(7)
        first.flush()
        first.close()

        second = QuotaGate(state_path, clock=clock)
        try:
            assert second.is_rate_limited() is True
            assert second.remaining() == 7
        finally:
            second.close()

    def test_persisted_file_contents(self, gate, state_path, clock) -> None:
        gate.update_remaining(3)
        gate.flush()
        data = json.loads(state_path.read_text())
        assert data == {"rate_limited_until": None, "remaining": 3}

    def test_clear(self, gate, clock) -> None:
        gate.set_rate_limited(clock.now + timedelta(minutes=5))
        gate.update_remaining(1)
        gate.clear()
        assert gate.state == QuotaState()

    def test_corrupt_file_starts_unknown(self, state_path, clock) -> None:
        state_path.parent.mkdir(parents=True)
        state_path.write_text("{not json")
        gate = QuotaGate(state_path, clock=clock)
        try:
            assert gate.state == QuotaState()
        finally:
            gate.close()

    def test_concurrent_updates_keep_last_value_in_memory(self, gate) -> None:
        threads = [threading.Thread(target=gate.update_remaining, args=(n,)) for n in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        gate.flush()
        assert gate.remaining() in range(20)

    def test_snapshot_with_bad_fields_starts_unknown(self, state_path, clock) -> None:
        state_path.parent.mkdir(parents=True)
        state_path.write_text(json.dumps({"rate_limited_until": "garbage", "remaining": "x"}))
        gate = QuotaGate(state_path, clock=clock)
        try:
            assert gate.state == QuotaState()
            gate.check()
        finally:
            gate.close()
