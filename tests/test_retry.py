"""
Tests for the Retry/Backoff Supervisor.
"""

import asyncio

import pytest

from patent_engine.core.errors import AuthenticationFailed, NavigationTimeout
from patent_engine.core.models import CandidateRecord, ResultSet, ResultStatus
from patent_engine.core.retry import RetrySupervisor


class RecordingSleep:
    """Sleep replacement that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def ok_result():
    return ResultSet(records=(CandidateRecord("WO2020123456"),))


class TestRetrySupervisor:
    """Tests for RetrySupervisor.run."""

    @pytest.mark.asyncio
    async def test_succeeds_on_third_attempt(self):
        """Test recovery after two transient failures."""
        sleep = RecordingSleep()
        supervisor = RetrySupervisor(sleep=sleep)
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise NavigationTimeout("result list did not render")
            return ok_result()

        result = await supervisor.run("search", flaky, max_attempts=3, base_delay=2.0)

        assert result.status == ResultStatus.OK
        assert result.keys() == ["WO2020123456"]
        assert len(calls) == 3
        assert supervisor.attempts == 3
        assert sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_exhaustion_returns_error_sentinel(self):
        """Test that errors never escape once attempts run out."""
        sleep = RecordingSleep()
        supervisor = RetrySupervisor(source_name="INPI", sleep=sleep)

        async def always_fails():
            raise NavigationTimeout("page never loaded")

        result = await supervisor.run("search:INPI", always_fails, max_attempts=3, base_delay=1.0)

        assert result.status == ResultStatus.ERROR
        assert result.keys() == ["ERROR"]
        abstract = result.records[0].abstract
        assert "failed after 3 attempts" in abstract
        assert "page never loaded" in abstract
        assert result.records[0].source_name == "INPI"
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_stops_immediately(self):
        """Test that rejected credentials are not retried."""
        sleep = RecordingSleep()
        supervisor = RetrySupervisor(sleep=sleep)
        calls = []

        async def rejected():
            calls.append(1)
            raise AuthenticationFailed("authentication failed: credentials rejected")

        result = await supervisor.run("search", rejected, max_attempts=3)

        assert len(calls) == 1
        assert sleep.delays == []
        assert result.status == ResultStatus.ERROR
        assert "authentication" in result.records[0].abstract

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_retried(self):
        """Test that errors outside the taxonomy are retried too."""
        calls = []

        async def broken_then_fine():
            calls.append(1)
            if len(calls) == 1:
                raise KeyError("href")
            return ok_result()

        result = await RetrySupervisor(sleep=RecordingSleep()).run("search", broken_then_fine)

        assert result.ok
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_attempt_timeout(self):
        """Test the hard per-attempt timeout."""
        calls = []

        async def hangs():
            calls.append(1)
            await asyncio.sleep(60)

        supervisor = RetrySupervisor(attempt_timeout=0.01, sleep=RecordingSleep())

        result = await supervisor.run("search", hangs, max_attempts=2, base_delay=0)

        assert len(calls) == 2
        assert result.status == ResultStatus.ERROR
        assert "timed out" in result.records[0].abstract

    @pytest.mark.asyncio
    async def test_single_attempt_does_not_sleep(self):
        """Test max_attempts=1."""
        sleep = RecordingSleep()

        async def fails():
            raise NavigationTimeout("slow")

        result = await RetrySupervisor(sleep=sleep).run("search", fails, max_attempts=1)

        assert result.status == ResultStatus.ERROR
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_invalid_attempts(self):
        """Test that max_attempts must be positive."""
        async def fn():
            return ok_result()

        with pytest.raises(ValueError):
            await RetrySupervisor().run("search", fn, max_attempts=0)
