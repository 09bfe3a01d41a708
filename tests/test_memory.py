"""Tests for memory pressure probing, chunk sizing and flushing."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from tourpipe.core import memory
from tourpipe.core.errors import StageProcessError
from tourpipe.core.memory import adaptive_chunk_size, estimate_peak_gb, flush_memory, get_pressure, label


class TestAdaptiveChunkSize:
    def test_no_change_at_or_below_threshold(self):
        assert adaptive_chunk_size(16, 0) == 16
        assert adaptive_chunk_size(16, 80) == 16

    def test_halves_above_threshold(self):
        assert adaptive_chunk_size(16, 81) == 8
        assert adaptive_chunk_size(64, 95) == 32

    def test_never_below_minimum(self):
        assert adaptive_chunk_size(10, 90) == 8
        assert adaptive_chunk_size(8, 100) == 8

    @pytest.mark.parametrize("base", [8, 9, 16, 17, 32, 100])
    @pytest.mark.parametrize("pressure", [0, 50, 80, 81, 100])
    def test_bounds(self, base, pressure):
        size = adaptive_chunk_size(base, pressure)
        assert 8 <= size <= base


class TestLabel:
    @pytest.mark.parametrize("pressure, text, severity", [
        (0, "0% Normal", "normal"),
        (49, "49% Normal", "normal"),
        (50, "50% Warning", "warning"),
        (74, "74% Warning", "warning"),
        (75, "75% Critical", "critical"),
        (100, "100% Critical", "critical"),
    ])
    def test_bands(self, pressure, text, severity):
        result = label(pressure)
        assert result.text == text
        assert result.severity == severity


class TestGetPressure:
    def test_reads_psutil(self):
        with patch("tourpipe.core.memory.psutil.virtual_memory",
                   return_value=SimpleNamespace(percent=63.4)):
            assert get_pressure() == 63

    def test_clamped(self):
        with patch("tourpipe.core.memory.psutil.virtual_memory",
                   return_value=SimpleNamespace(percent=140.0)):
            assert get_pressure() == 100

    def test_probe_failure_reads_zero(self):
        with patch("tourpipe.core.memory.psutil.virtual_memory",
                   side_effect=RuntimeError("no /proc")):
            assert get_pressure() == 0


def test_estimate_peak_gb():
    assert estimate_peak_gb(50, 24) == 12.0
    assert estimate_peak_gb(0, 24) == 0.0
    assert estimate_peak_gb(33, 32) == 10.6


class TestFlushMemory:
    def test_runs_flush_script_in_reasoning_interpreter(self, settings):
        mock = AsyncMock()
        with patch.object(memory, "run_process", mock):
            asyncio.run(flush_memory(settings))

        executable, args = mock.call_args.args[:2]
        assert executable == "python3"
        assert args[0] == "-c"
        assert "empty_cache" in args[1]
        assert mock.call_args.kwargs["env"] == settings.process_env
        assert mock.call_args.kwargs["timeout"] == settings.flush_timeout_s

    def test_failure_is_swallowed(self, settings, caplog):
        mock = AsyncMock(side_effect=StageProcessError("python3", started=False, reason="missing"))
        with patch.object(memory, "run_process", mock):
            asyncio.run(flush_memory(settings))
        assert "Memory flush skipped" in caplog.text
