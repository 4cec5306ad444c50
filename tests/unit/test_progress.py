"""Unit tests for the build log and step progress tracking."""

from __future__ import annotations

import logging

import pytest

from vivbuild.core.progress import (
    BuildLog,
    BuildProgress,
    format_duration,
    read_progress,
)


@pytest.fixture
def build_log(tmp_dir):
    log = BuildLog(tmp_dir / "logs" / "build.log")
    yield log
    log.close()


class TestFormatDuration:
    @pytest.mark.parametrize(
        "seconds, expected",
        [(0, "00:00:00"), (59.9, "00:00:59"), (3661, "01:01:01"), (90000, "25:00:00"), (-5, "00:00:00")],
    )
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected


class TestBuildLog:
    def test_lines_are_timestamped(self, build_log):
        build_log.write("hello")
        build_log.write_lines(["one", "two"])
        build_log.close()
        lines = build_log.path.read_text().splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("[") and lines[0].endswith("] hello")
        assert lines[2].endswith("] two")

    def test_separate_logs_do_not_mix(self, tmp_dir):
        with BuildLog(tmp_dir / "a.log") as a, BuildLog(tmp_dir / "b.log") as b:
            a.write("only in a")
            b.write("only in b")
        assert "only in b" not in (tmp_dir / "a.log").read_text()
        assert "only in a" not in (tmp_dir / "b.log").read_text()

    def test_logger_is_not_registered(self, tmp_dir):
        before = set(logging.Logger.manager.loggerDict)
        for n in range(3):
            with BuildLog(tmp_dir / f"run{n}.log") as log:
                log.write("sampled")
        assert set(logging.Logger.manager.loggerDict) - before <= {"vivbuild.build"}

    def test_records_reach_console_loggers(self, build_log, caplog):
        with caplog.at_level(logging.INFO, logger="vivbuild.build"):
            build_log.write("visible on the console")
        assert "visible on the console" in caplog.text


class TestBuildProgress:
    def test_step_banners(self, build_log):
        progress = BuildProgress(build_log)
        with progress.step("Checking Prerequisites"):
            assert progress.current_step == "Checking Prerequisites"
        assert progress.current_step is None
        build_log.close()
        text = build_log.path.read_text()
        assert "=== BUILD STEP: Checking Prerequisites ===" in text
        assert "=== COMPLETED: Checking Prerequisites (Duration: 00:00:00) ===" in text

    def test_failed_step_is_not_completed(self, build_log):
        progress = BuildProgress(build_log)
        with pytest.raises(RuntimeError):
            with progress.step("Building Container Image"):
                raise RuntimeError("build failed")
        assert progress.completed == []
        assert progress.current_step == "Building Container Image"

    def test_completed_records(self, build_log):
        progress = BuildProgress(build_log)
        progress.begin("a")
        record = progress.complete("a")
        progress.begin("b")
        progress.complete("b")
        assert [r.name for r in progress.completed] == ["a", "b"]
        assert record.duration_seconds >= 0

    def test_publishes_snapshot(self, build_log, tmp_dir):
        path = tmp_dir / "progress.json"
        progress = BuildProgress(build_log, path)
        progress.begin("Checking Base Image")
        snapshot = read_progress(path)
        assert snapshot is not None
        assert snapshot.current_step == "Checking Base Image"
        assert snapshot.log_file == build_log.path

        progress.complete("Checking Base Image")
        snapshot = read_progress(path)
        assert snapshot.current_step is None
        assert [r.name for r in snapshot.completed] == ["Checking Base Image"]
        assert not path.with_name("progress.json.tmp").exists()

    def test_clear_removes_snapshot(self, build_log, tmp_dir):
        path = tmp_dir / "progress.json"
        progress = BuildProgress(build_log, path)
        progress.begin("x")
        progress.clear()
        assert not path.exists()
        assert read_progress(path) is None
        progress.clear()


class TestReadProgress:
    def test_missing(self, tmp_dir):
        assert read_progress(tmp_dir / "none.json") is None

    def test_corrupt(self, tmp_dir):
        path = tmp_dir / "bad.json"
        path.write_text("{not json")
        assert read_progress(path) is None
