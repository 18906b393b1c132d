"""Tests for build settings, output stamping and the build cache."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from ljp.cache import (
    DEFAULT_CACHE_DIR,
    BuildCache,
    BuildSettings,
    CacheDecision,
    stamp_output,
)
from ljp.evaluator import Evaluator

FLAGGED = "--[[luajit-pro, {A=true}]]\nif A then a() end\nb()\n"


@pytest.fixture
def settings(tmp_path: Path) -> BuildSettings:
    return BuildSettings(cache_dir=tmp_path / "cache")


@pytest.fixture
def write_source(tmp_path: Path):
    def _write(text: str, name: str = "main.lua") -> Path:
        path = tmp_path / "src" / name
        path.parent.mkdir(exist_ok=True)
        path.write_text(text)
        return path

    return _write


def _fail(*args, **kwargs):
    raise AssertionError("pipeline ran")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class TestBuildSettings:
    def test_defaults(self) -> None:
        settings = BuildSettings.from_env({})
        assert settings == BuildSettings()
        assert settings.cache_dir == DEFAULT_CACHE_DIR

    def test_from_environment(self) -> None:
        env = {
            "LJP_OUT_DIR": "/tmp/out",
            "LJP_NO_CACHE": "1",
            "LJP_GEN_ONLY": "true",
            "LJP_NO_OPT": "0",
        }
        settings = BuildSettings.from_env(env)
        assert settings.cache_dir == Path("/tmp/out")
        assert settings.no_cache
        assert settings.gen_only
        assert not settings.no_opt

    def test_empty_out_dir_uses_default(self) -> None:
        assert BuildSettings.from_env({"LJP_OUT_DIR": ""}).cache_dir == DEFAULT_CACHE_DIR


# ---------------------------------------------------------------------------
# Stamping
# ---------------------------------------------------------------------------


class TestStampOutput:
    def test_replaces_marked_first_line(self) -> None:
        line = "--[[luajit-pro, {A=true}]]"
        output = line + "\nx = 1\n"
        assert stamp_output(output, line, [("A", "false")]) == (
            "--[[luajit-pro, { A = false }]]\nx = 1\n"
        )

    def test_joins_unmarked_first_line(self) -> None:
        line = "--[[luajit-pro, {A=true}]]"
        assert stamp_output("\nx = 1", line, [("A", "true")]) == (
            "--[[luajit-pro, { A = true }]] \nx = 1"
        )

    def test_without_record(self) -> None:
        line = "--[[luajit-pro]]"
        assert stamp_output(line + "\nx = 1", line, []) == line + "\nx = 1"


# ---------------------------------------------------------------------------
# Cache decisions
# ---------------------------------------------------------------------------


class TestDecide:
    def test_miss_without_cached_file(self, settings, write_source) -> None:
        path = write_source(FLAGGED)
        assert BuildCache(settings, environ={}).decide(path) is CacheDecision.MISS

    def test_reuse(self, settings, write_source, evaluator: Evaluator) -> None:
        path = write_source(FLAGGED)
        cache = BuildCache(settings, evaluator=evaluator, environ={})
        cache.build(path)
        assert cache.decide(path) is CacheDecision.HIT_REUSE

    def test_parameter_override_rebuilds(
        self, settings, write_source, evaluator: Evaluator
    ) -> None:
        path = write_source(FLAGGED)
        BuildCache(settings, evaluator=evaluator, environ={}).build(path)
        changed = BuildCache(settings, evaluator=evaluator, environ={"A": "false"})
        assert changed.decide(path) is CacheDecision.HIT_REBUILD
        same = BuildCache(settings, evaluator=evaluator, environ={"A": "true"})
        assert same.decide(path) is CacheDecision.HIT_REUSE

    def test_unset_override_reuses_recorded_values(
        self, settings, write_source, evaluator: Evaluator, monkeypatch
    ) -> None:
        path = write_source(FLAGGED)
        BuildCache(settings, evaluator=evaluator, environ={"A": "false"}).build(path)
        monkeypatch.setattr("ljp.cache.transform_source", _fail)
        cache = BuildCache(settings, evaluator=evaluator, environ={})
        assert cache.decide(path) is CacheDecision.HIT_REUSE
        assert cache.build(path).startswith("--[[luajit-pro, { A = false }]]\n")

    def test_newer_source_misses(self, settings, write_source, evaluator: Evaluator) -> None:
        path = write_source(FLAGGED)
        cache = BuildCache(settings, evaluator=evaluator, environ={})
        cache.build(path)
        future = cache.cache_path(path).stat().st_mtime + 10
        os.utime(path, (future, future))
        assert cache.decide(path) is CacheDecision.MISS

    def test_pragma_no_cache(self, settings, write_source, evaluator: Evaluator) -> None:
        path = write_source("--[[luajit-pro, no-cache]]\nx = 1\n")
        cache = BuildCache(settings, evaluator=evaluator, environ={})
        cache.build(path)
        assert cache.cache_path(path).is_file()
        assert cache.decide(path) is CacheDecision.MISS

    def test_settings_no_cache(self, tmp_path: Path, write_source, evaluator: Evaluator) -> None:
        path = write_source(FLAGGED)
        enabled = BuildSettings(cache_dir=tmp_path / "cache")
        BuildCache(enabled, evaluator=evaluator, environ={}).build(path)
        disabled = BuildSettings(cache_dir=tmp_path / "cache", no_cache=True)
        assert BuildCache(disabled, environ={}).decide(path) is CacheDecision.MISS


# ---------------------------------------------------------------------------
# Builds
# ---------------------------------------------------------------------------


class TestBuild:
    def test_output_stamped_and_cached(self, settings, write_source, evaluator: Evaluator) -> None:
        path = write_source(FLAGGED)
        cache = BuildCache(settings, evaluator=evaluator, environ={"A": "false"})
        output = cache.build(path)
        assert output.startswith("--[[luajit-pro, { A = false }]]\n")
        assert "a()" not in output
        assert "b()" in output
        assert cache.cache_path(path).read_text() == output
        assert cache.cache_path(path) == settings.cache_dir / "main.lua"

    def test_reuse_skips_pipeline(
        self, settings, write_source, evaluator: Evaluator, monkeypatch
    ) -> None:
        path = write_source(FLAGGED)
        cache = BuildCache(settings, evaluator=evaluator, environ={})
        first = cache.build(path)
        monkeypatch.setattr("ljp.cache.transform_source", _fail)
        assert cache.build(path) == first

    def test_rebuild_with_new_value(self, settings, write_source, evaluator: Evaluator) -> None:
        path = write_source(FLAGGED)
        assert "a()" in BuildCache(settings, evaluator=evaluator, environ={}).build(path)
        rebuilt = BuildCache(settings, evaluator=evaluator, environ={"A": "0"}).build(path)
        assert rebuilt.startswith("--[[luajit-pro, { A = 0 }]]")
        assert "a()" not in rebuilt

    def test_unmarked_not_stamped(self, settings, write_source, evaluator: Evaluator) -> None:
        path = write_source("x = 1\n")
        assert BuildCache(settings, evaluator=evaluator, environ={}).build(path) == "x = 1\n"

    def test_gen_only(
        self, tmp_path: Path, write_source, evaluator: Evaluator, caplog
    ) -> None:
        path = write_source(FLAGGED)
        settings = BuildSettings(cache_dir=tmp_path / "cache", gen_only=True)
        cache = BuildCache(settings, evaluator=evaluator, environ={})
        with caplog.at_level(logging.INFO, logger="ljp.cache"):
            assert cache.build(path) == ""
        assert "[gen only] output file" in caplog.text
        assert cache.cache_path(path).read_text().startswith("--[[luajit-pro, { A = true }]]")
