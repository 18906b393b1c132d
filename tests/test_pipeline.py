"""Tests for the full per-file pipeline."""

from __future__ import annotations

from pathlib import Path

import pytest

from ljp.dialects import ToolChain
from ljp.errors import ConfigError, ToolError
from ljp.evaluator import Evaluator
from ljp.pipeline import env_flag, transform_file, transform_source
from tests.conftest import make_script

MARK = "--[[luajit-pro]]\n"


@pytest.fixture
def fake_stylua(tmp_path: Path) -> ToolChain:
    script = make_script(tmp_path / "bin" / "stylua", 'cat\necho "-- formatted"')
    return ToolChain(stylua=str(script))


class TestEnvFlag:
    @pytest.mark.parametrize("value", ["1", "true", " TRUE "])
    def test_set(self, value: str) -> None:
        assert env_flag("X", {"X": value})

    @pytest.mark.parametrize("value", ["0", "false", "yes", ""])
    def test_not_set(self, value: str) -> None:
        assert not env_flag("X", {"X": value})

    def test_missing(self) -> None:
        assert not env_flag("X", {})

    def test_process_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("LJP_NO_OPT", "1")
        assert env_flag("LJP_NO_OPT")


class TestStages:
    def test_comp_time(self, evaluator: Evaluator) -> None:
        source = MARK + 'function __LJP:COMP_TIME() return "x = 1" end\n'
        result = transform_source(source, "main.lua", evaluator=evaluator)
        assert result.split("\n")[1].startswith("x = 1 --[=====[")

    def test_params_fold_branches(self, evaluator: Evaluator) -> None:
        source = "--[[luajit-pro, {DEBUG=false}]]\nif DEBUG then a() end\nb()\n"
        result = transform_source(source, "m.lua", [("DEBUG", "false")], evaluator=evaluator)
        assert "a()" not in result
        assert "b()" in result
        assert result.count("\n") == source.count("\n")

    def test_params_visible_to_macros(self, evaluator: Evaluator) -> None:
        source = MARK + 'function __LJP:COMP_TIME() return DEBUG and "on()" or "off()" end\n'
        result = transform_source(source, "m.lua", [("DEBUG", "true")], evaluator=evaluator)
        assert result.split("\n")[1].startswith("on()")

    def test_optimizer(self, evaluator: Evaluator) -> None:
        source = "--[[luajit-pro, opt]]\nlocal --[[@used]] x = 1\n"
        assert "_ = x" in transform_source(source, "m.lua", evaluator=evaluator, no_opt=False)

    def test_optimizer_skipped_without_opt(self, evaluator: Evaluator) -> None:
        source = MARK + "local --[[@used]] x = 1\n"
        assert transform_source(source, "m.lua", evaluator=evaluator) == source

    def test_optimizer_disabled(self, evaluator: Evaluator) -> None:
        source = "--[[luajit-pro, opt]]\nlocal --[[@used]] x = 1\n"
        assert transform_source(source, "m.lua", evaluator=evaluator, no_opt=True) == source

    def test_optimizer_disabled_by_environment(self, evaluator: Evaluator, monkeypatch) -> None:
        monkeypatch.setenv("LJP_NO_OPT", "true")
        source = "--[[luajit-pro, opt]]\nlocal --[[@used]] x = 1\n"
        assert transform_source(source, "m.lua", evaluator=evaluator) == source

    def test_no_comment(self, evaluator: Evaluator) -> None:
        source = "--[[luajit-pro, no-comment]]\nx = 1 -- note\n"
        result = transform_source(source, "m.lua", evaluator=evaluator)
        assert "note" not in result
        assert "x = 1" in result

    def test_format(self, evaluator: Evaluator, fake_stylua: ToolChain) -> None:
        source = "--[[luajit-pro, format]]\nx = 1 -- note\n"
        result = transform_source(source, "m.lua", tools=fake_stylua, evaluator=evaluator)
        assert "note" in result
        assert result.endswith("-- formatted\n")

    def test_pretty(self, evaluator: Evaluator, fake_stylua: ToolChain) -> None:
        source = "--[[luajit-pro, pretty]]\nx = 1 -- note\n"
        result = transform_source(source, "m.lua", tools=fake_stylua, evaluator=evaluator)
        assert "note" not in result
        assert result.endswith("-- formatted\n")

    def test_missing_formatter(self, evaluator: Evaluator) -> None:
        source = "--[[luajit-pro, format]]\nx = 1\n"
        tools = ToolChain(stylua="ljp-no-such-formatter")
        with pytest.raises(ToolError):
            transform_source(source, "m.lua", tools=tools, evaluator=evaluator)


class TestDialects:
    def test_teal_and_luau_rejected(self, evaluator: Evaluator) -> None:
        with pytest.raises(ConfigError):
            transform_source("--[[luajit-pro, teal, luau]]\n", "m.lua", evaluator=evaluator)

    def test_luau_backend(self, evaluator: Evaluator, tmp_path: Path) -> None:
        script = make_script(tmp_path / "darklua", 'cp "$2" "$3"\necho "-- luau" >> "$3"')
        source = "--[[luajit-pro, luau]]\nx = 1\n"
        result = transform_source(
            source, "m.luau", tools=ToolChain(darklua=str(script)), evaluator=evaluator
        )
        assert result == source + "-- luau\n"

    def test_teal_frontend_reads_file(self, evaluator: Evaluator, tmp_path: Path) -> None:
        script = make_script(
            tmp_path / "bin" / "tl",
            'for a in "$@"; do out="$a"; done\nprintf "local n = bit32.bnot(0)\\n" > "$out"',
        )
        path = tmp_path / "mod.tl"
        path.write_text("--[[luajit-pro, teal]]\nlocal n: integer = 0\n")
        result = transform_file(path, tools=ToolChain(tl=str(script)), evaluator=evaluator)
        assert result == "local n = bit.bnot(0)\n"


class TestIncludes:
    def test_included_module_runs_full_pipeline(
        self, evaluator: Evaluator, tmp_path: Path, monkeypatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "gen.lua").write_text("--[[luajit-pro, opt]]\nlocal --[[@used]] y = 2\n")
        source = MARK + '__LJP:include("gen")\n'
        result = transform_source(source, "main.lua", evaluator=evaluator, no_opt=False)
        assert "_ = y" in result.split("\n")[1]


class TestPackageEntryPoint:
    def test_transform(self) -> None:
        import ljp

        source = MARK + 'function __LJP:COMP_TIME() return "y = 2" end\n'
        assert ljp.transform(source).split("\n")[1].startswith("y = 2 --[=====[")
