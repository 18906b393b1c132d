"""External dialect tools: Teal frontend, Luau backend, formatter.

Each tool is an executable run through subprocess with text in and text
out. Commands can be overridden (``ljp.toml`` ``[tools]`` or ``--tool``);
a command may carry its own arguments, e.g. ``"npx stylua"``.
"""

from __future__ import annotations

import json
import logging
import shlex
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ljp.errors import ToolError

log = logging.getLogger(__name__)

# Applied in this order by the Luau backend
LUAU_RULES = (
    "remove_compound_assignment",
    "remove_floor_division",
    "remove_types",
    "remove_if_expression",
    "remove_continue",
    "remove_interpolated_string",
    "remove_unused_if_branch",
    "remove_empty_do",
    "remove_unused_variable",
)

TOOL_NAMES = ("tl", "darklua", "stylua")


@dataclass
class ToolChain:
    """Commands and timeout for the external tools."""

    tl: str = "tl"
    darklua: str = "darklua"
    stylua: str = "stylua"
    timeout: float | None = None

    def command(self, tool: str) -> list[str]:
        """The argv prefix for tool, resolved on $PATH."""
        argv = shlex.split(getattr(self, tool))
        if not argv:
            raise ToolError(tool, "empty command")
        found = shutil.which(argv[0])
        if found is None:
            raise ToolError(tool, f"executable not found: {argv[0]}")
        return [found, *argv[1:]]

    def _run(self, tool: str, args: list[str], stdin: str | None = None, source: str = "") -> str:
        argv = [*self.command(tool), *args]
        log.debug("running %s", shlex.join(argv))
        try:
            result = subprocess.run(
                argv,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise ToolError(tool, f"timed out after {self.timeout}s", source) from None

        if result.returncode != 0:
            msg = f"failed (exit {result.returncode})"
            stderr = result.stderr.strip() or result.stdout.strip()
            if stderr:
                msg += f": {stderr}"
            raise ToolError(tool, msg, source)
        return result.stdout

    def teal_to_lua(self, path: Path, syntax_only: bool = False) -> str:
        """Compile a Teal file to Lua 5.1 text."""
        with tempfile.TemporaryDirectory(prefix="ljp-") as tmp:
            out = Path(tmp) / f"{path.stem}.lua"
            args = ["gen"]
            if not syntax_only:
                args.append("--check")
            args += ["--gen-target", "5.1", str(path), "-o", str(out)]
            self._run("tl", args, source=str(path))
            text = out.read_text(encoding="utf-8")
        # LuaJIT ships the bit library, not bit32
        return text.replace("bit32", "bit")

    def luau_to_lua(self, source: str) -> str:
        """Rewrite Luau syntax into plain Lua."""
        config = {
            "generator": "retain_lines",
            "rules": list(LUAU_RULES),
        }
        with tempfile.TemporaryDirectory(prefix="ljp-") as tmp:
            src = Path(tmp) / "input.lua"
            dst = Path(tmp) / "output.lua"
            cfg = Path(tmp) / "darklua.json"
            src.write_text(source, encoding="utf-8")
            cfg.write_text(json.dumps(config), encoding="utf-8")
            self._run(
                "darklua",
                ["process", str(src), str(dst), "--config", str(cfg)],
                source=source,
            )
            return dst.read_text(encoding="utf-8")

    def format(self, source: str) -> str:
        """Format Lua text."""
        return self._run("stylua", ["-"], stdin=source, source=source)
