"""Build cache — skip the pipeline for files that have not changed.

The expanded output of ``src/foo.lua`` is stored as ``<cache-dir>/foo.lua``.
Its first line is the source's pragma with the parameter record rewritten
to the values actually used, for example::

    --[[luajit-pro, { DEBUG = false }]]   (source)
    --[[luajit-pro, { DEBUG = true }]]    (cache, built with DEBUG=true)

A cached file is reused when it is at least as new as the source and no
environment override disagrees with a recorded value.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path

from ljp.builtins import PRAGMA_MARKER
from ljp.dialects import ToolChain
from ljp.evaluator import Evaluator
from ljp.pipeline import env_flag, transform_source
from ljp.pragma import (
    Params,
    Pragma,
    effective_params,
    first_line,
    parse_params,
    parse_pragma,
    rewrite_pragma,
)

log = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path(".luajit_pro") / "build_cache"


class CacheDecision(Enum):
    MISS = auto()
    HIT_REUSE = auto()
    HIT_REBUILD = auto()


@dataclass(frozen=True, slots=True)
class BuildSettings:
    """Process-wide build switches."""

    cache_dir: Path = DEFAULT_CACHE_DIR
    no_cache: bool = False
    gen_only: bool = False
    no_opt: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BuildSettings:
        """Read LJP_OUT_DIR, LJP_NO_CACHE, LJP_GEN_ONLY and LJP_NO_OPT."""
        env = os.environ if environ is None else environ
        out_dir = env.get("LJP_OUT_DIR")
        return cls(
            cache_dir=Path(out_dir) if out_dir else DEFAULT_CACHE_DIR,
            no_cache=env_flag("LJP_NO_CACHE", env),
            gen_only=env_flag("LJP_GEN_ONLY", env),
            no_opt=env_flag("LJP_NO_OPT", env),
        )


def stamp_output(output: str, pragma_line: str, params: Params) -> str:
    """Put the pragma, with params as its record, on the output's first line.

    The output's own first line is replaced if it still carries the marker;
    otherwise the pragma is joined to it so line numbers do not shift.
    """
    stamped = rewrite_pragma(pragma_line, params)
    head, newline, rest = output.partition("\n")
    if PRAGMA_MARKER in head:
        return stamped + newline + rest
    return f"{stamped} {output}"


class BuildCache:
    """Decides between reusing and rebuilding, and runs the pipeline."""

    def __init__(
        self,
        settings: BuildSettings | None = None,
        *,
        tools: ToolChain | None = None,
        evaluator: Evaluator | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.settings = settings if settings is not None else BuildSettings.from_env()
        self.tools = tools
        self.evaluator = evaluator
        self.environ = environ

    def cache_path(self, path: Path) -> Path:
        return self.settings.cache_dir / path.name

    def decide(self, path: Path, pragma: Pragma | None = None) -> CacheDecision:
        """Whether the cached output of path can be reused."""
        if pragma is None:
            pragma = parse_pragma(path.read_text(encoding="utf-8"), str(path))
        if pragma.no_cache or self.settings.no_cache or self.settings.gen_only:
            return CacheDecision.MISS

        cached = self.cache_path(path)
        if not cached.is_file():
            return CacheDecision.MISS
        if path.stat().st_mtime > cached.stat().st_mtime:
            return CacheDecision.MISS

        recorded = parse_params(first_line(cached.read_text(encoding="utf-8")), str(cached))
        if recorded is None:
            return CacheDecision.HIT_REUSE
        # Unset overrides fall back to the recorded values, not the source
        # defaults, so output built under a since-removed override is reused.
        for (key, value), (_, current) in zip(recorded, effective_params(recorded, self.environ)):
            if value != current:
                log.debug("%s: parameter %s changed (%s -> %s)", path, key, value, current)
                return CacheDecision.HIT_REBUILD
        return CacheDecision.HIT_REUSE

    def build(self, path: str | Path) -> str:
        """Return the expanded text of path, from the cache when possible.

        With gen-only set the output is written to the cache and "" is
        returned.
        """
        path = Path(path)
        source = path.read_text(encoding="utf-8")
        pragma = parse_pragma(source, str(path))
        cached = self.cache_path(path)

        decision = self.decide(path, pragma)
        log.debug("%s: %s", path, decision.name)
        if decision is CacheDecision.HIT_REUSE:
            return cached.read_text(encoding="utf-8")

        params = effective_params(pragma.params, self.environ)
        output = transform_source(
            source,
            path,
            params,
            tools=self.tools,
            evaluator=self.evaluator,
            no_opt=self.settings.no_opt,
        )
        if pragma.marked:
            output = stamp_output(output, pragma.line, params)

        cached.parent.mkdir(parents=True, exist_ok=True)
        cached.write_text(output, encoding="utf-8")

        if self.settings.gen_only:
            log.info("[gen only] output file: %s", cached)
            return ""
        return output
