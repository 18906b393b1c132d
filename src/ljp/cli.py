"""Command-line interface for ljp."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys
import time
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ljp.dialects import TOOL_NAMES, ToolChain
from ljp.errors import ConfigError, EvalError, LexError, ParseError, ToolError

_USER_ERRORS = (LexError, ParseError, ConfigError)
_BUILD_ERRORS = (EvalError, ToolError)


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options."""

    input_file: Path
    output_file: Path | None
    cache_dir: Path | None
    no_cache: bool
    gen_only: bool
    no_opt: bool
    tools: dict[str, str]
    tool_timeout: float | None
    watch: bool
    debug: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    p = argparse.ArgumentParser(
        prog="ljp",
        description="Compile-time macro preprocessor for Lua",
    )
    p.add_argument("input", help="Input .lua file")
    p.add_argument("-o", "--output", help="Output file (default: stdout)")
    p.add_argument("--no-cache", action="store_true", help="Always rebuild (LJP_NO_CACHE)")
    p.add_argument(
        "--gen-only",
        action="store_true",
        help="Write the cache file only, print nothing (LJP_GEN_ONLY)",
    )
    p.add_argument("--no-opt", action="store_true", help="Skip the optimizer pass (LJP_NO_OPT)")
    p.add_argument(
        "--cache-dir",
        metavar="DIR",
        help="Cache directory (default: LJP_OUT_DIR or .luajit_pro/build_cache)",
    )
    p.add_argument(
        "--config",
        metavar="FILE",
        help="Config file (default: auto-discover ljp.toml)",
    )
    p.add_argument(
        "--tool",
        action="append",
        default=[],
        metavar="NAME=CMD",
        help="Command for an external tool: tl, darklua or stylua (repeatable)",
    )
    p.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECS",
        help="External tool timeout in seconds (default: none)",
    )
    p.add_argument("--watch", action="store_true", help="Watch for changes and rebuild")
    p.add_argument("--debug", action="store_true", help="Debug logging and tree dump to stderr")
    return p


def parse_tool_arg(s: str) -> tuple[str, str]:
    """Parse a NAME=CMD string into (name, command)."""
    if "=" not in s:
        raise argparse.ArgumentTypeError(f"invalid tool format (expected NAME=CMD): {s}")
    name, _, command = s.partition("=")
    if name not in TOOL_NAMES:
        raise argparse.ArgumentTypeError(
            f"unknown tool '{name}' (expected one of: {', '.join(TOOL_NAMES)})"
        )
    return name, command


def load_config(config_path: Path | None, input_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else input_dir / "ljp.toml"

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        return tomllib.load(f)


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: config file < CLI flags.
    """
    input_file = Path(args.input)
    input_dir = input_file.parent
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    config = load_config(config_path, input_dir)

    # Tool commands: config < CLI
    tools: dict[str, str] = {}
    cfg_tools = config.get("tools")
    if isinstance(cfg_tools, dict):
        for name in TOOL_NAMES:
            cmd = cfg_tools.get(name)
            if isinstance(cmd, str):
                tools[name] = cmd
    for raw in args.tool:
        name, cmd = parse_tool_arg(raw)
        tools[name] = cmd

    # Tool timeout: config < CLI
    tool_timeout: float | None = None
    if isinstance(cfg_tools, dict):
        cfg_timeout = cfg_tools.get("timeout")
        if isinstance(cfg_timeout, (int, float)):
            tool_timeout = float(cfg_timeout)
    if args.timeout is not None:
        tool_timeout = args.timeout

    # Cache directory: config < CLI
    cache_dir: Path | None = None
    cfg_cache = config.get("cache")
    if isinstance(cfg_cache, dict):
        cfg_dir = cfg_cache.get("dir")
        if isinstance(cfg_dir, str):
            cache_dir = Path(cfg_dir)
    if args.cache_dir:
        cache_dir = Path(args.cache_dir)

    output_file = Path(args.output) if args.output else None

    return CliOptions(
        input_file=input_file,
        output_file=output_file,
        cache_dir=cache_dir,
        no_cache=args.no_cache,
        gen_only=args.gen_only,
        no_opt=args.no_opt,
        tools=tools,
        tool_timeout=tool_timeout,
        watch=args.watch,
        debug=args.debug,
    )


def compile_file(options: CliOptions) -> str:
    """Expand a Lua file through the build cache."""
    from ljp.cache import BuildCache, BuildSettings
    from ljp.debug import dump_tree
    from ljp.parser import parse

    settings = BuildSettings.from_env()
    # The environment wins over config for the cache directory, flags only add
    if options.cache_dir is not None and not _env_sets_cache_dir():
        settings = dataclasses.replace(settings, cache_dir=options.cache_dir)
    settings = dataclasses.replace(
        settings,
        no_cache=settings.no_cache or options.no_cache,
        gen_only=settings.gen_only or options.gen_only,
        no_opt=settings.no_opt or options.no_opt,
    )

    tools = ToolChain(**options.tools, timeout=options.tool_timeout)
    output = BuildCache(settings, tools=tools).build(options.input_file)

    if options.debug and output:
        dump_tree(parse(output, str(options.input_file)))

    return output


def _env_sets_cache_dir() -> bool:
    return bool(os.environ.get("LJP_OUT_DIR"))


def _write(options: CliOptions, text: str) -> None:
    if options.output_file:
        options.output_file.write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)
        sys.stdout.flush()


def watch_loop(options: CliOptions) -> None:
    """Poll input file for changes, rebuild on each modification."""
    last_mtime = 0.0
    print(f"Watching {options.input_file} for changes...", file=sys.stderr)
    try:
        while True:
            try:
                mtime = options.input_file.stat().st_mtime
            except OSError:
                time.sleep(0.5)
                continue
            if mtime != last_mtime:
                last_mtime = mtime
                try:
                    _write(options, compile_file(options))
                    print(f"Compiled {options.input_file}", file=sys.stderr)
                except (*_USER_ERRORS, *_BUILD_ERRORS) as exc:
                    print(str(exc), file=sys.stderr)
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="[ljp] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        options = resolve_options(args)
    except argparse.ArgumentTypeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if options.watch:
        watch_loop(options)
        return 0

    try:
        output = compile_file(options)
    except _USER_ERRORS as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except _BUILD_ERRORS as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    _write(options, output)
    return 0


def run() -> None:
    """Console script wrapper around main()."""
    sys.exit(main())
