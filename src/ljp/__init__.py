"""ljp: compile-time macro preprocessor for Lua."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ljp.dialects import ToolChain
    from ljp.pragma import Params

__version__ = "0.1.0"


def transform(
    source: str,
    filename: str = "input.lua",
    params: Params | None = None,
    tools: ToolChain | None = None,
) -> str:
    """Expand macro sites and run the pragma's pipeline over Lua source."""
    from ljp.pipeline import transform_source

    return transform_source(source, filename, params, tools=tools)
