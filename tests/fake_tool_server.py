"""Minimal FastMCP stdio server used by the supervisor tests.

Tools: echo(text), sleep(seconds, text), fail(message), crash(code),
env(name), image().

Flags:
  --exit-immediately     exit before serving anything
  --startup-delay SECS   sleep before serving
"""

from __future__ import annotations

import asyncio
import os
import sys
import time

from mcp.server.fastmcp import FastMCP, Image

mcp = FastMCP("fake")

# PNG signature; enough for a non-text content block.
_PIXEL = b"\x89PNG\r\n\x1a\n"


@mcp.tool()
def echo(text: str = "") -> str:
    return text


@mcp.tool()
async def sleep(seconds: float = 0, text: str = "slept") -> str:
    await asyncio.sleep(seconds)
    return text


@mcp.tool()
def fail(message: str = "failed") -> str:
    raise RuntimeError(message)


@mcp.tool()
def crash(code: int = 3) -> str:
    sys.stdout.flush()
    os._exit(code)


@mcp.tool()
def env(name: str) -> str:
    return os.environ.get(name, "")


@mcp.tool()
def image() -> Image:
    return Image(data=_PIXEL, format="png")


def main() -> None:
    if "--exit-immediately" in sys.argv:
        sys.exit(1)
    if "--startup-delay" in sys.argv:
        time.sleep(float(sys.argv[sys.argv.index("--startup-delay") + 1]))
    mcp.run()


if __name__ == "__main__":
    main()
