"""Shell and console utilities.

Provides a thin wrapper around the ``gh`` CLI for REST calls, plus output
formatting helpers shared by the release pipeline.
"""

from __future__ import annotations

import subprocess
import sys
from typing import NoReturn


def gh_api(
    endpoint: str,
    *,
    method: str = "GET",
    payload: str | None = None,
    timeout: float = 60.0,
) -> subprocess.CompletedProcess[str]:
    """Run ``gh api`` and return the completed process without checking it.

    Args:
        endpoint: REST path relative to the API root (e.g., "repos/o/r/tags").
        method: HTTP method.
        payload: JSON request body, sent on stdin.
        timeout: Seconds before the call is abandoned.

    Returns:
        CompletedProcess with JSON on stdout on success, and gh's error
        message (including ``HTTP <status>``) on stderr on failure.
    """
    args = ["gh", "api", "-X", method, "-H", "Accept: application/vnd.github+json", endpoint]
    if payload is not None:
        args += ["--input", "-"]
    try:
        return subprocess.run(
            args,
            input=payload,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError:
        fatal("gh CLI not found. Install it from https://cli.github.com and run `gh auth login`.")


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release pipeline in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def info(msg: str) -> None:
    """Print an indented progress line under the current step."""
    print(f"  {msg}")


def warn(msg: str) -> None:
    """Print a non-fatal warning to stderr."""
    print(f"WARNING: {msg}", file=sys.stderr)


def fatal(msg: str) -> NoReturn:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the pipeline.
    """
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)
