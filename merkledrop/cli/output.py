"""
merkledrop/cli/output.py

Terminal output helpers shared by every command.
"""

import json
import sys
from typing import Any

import click


class _Color:
    """
    Minimal ANSI color wrapper.
    Auto-disables when not a TTY or --no-color is passed.
    """
    _on: bool = True

    @classmethod
    def configure(cls, enabled: bool) -> None:
        cls._on = enabled and sys.stdout.isatty()

    @classmethod
    def green(cls, s: str) -> str:
        return f"\033[32m{s}\033[0m" if cls._on else s

    @classmethod
    def red(cls, s: str) -> str:
        return f"\033[31m{s}\033[0m" if cls._on else s

    @classmethod
    def yellow(cls, s: str) -> str:
        return f"\033[33m{s}\033[0m" if cls._on else s

    @classmethod
    def cyan(cls, s: str) -> str:
        return f"\033[36m{s}\033[0m" if cls._on else s

    @classmethod
    def bold(cls, s: str) -> str:
        return f"\033[1m{s}\033[0m" if cls._on else s

    @classmethod
    def dim(cls, s: str) -> str:
        return f"\033[2m{s}\033[0m" if cls._on else s


def row_ok(label: str, value: str) -> str:
    return f"  {_Color.dim(f'{label:<16}')}  {_Color.green('OK  ')}  {value}"


def row_fail(label: str, value: str) -> str:
    return f"  {_Color.dim(f'{label:<16}')}  {_Color.red('FAIL')}  {value}"


def row_info(label: str, value: str) -> str:
    return f"  {_Color.dim(f'{label:<16}')}        {value}"


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2))


def emit_error(msg: str, fmt: str = "human") -> None:
    """Emit an error in the requested format. Never raises."""
    if fmt == "json":
        click.echo(json.dumps({"error": msg, "valid": False}))
    else:
        click.echo(_Color.red(f"\n  ERROR: {msg}\n"), err=True)
