"""
merkledrop/cli/verify.py

merkledrop verify — distribution artifact verification
======================================================

Recomputes every leaf and proof in an artifact before its root is
published, or before entries are handed to recipients.

Usage:
    merkledrop verify distribution.json                 Human output (default)
    merkledrop verify distribution.json --format json   Machine-readable JSON
    merkledrop verify distribution.json --root 0x...    Check against a published root
    merkledrop verify distribution.json --quiet         Exit code only

Exit codes:
    0  Artifact fully valid
    1  Artifact has violations
    2  Error  (file missing, malformed JSON, bad --root)
"""

import sys
from pathlib import Path
from typing import Optional

import click

from merkledrop.builder.distribution import Distribution
from merkledrop.core.exceptions import MerkleDropError
from merkledrop.core.hashing import HASH_LENGTH, from_hex
from merkledrop.cli.output import _Color, echo_json, emit_error, row_fail, row_info, row_ok
from merkledrop.verification.verify import DistributionReport, verify_distribution


@click.command(name="verify")
@click.argument("distribution", type=click.Path(exists=False))
@click.option(
    "--root", "expected_root",
    default=None,
    metavar="HEX",
    help="Published root to verify against (default: the artifact's own root).",
)
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--quiet",
    is_flag=True,
    default=False,
    help="Suppress all output. Use exit code only (0=valid, 1=invalid, 2=error).",
)
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
def verify_command(
    distribution:  str,
    expected_root: Optional[str],
    fmt:           str,
    quiet:         bool,
    no_color:      bool,
) -> None:
    """
    Verify a distribution artifact: leaves, proofs, root.

    DISTRIBUTION is the JSON file written by `merkledrop build`.
    """
    _Color.configure(not no_color)

    root: Optional[bytes] = None
    try:
        if expected_root is not None:
            root = from_hex(expected_root, HASH_LENGTH)
        loaded = Distribution.load(Path(distribution))
    except FileNotFoundError as e:
        if not quiet:
            emit_error(str(e), fmt)
        sys.exit(2)
    except MerkleDropError as e:
        if not quiet:
            emit_error(str(e), fmt)
        sys.exit(2)

    report = verify_distribution(loaded, expected_root=root)

    if quiet:
        sys.exit(0 if report.valid else 1)

    if fmt == "json":
        echo_json(report.to_dict())
    else:
        _output_human(report, Path(distribution))

    sys.exit(0 if report.valid else 1)


def _output_human(report: DistributionReport, path: Path) -> None:
    BAR_HEAVY = "═" * 68
    BAR_LIGHT = "─" * 68

    click.echo()
    click.echo(_Color.bold(f"  {BAR_HEAVY}"))
    click.echo(_Color.bold(  "  MerkleDrop  ·  Distribution Verification"))
    click.echo(_Color.bold(f"  {BAR_HEAVY}"))
    click.echo()

    click.echo(row_info("Artifact",     str(path)))
    click.echo(row_info("Root",         _Color.cyan(report.root)))
    click.echo(row_info("Recipients",   f"{report.total_entries:,}"))
    click.echo(row_info("Total amount", str(report.total_amount)))
    click.echo(row_info("Commitment",   report.commitment))
    click.echo()

    by_type = {}
    for v in report.violations:
        by_type.setdefault(v.violation_type, []).append(v)

    for label, kind, ok_text in (
        ("Leaves",     "leaf_mismatch", "all recomputed from (recipient, amount)"),
        ("Proofs",     "invalid_proof", "all reach the root"),
        ("Roots",      "root_mismatch", "consistent"),
        ("Recipients", "duplicate",     "unique"),
    ):
        found = by_type.get(kind, [])
        if found:
            click.echo(row_fail(label, _Color.red(f"{len(found)} violation(s)")))
        else:
            click.echo(row_ok(label, ok_text))
    click.echo()

    if report.violations:
        click.echo(f"  {BAR_LIGHT}")
        for v in report.violations:
            index = "-" if v.index is None else str(v.index)
            click.echo(
                f"  {_Color.red(index):>6}  {_Color.yellow(f'{v.violation_type:<14}')}  "
                f"{v.recipient or ''}  {v.detail}"
            )
        click.echo(f"  {BAR_LIGHT}")
        click.echo()

    click.echo(f"  {BAR_LIGHT}")
    if report.valid:
        click.echo(_Color.green(_Color.bold("  VALID  ·  0 violations")))
    else:
        n = len(report.violations)
        click.echo(_Color.red(_Color.bold(f"  INVALID  ·  {n} violation(s)")))
    click.echo(f"  {BAR_LIGHT}")
    click.echo()
