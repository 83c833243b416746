"""
merkledrop/cli/build.py

merkledrop build / merkledrop proof

Usage:
    merkledrop build whitelist.json -o distribution.json
    merkledrop build whitelist.csv                        (artifact to stdout)
    merkledrop proof distribution.json 0xAbC...

Exit codes:
    0  success
    1  recipient not in the distribution (proof)
    2  error  (file missing, malformed whitelist or artifact)
"""

import sys
from pathlib import Path
from typing import Optional

import click

from merkledrop.builder.distribution import Distribution, build_distribution
from merkledrop.builder.whitelist import load_whitelist
from merkledrop.core.exceptions import MerkleDropError
from merkledrop.core.hashing import to_hex
from merkledrop.cli.output import echo_json, emit_error, row_info


@click.command(name="build")
@click.argument("whitelist", type=click.Path(exists=False))
@click.option(
    "-o", "--output", "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    metavar="PATH",
    help="Write the distribution artifact here instead of stdout.",
)
def build_command(whitelist: str, output_path: Optional[str]) -> None:
    """
    Build the Merkle tree for a whitelist and emit every recipient's proof.

    WHITELIST is a JSON list of {"address", "amount"}, a JSON object of
    address → amount, or a CSV file with an "address,amount" header.
    """
    try:
        entitlements = load_whitelist(Path(whitelist))
        distribution = build_distribution(entitlements)
    except FileNotFoundError as e:
        emit_error(str(e))
        sys.exit(2)
    except MerkleDropError as e:
        emit_error(str(e))
        sys.exit(2)

    if output_path is None:
        echo_json(distribution.to_dict())
        return

    try:
        distribution.save(Path(output_path))
    except OSError as e:
        emit_error(f"Failed to write {output_path}: {e}")
        sys.exit(2)

    click.echo(row_info("Root",         to_hex(distribution.root)))
    click.echo(row_info("Recipients",   f"{len(distribution):,}"))
    click.echo(row_info("Total amount", str(distribution.total_amount)))
    click.echo(row_info("Written",      output_path))


@click.command(name="proof")
@click.argument("distribution", type=click.Path(exists=False))
@click.argument("address")
def proof_command(distribution: str, address: str) -> None:
    """
    Print ADDRESS's artifact record {recipient, amount, proof, root, leaf}.
    """
    try:
        loaded = Distribution.load(Path(distribution))
    except FileNotFoundError as e:
        emit_error(str(e))
        sys.exit(2)
    except MerkleDropError as e:
        emit_error(str(e))
        sys.exit(2)

    try:
        entry = loaded.entry_for(address)
    except MerkleDropError as e:
        emit_error(str(e))
        sys.exit(2)
    except KeyError:
        emit_error(f"{address} is not in {distribution}")
        sys.exit(1)

    echo_json(entry.to_dict())
