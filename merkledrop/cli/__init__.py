"""
merkledrop/cli/__init__.py

MerkleDrop CLI — root Click command group.

This file is the sole entry point for the `merkledrop` terminal command.
It is registered in pyproject.toml as:

    [project.scripts]
    merkledrop = "merkledrop.cli:cli"

Adding a new command:
    1. Create merkledrop/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

import logging

import click

from merkledrop.cli.build import build_command, proof_command
from merkledrop.cli.sign import message_hash_command, sign_command
from merkledrop.cli.vectors import vectors_command
from merkledrop.cli.verify import verify_command


@click.group()
@click.version_option(package_name="merkledrop")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity (logs go to stderr).",
)
def cli(log_level: str) -> None:
    """
    MerkleDrop — Merkle airdrop distribution tooling.

    \b
    Commands:
      build         Build the tree and every recipient's proof from a whitelist.
      proof         Print one recipient's artifact record.
      verify        Recompute every leaf and proof in an artifact.
      message-hash  Print the EIP-712 digest a recipient signs.
      sign          Sign a claim authorization with a key file or keystore.
      vectors       Emit cross-implementation test vectors.

    \b
    Quick start:
      merkledrop build whitelist.json -o distribution.json
      merkledrop verify distribution.json
      merkledrop sign 0xAbC... 1000 --key key.hex --config distributor.yaml
    """
    logging.basicConfig(
        level=  getattr(logging, log_level.upper()),
        format= "%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


cli.add_command(build_command)
cli.add_command(proof_command)
cli.add_command(verify_command)
cli.add_command(message_hash_command)
cli.add_command(sign_command)
cli.add_command(vectors_command)
