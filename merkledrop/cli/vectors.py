"""
merkledrop/cli/vectors.py

merkledrop vectors — emit the cross-implementation test-vector bundle.

Usage:
    merkledrop vectors distribution.json --config distributor.yaml -o vectors.json
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from merkledrop.builder.distribution import Distribution
from merkledrop.cli.domain import domain_options, resolve_domain
from merkledrop.cli.output import echo_json, emit_error
from merkledrop.core.exceptions import MerkleDropError
from merkledrop.verification.vectors import build_vector_bundle


@click.command(name="vectors")
@click.argument("distribution", type=click.Path(exists=False))
@click.option(
    "-o", "--output", "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    metavar="PATH",
    help="Write the bundle here instead of stdout.",
)
@domain_options
def vectors_command(
    distribution:   str,
    output_path:    Optional[str],
    config_path:    Optional[str],
    chain_id:       Optional[int],
    contract:       Optional[str],
    domain_name:    Optional[str],
    domain_version: Optional[str],
) -> None:
    """
    Dump every intermediate value for DISTRIBUTION under one domain.
    """
    try:
        loaded = Distribution.load(Path(distribution))
        domain = resolve_domain(config_path, chain_id, contract, domain_name, domain_version)
    except FileNotFoundError as e:
        emit_error(str(e))
        sys.exit(2)
    except MerkleDropError as e:
        emit_error(str(e))
        sys.exit(2)

    bundle = build_vector_bundle(loaded, domain)

    if output_path is None:
        echo_json(bundle)
        return

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(bundle, indent=2) + "\n", encoding="utf-8")
    click.echo(f"Wrote {len(bundle['entries'])} vector(s) to {path}")
