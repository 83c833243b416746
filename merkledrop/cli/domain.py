"""
merkledrop/cli/domain.py

Domain selection shared by message-hash, sign and vectors.

A command targets one distributor instance, named either by a config file
(--config, or MERKLEDROP_CONFIG) or by explicit options. Explicit options
override the matching config fields.
"""

from typing import Callable, Optional

import click

from merkledrop.core.config import DistributorConfig
from merkledrop.core.exceptions import ConfigError
from merkledrop.core.typed_data import DEFAULT_NAME, DEFAULT_VERSION, EIP712Domain


def domain_options(f: Callable) -> Callable:
    """Attach --config, --chain-id, --contract, --name, --domain-version."""
    options = [
        click.option(
            "--config", "config_path",
            type=click.Path(dir_okay=False),
            default=None,
            envvar="MERKLEDROP_CONFIG",
            help="Distributor YAML config (env: MERKLEDROP_CONFIG).",
        ),
        click.option("--chain-id", type=int, default=None, help="EIP-712 chainId."),
        click.option(
            "--contract", default=None, metavar="ADDRESS",
            help="Distributor address (EIP-712 verifyingContract).",
        ),
        click.option("--name", "domain_name", default=None, help="EIP-712 domain name."),
        click.option("--domain-version", default=None, help="EIP-712 domain version."),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def resolve_domain(
    config_path:    Optional[str],
    chain_id:       Optional[int],
    contract:       Optional[str],
    domain_name:    Optional[str],
    domain_version: Optional[str],
) -> EIP712Domain:
    """
    Build the EIP-712 domain from a config file and/or explicit options.
    Raises ConfigError when chainId or the contract address is unresolved.
    """
    name    = DEFAULT_NAME
    version = DEFAULT_VERSION

    if config_path:
        config = DistributorConfig.from_yaml(config_path)
        chain_id = chain_id if chain_id is not None else config.chain_id
        contract = contract or config.address
        name     = config.name
        version  = config.version

    if chain_id is None or not contract:
        raise ConfigError(
            "Domain needs --chain-id and --contract, or --config",
        )

    return EIP712Domain(
        chain_id=           chain_id,
        verifying_contract= contract,
        name=               domain_name or name,
        version=            domain_version or version,
    )
