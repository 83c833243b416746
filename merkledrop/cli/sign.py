"""
merkledrop/cli/sign.py

merkledrop message-hash / merkledrop sign

Usage:
    merkledrop message-hash 0xAbC... 1000 --chain-id 1 --contract 0xDef...
    merkledrop sign 0xAbC... 1000 --key key.hex --config distributor.yaml
    merkledrop sign 0xAbC... 1000 --key keystore.json --password ...

message-hash prints the digest and the typed-data document a wallet signs
(eth_signTypedData_v4). sign produces {v, r, s, signature} for a relayer.

Exit codes:
    0  success
    1  key does not belong to the recipient (the signature would be rejected)
    2  error  (bad arguments, unresolved domain, unreadable key)
"""

import sys
from pathlib import Path
from typing import Optional

import click

from merkledrop.cli.domain import domain_options, resolve_domain
from merkledrop.cli.output import echo_json, emit_error
from merkledrop.core.crypto import Secp256k1KeyManager
from merkledrop.core.exceptions import MerkleDropError
from merkledrop.core.hashing import to_hex
from merkledrop.core.models import Entitlement


@click.command(name="message-hash")
@click.argument("address")
@click.argument("amount")
@domain_options
def message_hash_command(
    address:        str,
    amount:         str,
    config_path:    Optional[str],
    chain_id:       Optional[int],
    contract:       Optional[str],
    domain_name:    Optional[str],
    domain_version: Optional[str],
) -> None:
    """
    Print the EIP-712 digest ADDRESS signs to claim AMOUNT.
    """
    try:
        claim  = Entitlement.create(address, amount)
        domain = resolve_domain(config_path, chain_id, contract, domain_name, domain_version)
    except MerkleDropError as e:
        emit_error(str(e))
        sys.exit(2)

    echo_json({
        "recipient":    claim.recipient,
        "amount":       str(claim.amount),
        "message_hash": to_hex(domain.message_hash(claim.recipient, claim.amount)),
        "typed_data":   domain.typed_data(claim.recipient, claim.amount),
    })


@click.command(name="sign")
@click.argument("address")
@click.argument("amount")
@click.option(
    "--key", "key_path",
    required=True,
    type=click.Path(dir_okay=False),
    help="Hex private key file, or an Ethereum keystore when --password is given.",
)
@click.option(
    "--password",
    default=None,
    envvar="MERKLEDROP_KEYSTORE_PASSWORD",
    help="Keystore password (env: MERKLEDROP_KEYSTORE_PASSWORD).",
)
@domain_options
def sign_command(
    address:        str,
    amount:         str,
    key_path:       str,
    password:       Optional[str],
    config_path:    Optional[str],
    chain_id:       Optional[int],
    contract:       Optional[str],
    domain_name:    Optional[str],
    domain_version: Optional[str],
) -> None:
    """
    Sign ADDRESS's authorization to claim AMOUNT.
    """
    try:
        claim  = Entitlement.create(address, amount)
        domain = resolve_domain(config_path, chain_id, contract, domain_name, domain_version)
    except MerkleDropError as e:
        emit_error(str(e))
        sys.exit(2)

    try:
        if password is not None:
            key = Secp256k1KeyManager.from_keystore(Path(key_path), password)
        else:
            key = Secp256k1KeyManager.from_file(Path(key_path))
    except (FileNotFoundError, ValueError) as e:
        emit_error(f"Cannot load key: {e}")
        sys.exit(2)

    if key.address != claim.recipient:
        emit_error(
            f"Key belongs to {key.address}, not {claim.recipient}; "
            "the distributor would reject this signature"
        )
        sys.exit(1)

    signature = key.sign_claim(domain, claim.recipient, claim.amount)
    echo_json({
        "recipient":    claim.recipient,
        "amount":       str(claim.amount),
        "message_hash": to_hex(domain.message_hash(claim.recipient, claim.amount)),
        **signature.to_dict(),
    })
