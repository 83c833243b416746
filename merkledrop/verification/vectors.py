"""
merkledrop/verification/vectors.py

Cross-implementation test vectors.

The bundle carries EVERY intermediate value, so an independent verifier
(an on-chain contract test, a JS client) can find the exact step where
it diverges:

    per entry:
        encoded       abi.encode(address, uint256), 64 bytes
        inner_hash    keccak256(encoded)
        leaf          keccak256(inner_hash)
        proof         sibling path, bottom-up
        struct_hash   keccak256(abi.encode(CLAIM_TYPEHASH, account, amount))
        message_hash  the EIP-712 digest the recipient signs
    once:
        root, domain fields, both type strings and type hashes, domain separator
"""

from typing import Any, Dict

from merkledrop.builder.distribution import Distribution
from merkledrop.core.encoding import LEAF_ENCODING, encode_entitlement
from merkledrop.core.hashing import keccak256, to_hex
from merkledrop.core.typed_data import EIP712Domain, claim_struct_hash, describe_domain


VECTOR_FORMAT = "merkledrop-vectors/1"


def build_vector_bundle(distribution: Distribution, domain: EIP712Domain) -> Dict[str, Any]:
    entries = []
    for entry in distribution.entries:
        encoded    = encode_entitlement(entry.recipient, entry.amount)
        inner_hash = keccak256(encoded)
        entries.append({
            "recipient":    entry.recipient,
            "amount":       str(entry.amount),
            "encoded":      to_hex(encoded),
            "inner_hash":   to_hex(inner_hash),
            "leaf":         to_hex(keccak256(inner_hash)),
            "proof":        [to_hex(p) for p in entry.proof],
            "struct_hash":  to_hex(claim_struct_hash(entry.recipient, entry.amount)),
            "message_hash": to_hex(domain.message_hash(entry.recipient, entry.amount)),
        })

    return {
        "format":        VECTOR_FORMAT,
        "leaf_encoding": LEAF_ENCODING,
        "root":          to_hex(distribution.root),
        "domain":        {**domain.to_dict(), **describe_domain(domain)},
        "entries":       entries,
    }
