"""
merkledrop/core/config.py

Distributor configuration, loaded from YAML.

    distributor:
      name: MerkleAirdrop          # EIP-712 domain name    (optional)
      version: "1"                 # EIP-712 domain version (optional)
      chain_id: 31337              # required
      address: "0x..."             # required, this instance
      token: "0x..."               # required, asset identifier
      root: "0x..."                # required, 32-byte Merkle root
    ledger:
      journal: .merkledrop/claims.jsonl   # optional

Everything is fixed at initialization. There is no reload path.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from merkledrop.core.exceptions import ConfigError, ValidationError
from merkledrop.core.hashing import HASH_LENGTH, from_hex, normalize_address, to_hex
from merkledrop.core.typed_data import DEFAULT_NAME, DEFAULT_VERSION, EIP712Domain


@dataclass(frozen=True)
class DistributorConfig:
    """Initialization-time settings for one distributor instance."""

    chain_id:     int
    address:      str
    token:        str
    root:         bytes
    name:         str            = DEFAULT_NAME
    version:      str            = DEFAULT_VERSION
    journal_path: Optional[Path] = None

    @property
    def domain(self) -> EIP712Domain:
        return EIP712Domain(
            chain_id=           self.chain_id,
            verifying_contract= self.address,
            name=               self.name,
            version=            self.version,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DistributorConfig":
        """
        Build from a parsed YAML mapping.
        Raises ConfigError naming the offending key.
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")

        section = data.get("distributor")
        if not isinstance(section, dict):
            raise ConfigError("Missing 'distributor' section")

        for key in ("chain_id", "address", "token", "root"):
            if section.get(key) in (None, ""):
                raise ConfigError(f"Missing required key distributor.{key}")

        chain_id = section["chain_id"]
        if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id <= 0:
            raise ConfigError(
                "distributor.chain_id must be a positive integer",
                {"chain_id": chain_id},
            )

        try:
            address = normalize_address(_hex_field(section["address"], 20))
        except ValidationError as exc:
            raise ConfigError(f"distributor.address: {exc}") from exc
        try:
            token = normalize_address(_hex_field(section["token"], 20))
        except ValidationError as exc:
            raise ConfigError(f"distributor.token: {exc}") from exc
        try:
            root = from_hex(_hex_field(section["root"], HASH_LENGTH), HASH_LENGTH)
        except ValidationError as exc:
            raise ConfigError(f"distributor.root: {exc}") from exc

        journal = (data.get("ledger") or {}).get("journal")

        return cls(
            chain_id=     chain_id,
            address=      address,
            token=        token,
            root=         root,
            name=         str(section.get("name", DEFAULT_NAME)),
            version=      str(section.get("version", DEFAULT_VERSION)),
            journal_path= Path(journal) if journal else None,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "DistributorConfig":
        """Load from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        return cls.from_dict(data or {})

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "distributor": {
                "name":     self.name,
                "version":  self.version,
                "chain_id": self.chain_id,
                "address":  self.address,
                "token":    self.token,
                "root":     to_hex(self.root),
            }
        }
        if self.journal_path is not None:
            out["ledger"] = {"journal": str(self.journal_path)}
        return out


def _hex_field(value: Any, width: int) -> str:
    # YAML 1.1 reads an unquoted 0x... scalar as an int.
    if isinstance(value, int) and not isinstance(value, bool):
        return "0x" + format(value, "0{}x".format(width * 2))
    return str(value)
