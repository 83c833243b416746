"""
tests/test_config.py

YAML distributor configuration.

Run:
    pytest tests/test_config.py -v
"""

from pathlib import Path

import pytest
import yaml

from merkledrop.core.config import DistributorConfig
from merkledrop.core.exceptions import ConfigError
from merkledrop.core.hashing import to_hex

from conftest import CHAIN_ID, DISTRIBUTOR_ADDRESS, TOKEN_ADDRESS


ROOT = "0x" + "ab" * 32


def write_config(tmp_path, text: str) -> Path:
    path = tmp_path / "distributor.yaml"
    path.write_text(text)
    return path


class TestLoad:

    def test_full(self, tmp_path):
        path = write_config(tmp_path, f"""
distributor:
  name: TestDrop
  version: "2"
  chain_id: {CHAIN_ID}
  address: "{DISTRIBUTOR_ADDRESS.lower()}"
  token: "{TOKEN_ADDRESS}"
  root: "{ROOT}"
ledger:
  journal: {tmp_path / "claims.jsonl"}
""")
        config = DistributorConfig.from_yaml(path)

        assert config.chain_id == CHAIN_ID
        assert config.address == DISTRIBUTOR_ADDRESS
        assert config.token == TOKEN_ADDRESS
        assert to_hex(config.root) == ROOT
        assert config.name == "TestDrop"
        assert config.version == "2"
        assert config.journal_path == tmp_path / "claims.jsonl"

        domain = config.domain
        assert domain.chain_id == CHAIN_ID
        assert domain.verifying_contract == DISTRIBUTOR_ADDRESS
        assert domain.name == "TestDrop"

    def test_defaults(self, tmp_path):
        path = write_config(tmp_path, f"""
distributor:
  chain_id: 1
  address: "{DISTRIBUTOR_ADDRESS}"
  token: "{TOKEN_ADDRESS}"
  root: "{ROOT}"
""")
        config = DistributorConfig.from_yaml(path)
        assert config.name == "MerkleAirdrop"
        assert config.version == "1"
        assert config.journal_path is None

    def test_unquoted_hex_values(self, tmp_path):
        """YAML 1.1 reads unquoted 0x... as integers; they must still load."""
        path = write_config(tmp_path, f"""
distributor:
  chain_id: 1
  address: {DISTRIBUTOR_ADDRESS}
  token: {TOKEN_ADDRESS}
  root: 0x{"00" * 31}01
""")
        config = DistributorConfig.from_yaml(path)
        assert config.address == DISTRIBUTOR_ADDRESS
        assert config.token == TOKEN_ADDRESS
        assert config.root == b"\x00" * 31 + b"\x01"

    def test_round_trip(self, tmp_path):
        config = DistributorConfig(
            chain_id=     CHAIN_ID,
            address=      DISTRIBUTOR_ADDRESS,
            token=        TOKEN_ADDRESS,
            root=         bytes.fromhex("ab" * 32),
            journal_path= tmp_path / "claims.jsonl",
        )
        path = write_config(tmp_path, yaml.safe_dump(config.to_dict()))
        assert DistributorConfig.from_yaml(path) == config


class TestErrors:

    @pytest.mark.parametrize("key", ["chain_id", "address", "token", "root"])
    def test_missing_required_key(self, key):
        section = {
            "chain_id": 1,
            "address":  DISTRIBUTOR_ADDRESS,
            "token":    TOKEN_ADDRESS,
            "root":     ROOT,
        }
        del section[key]
        with pytest.raises(ConfigError, match=f"distributor.{key}"):
            DistributorConfig.from_dict({"distributor": section})

    @pytest.mark.parametrize("field,value", [
        ("chain_id", 0),
        ("chain_id", "one"),
        ("address",  "0x1234"),
        ("token",    "nope"),
        ("root",     "0x1234"),
        ("root",     "ab" * 32),
    ])
    def test_invalid_value(self, field, value):
        section = {
            "chain_id": 1,
            "address":  DISTRIBUTOR_ADDRESS,
            "token":    TOKEN_ADDRESS,
            "root":     ROOT,
        }
        section[field] = value
        with pytest.raises(ConfigError, match=field):
            DistributorConfig.from_dict({"distributor": section})

    def test_missing_section(self):
        with pytest.raises(ConfigError, match="distributor"):
            DistributorConfig.from_dict({"ledger": {}})

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            DistributorConfig.from_yaml(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = write_config(tmp_path, "distributor: [unclosed\n")
        with pytest.raises(ConfigError):
            DistributorConfig.from_yaml(path)

    def test_empty_file(self, tmp_path):
        path = write_config(tmp_path, "")
        with pytest.raises(ConfigError):
            DistributorConfig.from_yaml(path)
