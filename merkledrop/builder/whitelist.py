"""
merkledrop/builder/whitelist.py

Whitelist loading. Accepted inputs:

    JSON list      [{"address": "0x...", "amount": "1000"}, ...]
    JSON mapping   {"0x...": "1000", ...}
    CSV            header row "address,amount", one entitlement per row

Amounts may be JSON integers or decimal strings. Order is preserved: it is
the leaf order, and therefore part of the root.
"""

import csv
import json
from pathlib import Path
from typing import Any, List

from merkledrop.core.exceptions import ValidationError
from merkledrop.core.models import Entitlement


def parse_whitelist(data: Any) -> List[Entitlement]:
    """Entitlements from already-parsed JSON (list of objects or mapping)."""
    if isinstance(data, dict):
        return [Entitlement.create(address, amount) for address, amount in data.items()]

    if not isinstance(data, list):
        raise ValidationError(
            "Whitelist must be a JSON list or object",
            {"type": type(data).__name__},
        )

    entitlements: List[Entitlement] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict) or "address" not in item or "amount" not in item:
            raise ValidationError(
                "Whitelist entry needs 'address' and 'amount'", {"index": i},
            )
        entitlements.append(Entitlement.create(item["address"], item["amount"]))
    return entitlements


def load_whitelist(path: Path) -> List[Entitlement]:
    """
    Load a whitelist file; format chosen by extension (.csv, else JSON).

    Raises FileNotFoundError if path does not exist.
    Raises ValidationError on malformed content.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Whitelist not found: {path}")

    if path.suffix.lower() == ".csv":
        return _load_csv(path)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Whitelist {path} is not valid JSON: {exc}") from exc
    return parse_whitelist(data)


def _load_csv(path: Path) -> List[Entitlement]:
    entitlements: List[Entitlement] = []
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fields = [name.strip().lower() for name in (reader.fieldnames or [])]
        if "address" not in fields or "amount" not in fields:
            raise ValidationError(
                "CSV whitelist needs an 'address,amount' header", {"path": str(path)},
            )
        for line_num, row in enumerate(reader, 2):
            row = {
                (k or "").strip().lower(): v.strip() if isinstance(v, str) else ""
                for k, v in row.items()
            }
            if not row.get("address") and not row.get("amount"):
                continue
            try:
                entitlements.append(Entitlement.create(row["address"], row["amount"]))
            except ValidationError as exc:
                raise ValidationError(
                    f"CSV line {line_num}: {exc.message}", exc.details,
                ) from exc
    return entitlements
