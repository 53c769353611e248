"""cashuA token encoding.

A token is the prefix "cashuA" followed by url-safe base64 of
{"token": [{"mint": url, "proofs": [...]}], "unit": "sat"}. Proofs from
several mints are grouped into one entry per mint.
"""

import base64
import json
from typing import Iterable, Optional

from lnmixer.models import EcashProof

TOKEN_PREFIX = "cashuA"


def encode_token(
    proofs: Iterable[EcashProof], unit: str = "sat", memo: Optional[str] = None
) -> str:
    """Serialize proofs into a cashuA token string."""
    entries: dict[str, list[dict]] = {}
    for proof in proofs:
        entries.setdefault(proof.mint_url, []).append(proof.to_wire())

    if not entries:
        raise ValueError("Cannot encode an empty token")

    payload: dict = {
        "token": [{"mint": mint, "proofs": wire} for mint, wire in entries.items()],
        "unit": unit,
    }
    if memo:
        payload["memo"] = memo

    raw = json.dumps(payload, separators=(",", ":")).encode()
    return TOKEN_PREFIX + base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_token(token: str) -> list[EcashProof]:
    """Parse a cashuA token back into proofs tagged with their mint."""
    token = token.strip()
    if not token.startswith(TOKEN_PREFIX):
        raise ValueError(f"Unsupported token format (expected {TOKEN_PREFIX} prefix)")

    body = token[len(TOKEN_PREFIX):]
    body += "=" * (-len(body) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(body))
    except (ValueError, json.JSONDecodeError) as e:
        raise ValueError(f"Malformed token: {e}") from e

    currency = str(payload.get("unit", "sat")).upper()
    proofs = []
    for entry in payload.get("token", []):
        mint = entry.get("mint", "")
        for wire in entry.get("proofs", []):
            proofs.append(EcashProof.from_wire(wire, mint_url=mint, currency=currency))
    return proofs
