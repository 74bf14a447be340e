from __future__ import annotations

import hashlib
import hmac
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from django.utils.crypto import constant_time_compare

from core.errors import InvalidPersonSignatureError

SIGNING_KEY_BYTES = 64


@dataclass(frozen=True)
class SignedPersonSearchResult:
    username: str
    display_name: str
    signature: str

    def to_dict(self) -> dict[str, str]:
        return {
            "username": self.username,
            "display_name": self.display_name,
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SignedPersonSearchResult:
        return cls(
            username=str(data.get("username") or ""),
            display_name=str(data.get("display_name") or ""),
            signature=str(data.get("signature") or ""),
        )


class PersonSearchSigner:
    """Tags person search results so a nomination can only name someone the server returned.

    The key lives for the lifetime of the process and is never persisted;
    restarting the server invalidates every outstanding search result.
    """

    def __init__(self, key: bytes | None = None) -> None:
        self._key = key if key is not None else secrets.token_bytes(SIGNING_KEY_BYTES)

    def _tag(self, *, election_id: int, username: str, display_name: str) -> str:
        # Pipes are the field separator; stripping them keeps field boundaries unambiguous.
        message = b"|".join(
            [
                int(election_id).to_bytes(4, "big", signed=True),
                username.replace("|", "").encode("utf-8"),
                display_name.replace("|", "").encode("utf-8"),
            ]
        )
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def sign(self, *, election_id: int, username: str, display_name: str) -> SignedPersonSearchResult:
        return SignedPersonSearchResult(
            username=username,
            display_name=display_name,
            signature=self._tag(election_id=election_id, username=username, display_name=display_name),
        )

    def validate(self, *, election_id: int, result: SignedPersonSearchResult) -> None:
        try:
            expected = self._tag(
                election_id=election_id,
                username=result.username,
                display_name=result.display_name,
            )
        except OverflowError as exc:
            raise InvalidPersonSignatureError("election id out of range") from exc

        if not constant_time_compare(expected, result.signature):
            raise InvalidPersonSignatureError(f"bad signature for {result.username!r} in election {election_id}")
