"""Authorization checks for the global allotment toggle."""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class AllotmentCaller:
    identity: str
    secret: Optional[str] = None


class GlobalAllotmentAuthorizer(Protocol):
    def can_enable_global_allotment(self, caller: AllotmentCaller) -> bool: ...


class SharedSecretAuthorizer:
    """Grants the toggle to any caller presenting the configured secret."""

    def __init__(self, secret: str):
        self._secret = secret.encode()

    def can_enable_global_allotment(self, caller: AllotmentCaller) -> bool:
        if caller.secret is None:
            return False
        return hmac.compare_digest(caller.secret.encode(), self._secret)
