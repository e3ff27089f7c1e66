from typing import Optional

from leadsync.core.interfaces.token_store import TokenStorePort


class InMemoryTokenStore(TokenStorePort):
    """Process-local token holder; the token lives as long as the session."""

    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: Optional[str]) -> None:
        self._token = token or None
