from abc import ABC, abstractmethod
from typing import Optional

class TokenStorePort(ABC):
    """Holds the bearer token attached to REST calls."""

    @abstractmethod
    def get(self) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, token: Optional[str]) -> None:
        pass

    def clear(self) -> None:
        self.set(None)
