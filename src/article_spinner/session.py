from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class SessionProvider(ABC):
    @abstractmethod
    def current_author_id(self) -> Optional[str]:
        raise NotImplementedError


class StaticSessionProvider(SessionProvider):
    def __init__(self, author_id: Optional[str]):
        self.author_id = (author_id or "").strip() or None

    def current_author_id(self) -> Optional[str]:
        return self.author_id
