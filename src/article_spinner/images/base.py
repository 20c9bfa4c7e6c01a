from __future__ import annotations

from abc import ABC, abstractmethod


class ImageProvider(ABC):
    name: str

    @abstractmethod
    def search(self, query: str) -> str:
        raise NotImplementedError
