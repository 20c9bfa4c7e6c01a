from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import GeneratedText, StageKey


class ContentGenerator(ABC):
    name: str

    @abstractmethod
    def generate(self, title: str, stage: StageKey) -> GeneratedText:
        raise NotImplementedError
