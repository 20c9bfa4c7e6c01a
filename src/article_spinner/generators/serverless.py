from __future__ import annotations

from typing import Optional

import requests

from ..errors import NetworkError, ProviderError
from ..models import GeneratedText, StageKey
from .base import ContentGenerator

SECTION_BY_STAGE = {
    StageKey.TITLE_AND_SUMMARY: "titleAndSummary",
    StageKey.CONTENT: "content",
    StageKey.TLDR: "tldr",
    StageKey.IMAGE: "imageQuery",
}


class ServerlessContentGenerator(ContentGenerator):
    """Calls the article-content serverless function, one section per request."""

    name = "serverless"

    def __init__(
        self,
        endpoint: str,
        author_id: Optional[str],
        timeout_sec: float,
        session: Optional[requests.Session] = None,
    ):
        if not endpoint:
            raise ValueError("GENERATOR_ENDPOINT is required for serverless generator")
        self.endpoint = endpoint
        self.author_id = author_id
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    def generate(self, title: str, stage: StageKey) -> GeneratedText:
        section = SECTION_BY_STAGE.get(stage)
        if section is None:
            raise ValueError(f"stage '{stage.value}' is not a generation stage")

        payload = {
            "articleTitle": title,
            "section": section,
            "userId": self.author_id,
        }
        try:
            response = self.session.post(self.endpoint, json=payload, timeout=self.timeout_sec)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise NetworkError(f"content request failed: {exc}") from exc

        body = self._parse_body(response)
        if response.status_code >= 400:
            message = body.get("error") or f"Failed to generate article {section} (HTTP {response.status_code})"
            raise ProviderError(str(message))

        value = body.get(section)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ProviderError(f"content response missing '{section}': {str(body)[:200]}")
        if not isinstance(value, (str, dict)):
            raise ProviderError(f"unexpected '{section}' payload type: {type(value).__name__}")
        return value

    @staticmethod
    def _parse_body(response: requests.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            if response.status_code >= 400:
                return {}
            raise ProviderError(f"content response is not JSON: {(response.text or '')[:200]}")
        if not isinstance(body, dict):
            raise ProviderError(f"content response is not an object: {str(body)[:200]}")
        return body
