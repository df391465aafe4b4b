from __future__ import annotations

from typing import Dict, List, Optional, Union
from urllib.error import URLError

import pytest

import style_grabber


class FakeWeb:
    """Serves canned bodies by URL in place of real HTTP fetches."""

    def __init__(self) -> None:
        self.pages: Dict[str, Union[str, Exception]] = {}
        self.requested: List[str] = []

    def fetch_text(self, url: str, timeout: Optional[float] = None) -> str:
        self.requested.append(url)
        body = self.pages.get(url)
        if body is None:
            raise URLError("no route to host")
        if isinstance(body, Exception):
            raise body
        return body


@pytest.fixture
def fake_web(monkeypatch):
    web = FakeWeb()
    monkeypatch.setattr(style_grabber, "fetch_text", web.fetch_text)
    return web
