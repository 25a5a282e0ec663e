"""Shared fixtures for scrape-chat tests."""

from __future__ import annotations

from html import escape

import pytest

from scrape_chat.config import Settings
from scrape_chat.session import SessionStore

BASE_URL = "https://breeders.example.com/find-a-breeder"


@pytest.fixture()
def settings() -> Settings:
    """Settings with dummy keys and no cross-session host throttling."""
    return Settings(
        openai_api_key="test-openai-key",
        anthropic_api_key="test-anthropic-key",
        host_min_interval=0.0,
        page_delay=0.5,
    )


@pytest.fixture()
def store() -> SessionStore:
    return SessionStore(idle_timeout=3600)


def make_page(rows: list[tuple[str, str, str]], *, total: int | None = None) -> str:
    """Render a directory page: one header row plus ``rows``."""
    body = "\n".join(
        "<tr>" + "".join(f"<td>{escape(cell)}</td>" for cell in row) + "</tr>"
        for row in rows
    )
    footer = f"<div class='info'>Showing 1 to {len(rows)} of {total} entries</div>" if total else ""
    return f"""\
<html>
<body>
  <table>
    <tr><th>Name</th><th>Phone</th><th>Location</th></tr>
{body}
  </table>
  {footer}
</body>
</html>
"""


def rows_for(page: int, count: int = 3) -> list[tuple[str, str, str]]:
    return [(f"Breeder {page}-{i}", f"555-{page:02d}{i:02d}", "MOTT ND") for i in range(1, count + 1)]


class FakeSite:
    """Stands in for ``fetch_page``: serves canned HTML and records each call."""

    def __init__(self, pages: dict[int, str], failures: dict[int, Exception] | None = None) -> None:
        self.pages = pages
        self.failures = failures or {}
        self.calls: list[tuple[str, int]] = []

    def __call__(self, base: str, page: int, settings: Settings) -> str:
        self.calls.append((base, page))
        if page in self.failures:
            raise self.failures[page]
        return self.pages.get(page, make_page([]))

    @property
    def fetched_pages(self) -> list[int]:
        return [page for _, page in self.calls]
