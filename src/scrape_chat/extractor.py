"""Pull breeder rows out of the directory's HTML table."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from scrape_chat.models import ExtractResult, Record

# "Showing 1 to 25 of 312 entries" / "Showing 25 of 312 entries"
_TOTAL_ENTRIES = re.compile(
    r"showing\s+[\d,]+(?:\s*(?:to|-|–)\s*[\d,]+)?\s+of\s+([\d,]+)\s+entries",
    re.IGNORECASE,
)


def parse_total_entries(text: str) -> int | None:
    match = _TOTAL_ENTRIES.search(text)
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def extract_records(html: str) -> ExtractResult:
    """
    Extract ``{name, phone, location}`` rows from every table on the page.

    Row 0 of each table is the header and is skipped. Rows with fewer than
    three cells are ignored; extra cells are ignored too.
    """
    if not html:
        return ExtractResult()

    soup = BeautifulSoup(html, "html.parser")
    records: list[Record] = []

    for table in soup.find_all("table"):
        for index, row in enumerate(table.find_all("tr")):
            if index == 0:
                continue
            cells = row.find_all("td")
            if len(cells) < 3:
                continue
            records.append(
                Record(
                    name=cells[0].get_text(" ", strip=True),
                    phone=cells[1].get_text(" ", strip=True),
                    location=cells[2].get_text(" ", strip=True),
                )
            )

    total = parse_total_entries(soup.get_text(" ", strip=True))
    return ExtractResult(records=records, total_entries=total)
