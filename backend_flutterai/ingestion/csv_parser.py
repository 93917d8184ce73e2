"""
Lenient wallet CSV parsing.

The first column of each row is the candidate address. Delimiter is sniffed
among comma, semicolon and tab; single-column files fall back to the excel
dialect. A header on the first row, blank lines and in-file duplicates are skipped.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field

from backend_flutterai.utils.wallet_utils import is_valid_wallet, normalize_wallet

SNIFF_SAMPLE_BYTES = 4096
HEADER_HINTS = ("wallet", "address")


@dataclass
class ParsedCsv:
    valid: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)


def _dialect_for(text: str) -> type[csv.Dialect] | csv.Dialect:
    try:
        return csv.Sniffer().sniff(text[:SNIFF_SAMPLE_BYTES], delimiters=",;\t")
    except csv.Error:
        return csv.excel


def _is_header(row: list[str]) -> bool:
    joined = " ".join(row).lower()
    return any(hint in joined for hint in HEADER_HINTS)


def parse_wallet_csv(text: str) -> ParsedCsv:
    """Split CSV text into valid (strict base58) and invalid addresses, each reported once."""
    result = ParsedCsv()
    if not text or not text.strip():
        return result

    seen: set[str] = set()
    first_row = True
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")), _dialect_for(text))
    for row in reader:
        cells = [normalize_wallet(c) for c in row]
        if not any(cells):
            continue
        candidate = cells[0]
        is_first, first_row = first_row, False
        if is_valid_wallet(candidate):
            if candidate not in seen:
                seen.add(candidate)
                result.valid.append(candidate)
            continue
        if is_first and _is_header(cells):
            continue
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        result.invalid.append(candidate)
    return result
