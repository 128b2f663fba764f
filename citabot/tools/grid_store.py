"""
Spreadsheet grid where each cell holds the appointments of one weekday/time.

Ranges use A1 notation with the sheet name, e.g. ``Calendario!B2``.
"""

import logging
from typing import Any

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError

from citabot.errors import GridStoreError

logger = logging.getLogger(__name__)


class GoogleSheetsGridStore:
    """Grid store backed by the Google Sheets v4 values API."""

    def __init__(self, service: Any, spreadsheet_id: str) -> None:
        self._values = service.spreadsheets().values()
        self._spreadsheet_id = spreadsheet_id

    def read_cell(self, cell_range: str) -> str:
        """Return the cell's text, or "" for an empty cell."""
        try:
            resp = self._values.get(
                spreadsheetId=self._spreadsheet_id, range=cell_range,
            ).execute()
        except (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError) as exc:
            raise GridStoreError(f"Reading {cell_range} failed: {exc}") from exc
        rows = resp.get("values", [])
        if not rows or not rows[0]:
            return ""
        return str(rows[0][0])

    def write_cell(self, cell_range: str, value: str) -> None:
        self.write_range(cell_range, [[value]])

    def write_range(self, cell_range: str, rows: list[list[str]]) -> None:
        """Write a block of values starting at the range's top-left cell."""
        try:
            self._values.update(
                spreadsheetId=self._spreadsheet_id,
                range=cell_range,
                valueInputOption="RAW",
                body={"values": rows},
            ).execute()
        except (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError) as exc:
            raise GridStoreError(f"Writing {cell_range} failed: {exc}") from exc
        logger.debug("Wrote %s", cell_range)


class InMemoryGridStore:
    """Dict-backed grid for the offline console and tests."""

    def __init__(self) -> None:
        self._cells: dict[str, str] = {}

    def read_cell(self, cell_range: str) -> str:
        return self._cells.get(cell_range, "")

    def write_cell(self, cell_range: str, value: str) -> None:
        self._cells[cell_range] = value

    def write_range(self, cell_range: str, rows: list[list[str]]) -> None:
        sheet, _, origin = cell_range.rpartition("!")
        column = "".join(ch for ch in origin if ch.isalpha())
        row = int("".join(ch for ch in origin if ch.isdigit()))
        prefix = f"{sheet}!" if sheet else ""
        for row_offset, values in enumerate(rows):
            for col_offset, value in enumerate(values):
                letter = chr(ord(column) + col_offset)
                self._cells[f"{prefix}{letter}{row + row_offset}"] = value

    def cells(self) -> dict[str, str]:
        """Copy of every non-empty cell, keyed by range."""
        return {key: value for key, value in self._cells.items() if value}

    def reset(self) -> None:
        self._cells.clear()
