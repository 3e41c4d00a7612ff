from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class EmailContent:
    """Plain-text view of a Gmail message, as handed to the extraction prompt."""

    subject: str = ""
    sender: str = ""
    date: str = ""
    body: str = ""
