"""Exceptions raised by the request layer around the calculators."""

from __future__ import annotations


class PaintOpsError(Exception):
    pass


class ValidationError(PaintOpsError):
    """Input rejected before any calculation or write happens."""


class NotFoundError(PaintOpsError):
    def __init__(self, item: str):
        super().__init__(f"{item} not found")
        self.item = item
