#!/usr/bin/env python3
"""Unified error model for the report export pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class ReportExportError(Exception):
    """Base typed exception with stable error code and metadata."""

    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class MissingInputError(ReportExportError):
    """Report id absent, report not found, or tenant mismatch."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(code="MISSING_INPUT", message=message, details=details)


class EmissionError(ReportExportError):
    """Binary container serialization failed; the export is unusable."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(code="EMISSION_FAILURE", message=message, details=details)
