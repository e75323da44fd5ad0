#!/usr/bin/env python3
"""Shared service protocol for report export service wrappers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from core.errors import ReportExportError


@dataclass
class ServiceEnvelope:
    service: str
    ok: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.payload)
        out["ok"] = bool(out.get("ok", self.ok))
        out["service"] = self.service
        if self.meta:
            out["service_meta"] = dict(self.meta)
        return out


@dataclass(frozen=True)
class ExportArtifact:
    """A document written by an export run."""

    path: str
    mime_type: str
    size_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "kind": "document", "mime_type": self.mime_type, "size_bytes": self.size_bytes}


def ok_response(service: str, payload: Dict[str, Any] | None = None, meta: Dict[str, Any] | None = None) -> ServiceEnvelope:
    return ServiceEnvelope(service=service, ok=True, payload=payload or {}, meta=meta or {})


def error_response(
    service: str,
    error: str,
    *,
    code: str = "service_error",
    meta: Dict[str, Any] | None = None,
    payload: Dict[str, Any] | None = None,
) -> ServiceEnvelope:
    out = dict(payload or {})
    out.setdefault("error", error)
    out.setdefault("error_code", code)
    out.setdefault("ok", False)
    return ServiceEnvelope(service=service, ok=False, payload=out, meta=meta or {})


def from_error(service: str, exc: ReportExportError, *, meta: Dict[str, Any] | None = None) -> ServiceEnvelope:
    """Client-facing envelope for a typed pipeline error; the code is lower-cased."""
    return error_response(
        service,
        exc.message,
        code=exc.code.lower(),
        meta=meta,
        payload={"details": dict(exc.details)},
    )
