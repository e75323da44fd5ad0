#!/usr/bin/env python3
"""Snapshot builders shared by the report export tests."""

from __future__ import annotations

import base64
import datetime as dt
import json
from typing import Any, Dict, List, Optional

from scripts.report_aggregate import ISSUE_PREFIX, FOLLOW_UP_PREFIX, Aggregate, build_aggregate

PNG_1PX = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
TODAY = dt.date(2026, 3, 10)


def report_row(**overrides: Any) -> Dict[str, Any]:
    row = {
        "id": "r1",
        "tenant_id": "t1",
        "name": "[ARCHIVED] Spring Outage",
        "start_date": "2026-03-02",
        "end_date": "2026-03-12",
        "status": "archived",
    }
    row.update(overrides)
    return row


def scenario_a_payload() -> Dict[str, Any]:
    """Ten work orders: 6 complete, 3 open, 1 cancelled."""
    statuses = ["complete"] * 6 + ["open"] * 3 + ["cancelled"]
    work_orders = []
    for idx, status in enumerate(statuses, start=1):
        work_orders.append(
            {
                "id": f"wo{idx}",
                "report_id": "r1",
                "wo_number": f"WO-{idx:03d}",
                "title": f"Valve {idx}",
                "status": status,
                "cancelled_reason": "Parts late" if status == "cancelled" else None,
                "completed_at": "2026-03-08T14:30:00" if status == "complete" else None,
            }
        )
    updates = [
        {"id": "u1", "work_order_id": "wo1", "comment": "Isolated", "photo_urls": "[]", "created_at": "2026-03-08T08:00:00"},
        {"id": "u2", "work_order_id": "wo1", "comment": "Replaced seal", "photo_urls": "[]", "created_at": "2026-03-09T09:00:00"},
        {"id": "u3", "work_order_id": "wo1", "comment": "Tested", "photo_urls": "[]", "created_at": "2026-03-10T10:00:00"},
        {"id": "u4", "work_order_id": "wo2", "comment": f"{ISSUE_PREFIX} Flange leak", "photo_urls": "[]", "created_at": "2026-03-10T11:00:00"},
    ]
    return {
        "report": report_row(),
        "branding": {"company_name": "Acme Plant", "accent_hex": "#1a2b3c", "footer_text": "Acme confidential"},
        "work_orders": work_orders,
        "updates": updates,
    }


def scenario_b_payload(photo_count: int = 7) -> Dict[str, Any]:
    """One work order whose entries carry ``photo_count`` photos."""
    paths = [f"r1/wo1/p{idx}.png" for idx in range(1, photo_count + 1)]
    return {
        "report": report_row(name="Boiler Turnaround"),
        "branding": None,
        "work_orders": [{"id": "wo1", "report_id": "r1", "wo_number": "WO-001", "title": "Boiler", "status": "open"}],
        "updates": [
            {"id": "u1", "work_order_id": "wo1", "comment": "Before", "photo_urls": json.dumps(paths[:3]), "created_at": "2026-03-09T08:00:00"},
            {"id": "u2", "work_order_id": "wo1", "comment": "", "photo_urls": json.dumps(paths[3:]), "created_at": "2026-03-10T08:00:00"},
        ],
    }


def follow_up_payload() -> Dict[str, Any]:
    payload = scenario_b_payload(0)
    payload["updates"].append(
        {
            "id": "u9",
            "work_order_id": "wo1",
            "comment": f"{FOLLOW_UP_PREFIX} Replace burner next outage",
            "photo_urls": "[]",
            "created_at": "2026-03-10T12:00:00",
        }
    )
    return payload


def aggregate_from(payload: Dict[str, Any], **kwargs: Any) -> Aggregate:
    return build_aggregate(payload, report_id="r1", **kwargs)


class DictFetch:
    """In-memory bucket store; records every request."""

    def __init__(self, blobs: Optional[Dict[str, bytes]] = None, default: Optional[bytes] = PNG_1PX):
        self.blobs = blobs or {}
        self.default = default
        self.calls: List[tuple] = []

    def __call__(self, bucket: str, path: str) -> Optional[bytes]:
        self.calls.append((bucket, path))
        if path in self.blobs:
            return self.blobs[path]
        return self.default
