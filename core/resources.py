"""
Service clients for uploads, SKU costs and profit reports.

Thin wrappers over HttpClient: they shape requests and responses but never
recover errors; ApiError propagates to the caller unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List

from config import seller_profit as config
from core.http_client import HttpClient
from core.report import (
    OrderSummary,
    ProfitReport,
    ProfitSummary,
    normalize_order_summary,
    normalize_report,
    normalize_summary,
    to_number,
    unwrap_data,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFileRef:
    """A file picked by the user, held only until it is uploaded."""
    name: str
    size: int
    mime_type: str
    raw_bytes: bytes

    @classmethod
    def from_upload(cls, uploaded) -> "UploadedFileRef":
        """Build from a Streamlit UploadedFile (or anything with name/type/getvalue)."""
        raw = uploaded.getvalue()
        return cls(
            name=uploaded.name,
            size=len(raw),
            mime_type=getattr(uploaded, "type", None) or "text/csv",
            raw_bytes=raw,
        )

    def as_multipart(self) -> dict:
        return {"file": (self.name, self.raw_bytes, self.mime_type)}


def clean_sku_list(values: Any) -> List[str]:
    """Trim, uppercase, de-duplicate and sort SKU codes; blanks are dropped."""
    skus = set()
    for value in values or []:
        if value is None:
            continue
        code = str(value).strip().upper()
        if code:
            skus.add(code)
    return sorted(skus)


class UploadService:
    def __init__(self, client: HttpClient):
        self.client = client

    def upload_orders(self, file_ref: UploadedFileRef) -> OrderSummary:
        logger.info("Uploading orders file %s (%s bytes)", file_ref.name, file_ref.size)
        payload = self.client.request_json(
            "POST", config.ENDPOINTS["upload_orders"], files=file_ref.as_multipart()
        )
        summary = normalize_order_summary(payload)
        if not summary.file_name:
            summary = replace(summary, file_name=file_ref.name)
        return summary

    def upload_settlement(self, file_ref: UploadedFileRef) -> Any:
        logger.info("Uploading settlement file %s (%s bytes)", file_ref.name, file_ref.size)
        return self.client.request_json(
            "POST", config.ENDPOINTS["upload_settlement"], files=file_ref.as_multipart()
        )


class SkuService:
    def __init__(self, client: HttpClient):
        self.client = client

    def list_skus(self) -> List[str]:
        payload = unwrap_data(self.client.request_json("GET", config.ENDPOINTS["skus"]))
        return clean_sku_list(payload if isinstance(payload, list) else [])


class SkuCostService:
    def __init__(self, client: HttpClient):
        self.client = client

    def list_costs(self) -> Dict[str, float]:
        """Stored cost prices keyed by uppercased SKU."""
        payload = unwrap_data(self.client.request_json("GET", config.ENDPOINTS["sku_cost"]))
        costs: Dict[str, float] = {}
        for entry in payload if isinstance(payload, list) else []:
            if not isinstance(entry, dict):
                continue
            sku = str(entry.get("sku") or "").strip().upper()
            if sku and entry.get("costPrice") is not None:
                costs[sku] = to_number(entry["costPrice"])
        return costs

    def upsert(self, sku: str, cost_price: float) -> Any:
        return self.client.request_json(
            "PUT",
            config.ENDPOINTS["sku_cost"],
            {"sku": sku, "costPrice": float(cost_price)},
        )


class ProfitService:
    def __init__(self, client: HttpClient):
        self.client = client

    def summary(self) -> ProfitSummary:
        return normalize_summary(self.client.request_json("GET", config.ENDPOINTS["profit_summary"]))

    def fetch_detailed_payload(self) -> Any:
        """Raw detailed report as sent by the backend (kept for persistence)."""
        return self.client.request_json("GET", config.ENDPOINTS["profit_detailed"])

    def detailed(self) -> ProfitReport:
        return normalize_report(self.fetch_detailed_payload())


@dataclass
class Services:
    """Every client the pages need, built around one HttpClient."""
    client: HttpClient
    uploads: UploadService
    skus: SkuService
    sku_costs: SkuCostService
    profit: ProfitService

    @classmethod
    def build(cls, client: HttpClient) -> "Services":
        return cls(
            client=client,
            uploads=UploadService(client),
            skus=SkuService(client),
            sku_costs=SkuCostService(client),
            profit=ProfitService(client),
        )
