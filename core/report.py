"""
Profit report model, normalization and formatting.

The backend report shape has drifted between versions (totalSales vs
totalRevenue, settlement vs revenue per SKU, ...). `normalize_report` is the one
place that absorbs that drift: every missing number becomes 0 and every missing
list becomes empty, so the view code never has to guard individual fields.

Handles:
- ProfitReport / ProfitSummary dataclasses
- Currency (INR, Indian digit grouping), percentage and date formatting
- SKU table building and the SKU CSV export
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

import pandas as pd

from config import seller_profit as config


# ===========================
# Report model
# ===========================

@dataclass(frozen=True)
class SkuProfitRow:
    sku: str
    product_name: str = ""
    units_sold: float = 0.0
    successful_sales: float = 0.0
    return_count: float = 0.0
    return_percentage: float = 0.0
    return_loss: float = 0.0
    revenue: float = 0.0
    cost: float = 0.0
    profit: float = 0.0


@dataclass(frozen=True)
class Transfer:
    date: Optional[str]
    account: str
    amount: float


@dataclass(frozen=True)
class OtherChargesBreakdown:
    cost_of_advertising: float = 0.0
    fba_inbound_pickup_service: float = 0.0
    fba_removal_order_return_fee: float = 0.0


@dataclass(frozen=True)
class OrderDetails:
    total_orders: float = 0.0
    delivered_orders: float = 0.0
    courier_return: float = 0.0
    customer_return: float = 0.0
    delivery_percentage: float = 0.0
    courier_return_percentage: float = 0.0
    customer_return_percentage: float = 0.0


@dataclass(frozen=True)
class FulfillmentDetails:
    fba_order_count: float = 0.0
    easy_ship_order_count: float = 0.0
    self_ship_order_count: float = 0.0


@dataclass(frozen=True)
class ReturnsDetails:
    customer_return_count: float = 0.0
    customer_return_loss: float = 0.0
    customer_return_percentage: float = 0.0


@dataclass(frozen=True)
class ProfitReport:
    total_sales: float = 0.0
    shipping_and_fees: float = 0.0
    net_settlement: float = 0.0
    other_charges: float = 0.0
    purchase_cost: float = 0.0
    profit: float = 0.0
    profit_margin: float = 0.0
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    other_charges_breakdown: Optional[OtherChargesBreakdown] = None
    order_details: Optional[OrderDetails] = None
    fulfillment_details: Optional[FulfillmentDetails] = None
    returns_details: Optional[ReturnsDetails] = None
    sku_wise_details: List[SkuProfitRow] = field(default_factory=list)
    bank_transfers: List[Transfer] = field(default_factory=list)


@dataclass(frozen=True)
class ProfitSummary:
    total_revenue: float = 0.0
    total_cost: float = 0.0
    total_profit: float = 0.0
    margin: float = 0.0
    total_settlement: float = 0.0
    sku_profits: List[SkuProfitRow] = field(default_factory=list)


@dataclass(frozen=True)
class OrderSummary:
    file_name: str = ""
    total_orders: float = 0.0
    total_sales: float = 0.0
    unique_skus: float = 0.0
    date_from: Optional[str] = None
    date_to: Optional[str] = None


# ===========================
# Normalization
# ===========================

def to_number(value: Any) -> float:
    """Coerce backend numbers (incl. numeric strings) to float; junk becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _pick(payload: dict, *keys: str) -> float:
    """First present key wins (older backends used different names)."""
    for key in keys:
        if payload.get(key) is not None:
            return to_number(payload[key])
    return 0.0


def _as_dict(value: Any) -> Optional[dict]:
    return value if isinstance(value, dict) else None


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def unwrap_data(payload: Any) -> Any:
    """Backend responses are either bare or wrapped as {"data": ...}."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def normalize_sku_row(row: dict) -> SkuProfitRow:
    return SkuProfitRow(
        sku=str(row.get("sku") or ""),
        product_name=str(row.get("productName") or ""),
        units_sold=_pick(row, "unitsSold"),
        successful_sales=_pick(row, "successfulSales"),
        return_count=_pick(row, "returnCount"),
        return_percentage=_pick(row, "returnPercentage"),
        return_loss=_pick(row, "returnLoss"),
        revenue=_pick(row, "revenue", "settlement"),
        cost=_pick(row, "cost", "costPrice"),
        profit=_pick(row, "profit", "totalProfit"),
    )


def normalize_transfer(row: dict) -> Transfer:
    return Transfer(
        date=row.get("date"),
        account=str(row.get("account") or ""),
        amount=to_number(row.get("amount")),
    )


def _normalize_breakdown(raw: Optional[dict]) -> Optional[OtherChargesBreakdown]:
    if raw is None:
        return None
    return OtherChargesBreakdown(
        cost_of_advertising=_pick(raw, "costOfAdvertising"),
        fba_inbound_pickup_service=_pick(raw, "fbaInboundPickupService"),
        fba_removal_order_return_fee=_pick(raw, "fbaRemovalOrderReturnFee"),
    )


def _normalize_order_details(raw: Optional[dict]) -> Optional[OrderDetails]:
    if raw is None:
        return None
    return OrderDetails(
        total_orders=_pick(raw, "totalOrders"),
        delivered_orders=_pick(raw, "deliveredOrders"),
        courier_return=_pick(raw, "courierReturn"),
        customer_return=_pick(raw, "customerReturn"),
        delivery_percentage=_pick(raw, "deliveryPercentage"),
        courier_return_percentage=_pick(raw, "courierReturnPercentage"),
        customer_return_percentage=_pick(raw, "customerReturnPercentage"),
    )


def _normalize_fulfillment(raw: Optional[dict]) -> Optional[FulfillmentDetails]:
    if raw is None:
        return None
    return FulfillmentDetails(
        fba_order_count=_pick(raw, "fbaOrderCount"),
        easy_ship_order_count=_pick(raw, "easyShipOrderCount"),
        self_ship_order_count=_pick(raw, "selfShipOrderCount"),
    )


def _normalize_returns(raw: Optional[dict]) -> Optional[ReturnsDetails]:
    if raw is None:
        return None
    return ReturnsDetails(
        customer_return_count=_pick(raw, "customerReturnCount"),
        customer_return_loss=_pick(raw, "customerReturnLoss"),
        customer_return_percentage=_pick(raw, "customerReturnPercentage"),
    )


def normalize_report(payload: Any) -> ProfitReport:
    """
    Build a ProfitReport from a detailed-profit payload.

    Accepts the {"data": ...} wrapper, current field names and the legacy
    aliases (totalRevenue, totalSettlement, totalCost, totalProfit, margin).
    """
    data = _as_dict(unwrap_data(payload)) or {}
    return ProfitReport(
        total_sales=_pick(data, "totalSales", "totalRevenue"),
        shipping_and_fees=_pick(data, "shippingAndFees"),
        net_settlement=_pick(data, "netSettlement", "totalSettlement"),
        other_charges=_pick(data, "otherCharges"),
        purchase_cost=_pick(data, "purchaseCost", "totalCost"),
        profit=_pick(data, "profit", "totalProfit"),
        profit_margin=_pick(data, "profitMargin", "margin"),
        date_from=data.get("dateFrom"),
        date_to=data.get("dateTo"),
        other_charges_breakdown=_normalize_breakdown(_as_dict(data.get("otherChargesBreakdown"))),
        order_details=_normalize_order_details(_as_dict(data.get("orderDetails"))),
        fulfillment_details=_normalize_fulfillment(_as_dict(data.get("fulfillmentDetails"))),
        returns_details=_normalize_returns(_as_dict(data.get("returnsDetails"))),
        sku_wise_details=[
            normalize_sku_row(r) for r in _as_list(data.get("skuWiseDetails")) if isinstance(r, dict)
        ],
        bank_transfers=[
            normalize_transfer(t) for t in _as_list(data.get("bankTransfers")) if isinstance(t, dict)
        ],
    )


def normalize_summary(payload: Any) -> ProfitSummary:
    data = _as_dict(unwrap_data(payload)) or {}
    return ProfitSummary(
        total_revenue=_pick(data, "totalRevenue", "totalSales"),
        total_cost=_pick(data, "totalCost", "purchaseCost"),
        total_profit=_pick(data, "totalProfit", "profit"),
        margin=_pick(data, "margin", "profitMargin"),
        total_settlement=_pick(data, "totalSettlement", "netSettlement"),
        sku_profits=[
            normalize_sku_row(r) for r in _as_list(data.get("skuProfits")) if isinstance(r, dict)
        ],
    )


def normalize_order_summary(payload: Any) -> OrderSummary:
    data = _as_dict(unwrap_data(payload)) or {}
    return OrderSummary(
        file_name=str(data.get("fileName") or ""),
        total_orders=_pick(data, "totalOrders"),
        total_sales=_pick(data, "totalSales"),
        unique_skus=_pick(data, "uniqueSkus"),
        date_from=data.get("dateFrom"),
        date_to=data.get("dateTo"),
    )


# ===========================
# Formatting
# ===========================

def _group_indian(digits: str) -> str:
    """1234567 -> 12,34,567 (last three digits, then pairs)."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_currency(value: Any) -> str:
    """INR with 2 decimals; missing values format as 0."""
    number = round(to_number(value), 2)
    sign = "-" if number < 0 else ""
    whole, cents = f"{abs(number):.2f}".split(".")
    return f"{sign}{config.CURRENCY_SYMBOL}{_group_indian(whole)}.{cents}"


def format_percentage(value: Any) -> str:
    return f"{to_number(value):.2f}%"


def format_count(value: Any) -> str:
    return f"{int(to_number(value)):,}"


def format_date(value: Any) -> str:
    """DD Mon YYYY, e.g. 05 Jan 2024."""
    if value is None or value == "":
        return config.MISSING_DATE_TEXT
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return config.MISSING_DATE_TEXT
    return parsed.strftime("%d %b %Y")


def share_of_sales(value: float, total_sales: float) -> float:
    if not total_sales:
        return 0.0
    return value / total_sales * 100


def plain_number(value: Any) -> str:
    """Shortest plain text for a number: 100.0 -> '100', 40.5 -> '40.5'."""
    number = to_number(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def sku_margin(row: SkuProfitRow) -> str:
    if not row.revenue:
        return "0"
    return f"{row.profit / row.revenue * 100:.2f}"


# ===========================
# Tables & exports
# ===========================

def bank_transfer_total(report: ProfitReport) -> float:
    return sum(t.amount for t in report.bank_transfers)


def skus_missing_from_report(report: ProfitReport, skus: Iterable[str]) -> List[str]:
    """SKUs the user priced that the backend returned no profit row for."""
    reported = {row.sku.strip().upper() for row in report.sku_wise_details}
    return [s for s in skus if s.strip().upper() not in reported]


def sku_rows_frame(rows: List[SkuProfitRow]) -> pd.DataFrame:
    """Display table for SKU-wise rows (formatted strings)."""
    if not rows:
        return pd.DataFrame()

    records = []
    for row in rows:
        records.append({
            "SKU": row.sku,
            "Product": row.product_name,
            "Units Sold": format_count(row.units_sold),
            "Successful Sales": format_count(row.successful_sales),
            "Returns": format_count(row.return_count),
            "Return %": format_percentage(row.return_percentage),
            "Return Loss": format_currency(row.return_loss),
            "Revenue": format_currency(row.revenue),
            "Cost": format_currency(row.cost),
            "Profit": format_currency(row.profit),
            "Margin %": f"{sku_margin(row)}%",
        })
    return pd.DataFrame(records)


def transfers_frame(report: ProfitReport) -> pd.DataFrame:
    if not report.bank_transfers:
        return pd.DataFrame()
    return pd.DataFrame([
        {
            "Date": format_date(t.date),
            "Account": t.account,
            "Amount": format_currency(t.amount),
        }
        for t in report.bank_transfers
    ])


def export_sku_csv(rows: List[SkuProfitRow]) -> str:
    """
    Serialize SKU rows to CSV text.

    Columns: SKU, Revenue, Cost, Profit, Margin %. Numbers are written in plain
    form and lines are joined with newlines (no trailing newline).
    """
    frame = pd.DataFrame(
        [
            [row.sku, plain_number(row.revenue), plain_number(row.cost), plain_number(row.profit), sku_margin(row)]
            for row in rows
        ],
        columns=config.SKU_CSV_HEADER,
    )
    return frame.to_csv(index=False, lineterminator="\n").rstrip("\n")
