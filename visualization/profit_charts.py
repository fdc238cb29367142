"""Plotly charts for the profit report, rendered into Streamlit."""
from typing import List

import plotly.graph_objects as go
import streamlit as st

from core.report import ProfitReport, SkuProfitRow

PROFIT_COLOR = "#16a34a"
LOSS_COLOR = "#dc2626"


def build_sku_profit_chart(rows: List[SkuProfitRow], top_n: int = 20) -> go.Figure:
    """Horizontal bars of profit per SKU, largest absolute values first."""
    ranked = sorted(rows, key=lambda r: abs(r.profit), reverse=True)[:top_n]
    ranked = list(reversed(ranked))  # plotly draws bottom-up

    fig = go.Figure(
        go.Bar(
            x=[r.profit for r in ranked],
            y=[r.sku for r in ranked],
            orientation="h",
            marker_color=[PROFIT_COLOR if r.profit >= 0 else LOSS_COLOR for r in ranked],
            hovertemplate="%{y}: ₹%{x:,.2f}<extra></extra>",
        )
    )
    fig.update_layout(
        title=f"Profit by SKU (top {len(ranked)})",
        xaxis_title="Profit (₹)",
        height=max(260, 28 * len(ranked) + 120),
        margin=dict(l=10, r=10, t=50, b=10),
    )
    return fig


def build_profit_waterfall(report: ProfitReport) -> go.Figure:
    """Sales down to profit: fees, other charges and purchase cost as deductions."""
    fig = go.Figure(
        go.Waterfall(
            measure=["absolute", "relative", "relative", "relative", "absolute"],
            x=["Total Sales", "Shipping & Fees", "Other Charges", "Purchase Cost", "Profit"],
            y=[
                report.total_sales,
                -abs(report.shipping_and_fees),
                -abs(report.other_charges),
                -abs(report.purchase_cost),
                report.profit,
            ],
            increasing={"marker": {"color": PROFIT_COLOR}},
            decreasing={"marker": {"color": LOSS_COLOR}},
            totals={"marker": {"color": "#2563eb"}},
        )
    )
    fig.update_layout(title="From sales to profit", height=360, margin=dict(l=10, r=10, t=50, b=10))
    return fig


def render_report_charts(report: ProfitReport):
    """Render both charts into the active Streamlit container."""
    if report.total_sales:
        st.plotly_chart(build_profit_waterfall(report), use_container_width=True)
    if report.sku_wise_details:
        st.plotly_chart(build_sku_profit_chart(report.sku_wise_details), use_container_width=True)
    elif not report.total_sales:
        st.info("No figures to chart yet.")
