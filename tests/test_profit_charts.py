# tests/test_profit_charts.py
from core.report import normalize_report
from visualization.profit_charts import LOSS_COLOR, PROFIT_COLOR, build_profit_waterfall, build_sku_profit_chart


def test_sku_chart_orders_by_magnitude_and_colors_losses():
    report = normalize_report({"skuWiseDetails": [
        {"sku": "SMALL", "profit": 5},
        {"sku": "LOSS", "profit": -80},
        {"sku": "BIG", "profit": 100},
    ]})
    fig = build_sku_profit_chart(report.sku_wise_details, top_n=2)
    bar = fig.data[0]
    assert list(bar.y) == ["LOSS", "BIG"]
    assert list(bar.marker.color) == [LOSS_COLOR, PROFIT_COLOR]


def test_waterfall_ends_at_reported_profit():
    report = normalize_report({
        "totalSales": 1000, "shippingAndFees": 200, "otherCharges": 50,
        "purchaseCost": 400, "profit": 350,
    })
    wf = build_profit_waterfall(report).data[0]
    assert list(wf.y) == [1000, -200, -50, -400, 350]
    assert wf.measure[-1] == "absolute"
