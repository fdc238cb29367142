"""
Seller Profit Dashboard configuration.

Backend endpoints, timeouts, local session storage and UI labels.
"""

import os
from pathlib import Path

# ===========================
# BACKEND
# ===========================

API_BASE_URL = os.environ.get("SELLER_PROFIT_API_BASE_URL", "http://localhost:8080")

# Seconds. Health probe fails fast so the login page never hangs on it.
DEFAULT_TIMEOUT = 10.0
HEALTH_TIMEOUT = 5.0

# Paths that never carry the bearer token
AUTH_PATH_PREFIX = "/api/auth"
HEALTH_PATH = "/health"

ENDPOINTS = {
    "register": "/api/auth/register",
    "login": "/api/auth/login",
    "health": HEALTH_PATH,
    "upload_orders": "/api/upload/orders",
    "upload_settlement": "/api/upload/settlement",
    "skus": "/api/sku",
    "sku_cost": "/api/sku-cost",
    "profit_summary": "/api/profit",
    "profit_detailed": "/api/profit/detailed",
}

# Cost upserts fan out over a small pool
MAX_PARALLEL_UPSERTS = 8

# ===========================
# LOCAL SESSION STORAGE
# ===========================

SESSION_DB_PATH = Path(
    os.environ.get(
        "SELLER_PROFIT_SESSION_DB",
        Path.home() / ".seller_profit" / "session.db",
    )
)

TOKEN_KEY = "token"
EMAIL_KEY = "userEmail"
REPORT_KEY = "lastProfitReport"

# ===========================
# LOGGING
# ===========================

LOG_LEVEL = os.environ.get("SELLER_PROFIT_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# ===========================
# AUTH RULES
# ===========================

MIN_PASSWORD_LENGTH = 6

# ===========================
# BRANDING & UI
# ===========================

APP_TITLE = "Amazon Profit Dashboard"
APP_TAGLINE = "Upload orders and settlements, add SKU costs, see what you actually earned."
SINGLE_USER_NOTICE = "Single-user app: everyone who opens this server shares the signed-in account."

CURRENCY_SYMBOL = "₹"
MISSING_DATE_TEXT = "N/A"

# Wizard step labels shown in the stepper (Idle is the landing screen)
WIZARD_STEP_LABELS = {
    "upload_orders": "Upload Orders",
    "upload_settlement": "Upload Settlement",
    "enter_costs": "SKU Costs",
    "show_report": "Report",
}

ACCEPTED_UPLOAD_TYPES = ["csv", "txt", "tsv"]

# ===========================
# EXPORTS
# ===========================

SKU_CSV_HEADER = ["SKU", "Revenue", "Cost", "Profit", "Margin %"]
SKU_CSV_FILENAME = "sku_profit_analysis.csv"
