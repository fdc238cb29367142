"""
Amazon Profit Dashboard (Streamlit)

Thin UI over the modular client:
- core.session_store for the durable token / email / last report
- core.http_client + core.auth_service + core.resources for backend calls
- core.wizard for the upload -> costs -> report flow
- core.report for normalization, formatting and CSV export
- core.route_guard for page access
- visualization.profit_charts for report charts

All profit math happens in the backend; this app only collects inputs and
renders what comes back.

Single-user: the token, email and last report live in one SQLite file
(SELLER_PROFIT_SESSION_DB) shared by every browser session on this server,
so a second visitor sees the first one signed in. Run one instance per seller.
"""

from __future__ import annotations

import logging

import pandas as pd
import streamlit as st

from config import seller_profit as config
from core import report as report_fmt
from core.auth_service import AuthService, validate_registration
from core.errors import ApiError
from core.http_client import HttpClient
from core.resources import Services, UploadedFileRef
from core.route_guard import LOGIN_PAGE, REGISTER_PAGE, guarded
from core.session_store import KeyValueStore, TokenStore
from core.wizard import WizardController, WizardState, WizardStep, can_advance
from visualization.profit_charts import render_report_charts

logger = logging.getLogger(__name__)

DASHBOARD_PAGE = "dashboard"
PROFIT_PAGE = "profit"
SKU_COST_PAGE = "sku_costs"

# Sidebar navigation for signed-in users
PROTECTED_PAGES = {
    DASHBOARD_PAGE: "Dashboard",
    PROFIT_PAGE: "Profit Summary",
    SKU_COST_PAGE: "SKU Costs",
}


# ===========================
# Shared services (one per server process)
# ===========================

@st.cache_resource
def get_storage() -> KeyValueStore:
    return KeyValueStore(config.SESSION_DB_PATH)


@st.cache_resource
def get_token_store() -> TokenStore:
    return TokenStore(get_storage())


@st.cache_resource
def get_http_client() -> HttpClient:
    return HttpClient(config.API_BASE_URL, get_token_store(), timeout=config.DEFAULT_TIMEOUT)


def get_services() -> Services:
    return Services.build(get_http_client())


def get_auth_service() -> AuthService:
    return AuthService(get_http_client())


def get_wizard() -> WizardController:
    return WizardController(st.session_state["wizard"], get_services(), get_storage())


# ===========================
# Session State Management
# ===========================

def init_session_state():
    """Initialize per-browser-session defaults."""
    defaults = {
        "page": DASHBOARD_PAGE,
        "health": None,
        "flash": None,
        "sku_cost_message": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value

    if "wizard" not in st.session_state:
        st.session_state["wizard"] = WizardController.restore_state(get_storage())


def go_to_page(page: str):
    st.session_state["page"] = page


def logout():
    """Drop the token, email and saved report, then back to login."""
    get_token_store().logout()
    st.session_state["wizard"] = WizardState()
    go_to_page(LOGIN_PAGE)


def redirect_if_signed_out():
    """A 401 clears the token inside the HTTP client; follow it to the login page."""
    if not get_token_store().is_logged_in():
        st.session_state["flash"] = "Your session has expired. Please login again."
        st.session_state["wizard"] = WizardState()
        go_to_page(LOGIN_PAGE)
        st.rerun()


def show_flash():
    message = st.session_state.get("flash")
    if message:
        st.info(message)
        st.session_state["flash"] = None


# ===========================
# Login / Register
# ===========================

def render_backend_status():
    status = st.session_state.get("health")
    cols = st.columns([3, 1])
    with cols[1]:
        if st.button("Check backend", key="check_health", use_container_width=True):
            try:
                payload = get_auth_service().check_health()
                st.session_state["health"] = ("ok", payload)
            except ApiError as exc:
                st.session_state["health"] = ("down", exc.message)
            status = st.session_state["health"]
    with cols[0]:
        if status is None:
            st.caption(f"Backend: {config.API_BASE_URL}")
        elif status[0] == "ok":
            st.caption(f"Backend reachable at {config.API_BASE_URL}")
        else:
            st.caption(f"Backend unreachable: {status[1]}")


def render_login():
    st.subheader("Sign in")
    show_flash()
    render_backend_status()

    with st.form("login_form"):
        email = st.text_input("Email Address", placeholder="you@example.com")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign In", type="primary", use_container_width=True)

    if submitted:
        try:
            with st.spinner("Signing in..."):
                get_auth_service().login(email, password)
        except ApiError as exc:
            st.error(exc.message)
        else:
            st.session_state["wizard"] = WizardController.restore_state(get_storage())
            go_to_page(DASHBOARD_PAGE)
            st.rerun()

    st.button("Don't have an account? Create one", on_click=lambda: go_to_page(REGISTER_PAGE))


def render_register():
    st.subheader("Create account")

    with st.form("register_form"):
        email = st.text_input("Email Address", placeholder="you@example.com")
        password = st.text_input("Password", type="password")
        confirm = st.text_input("Confirm Password", type="password")
        submitted = st.form_submit_button("Create Account", type="primary", use_container_width=True)

    if submitted:
        try:
            validate_registration(email, password, confirm)
            with st.spinner("Creating account..."):
                get_auth_service().register(email, password)
        except ApiError as exc:
            st.error(exc.message)
        else:
            st.session_state["flash"] = "Registration successful! Please sign in."
            go_to_page(LOGIN_PAGE)
            st.rerun()

    st.button("Already registered? Sign in", on_click=lambda: go_to_page(LOGIN_PAGE))


# ===========================
# Dashboard: wizard
# ===========================

def render_header(state: WizardState):
    name = get_token_store().display_name()
    cols = st.columns([3, 1])
    with cols[0]:
        st.markdown(f"### Welcome, {name or 'seller'}")
        st.caption(config.APP_TAGLINE)
    if state.report is not None:
        cols[1].metric("Latest Profit", report_fmt.format_currency(state.report.profit))


def render_stepper(state: WizardState):
    """Show wizard progress."""
    if state.step == WizardStep.IDLE:
        return
    labels = list(config.WIZARD_STEP_LABELS.values())
    current = state.step_number
    total = len(labels)
    st.progress((current - 1) / (total - 1) if total > 1 else 0.0)

    cols = st.columns(total)
    for idx, label in enumerate(labels, start=1):
        status = "current" if idx == current else "done" if idx < current else "pending"
        color = {"current": "#0f766e", "done": "#4b5563", "pending": "#9ca3af"}[status]
        weight = "700" if status == "current" else "500"
        cols[idx - 1].markdown(
            f"<div style='text-align:center;color:{color};font-weight:{weight};'>{idx}. {label}</div>",
            unsafe_allow_html=True,
        )


def render_step_idle(wizard: WizardController):
    st.write("Upload your Amazon order and settlement reports to calculate real profit per SKU.")
    st.button("Start Profit Calculation", type="primary", on_click=wizard.start)


def render_order_summary(summary):
    if summary is None:
        return
    cols = st.columns(4)
    cols[0].metric("Orders", report_fmt.format_count(summary.total_orders))
    cols[1].metric("Sales", report_fmt.format_currency(summary.total_sales))
    cols[2].metric("Unique SKUs", report_fmt.format_count(summary.unique_skus))
    cols[3].metric(
        "Period",
        f"{report_fmt.format_date(summary.date_from)} – {report_fmt.format_date(summary.date_to)}",
    )
    if summary.file_name:
        st.caption(f"From {summary.file_name}")


def render_step_upload_orders(wizard: WizardController):
    state = wizard.state
    st.subheader("Step 1 — Upload orders")
    uploaded = st.file_uploader(
        "Orders report (CSV)", type=config.ACCEPTED_UPLOAD_TYPES, key="order_file_uploader"
    )
    if uploaded is not None:
        wizard.select_order_file(UploadedFileRef.from_upload(uploaded))

    if state.order_summary is not None:
        st.success("Orders already uploaded. Upload again to replace them, or continue.")
        render_order_summary(state.order_summary)

    if st.button("Upload Orders", type="primary", disabled=state.busy, key="upload_orders_btn"):
        with st.spinner("Uploading orders..."):
            ok = wizard.upload_orders()
        if ok:
            st.rerun()
        redirect_if_signed_out()


def render_step_upload_settlement(wizard: WizardController):
    state = wizard.state
    st.subheader("Step 2 — Upload settlement")
    render_order_summary(state.order_summary)

    uploaded = st.file_uploader(
        "Settlement / payments report (CSV)",
        type=config.ACCEPTED_UPLOAD_TYPES,
        key="settlement_file_uploader",
    )
    if uploaded is not None:
        wizard.select_settlement_file(UploadedFileRef.from_upload(uploaded))

    if st.button("Upload Settlement", type="primary", disabled=state.busy, key="upload_settlement_btn"):
        with st.spinner("Uploading settlement and loading SKUs..."):
            ok = wizard.upload_settlement()
        if ok:
            st.rerun()
        redirect_if_signed_out()


def render_step_enter_costs(wizard: WizardController):
    state = wizard.state
    st.subheader("Step 3 — SKU cost prices")
    if not state.skus:
        st.info("No SKUs found in the uploaded data. Generate the report to continue.")
    else:
        missing = sum(1 for v in state.sku_costs.values() if not str(v).strip())
        if missing:
            st.warning(f"{missing:,} SKUs have no cost price yet.")

        editor_df = pd.DataFrame({
            "SKU": state.skus,
            "Cost Price (₹)": [state.sku_costs.get(sku, "") for sku in state.skus],
        })
        edited = st.data_editor(
            editor_df,
            key="sku_cost_editor",
            hide_index=True,
            disabled=["SKU"],
            use_container_width=True,
            column_config={"Cost Price (₹)": st.column_config.TextColumn(required=False)},
        )
        for sku, value in zip(edited["SKU"], edited["Cost Price (₹)"]):
            wizard.set_cost(sku, "" if value is None or pd.isna(value) else str(value))

    if st.button("Generate Report", type="primary", disabled=state.busy, key="generate_report_btn"):
        with st.spinner("Saving costs and building report..."):
            ok = wizard.submit_costs()
        if ok:
            st.rerun()
        redirect_if_signed_out()


def print_view():
    """Open the browser print dialog for the current page."""
    st.components.v1.html("<script>window.parent.print();</script>", height=0)


def render_profit_report(report: report_fmt.ProfitReport, skus=None):
    """Full detailed report view (read-only)."""
    fmt = report_fmt
    st.markdown(
        f"**Validating profits from {fmt.format_date(report.date_from)} to {fmt.format_date(report.date_to)}**"
    )

    top = st.columns(4)
    top[0].metric("Total Sales", fmt.format_currency(report.total_sales))
    top[1].metric("Purchase Cost", fmt.format_currency(report.purchase_cost))
    top[2].metric("Profit", fmt.format_currency(report.profit))
    top[3].metric("Profit Margin", fmt.format_percentage(report.profit_margin))

    second = st.columns(3)
    for col, label, value in (
        (second[0], "Shipping & Fees", report.shipping_and_fees),
        (second[1], "Net Settlement", report.net_settlement),
        (second[2], "Other Charges", report.other_charges),
    ):
        col.metric(
            label,
            fmt.format_currency(value),
            fmt.format_percentage(fmt.share_of_sales(value, report.total_sales)) + " of sales",
            delta_color="off",
        )

    render_report_charts(report)

    if report.other_charges_breakdown is not None:
        b = report.other_charges_breakdown
        with st.expander("Other charges breakdown", expanded=False):
            cols = st.columns(3)
            cols[0].metric("Advertising", fmt.format_currency(b.cost_of_advertising))
            cols[1].metric("FBA Inbound Pickup", fmt.format_currency(b.fba_inbound_pickup_service))
            cols[2].metric("FBA Removal / Return Fee", fmt.format_currency(b.fba_removal_order_return_fee))

    if report.order_details is not None:
        o = report.order_details
        with st.expander("Order details", expanded=False):
            cols = st.columns(4)
            cols[0].metric("Total Orders", fmt.format_count(o.total_orders))
            cols[1].metric("Delivered", fmt.format_count(o.delivered_orders), fmt.format_percentage(o.delivery_percentage), delta_color="off")
            cols[2].metric("Courier Returns", fmt.format_count(o.courier_return), fmt.format_percentage(o.courier_return_percentage), delta_color="off")
            cols[3].metric("Customer Returns", fmt.format_count(o.customer_return), fmt.format_percentage(o.customer_return_percentage), delta_color="off")

    if report.fulfillment_details is not None:
        f = report.fulfillment_details
        with st.expander("Fulfillment details", expanded=False):
            cols = st.columns(3)
            cols[0].metric("FBA Orders", fmt.format_count(f.fba_order_count))
            cols[1].metric("Easy Ship Orders", fmt.format_count(f.easy_ship_order_count))
            cols[2].metric("Self Ship Orders", fmt.format_count(f.self_ship_order_count))

    if report.returns_details is not None:
        r = report.returns_details
        with st.expander("Returns details", expanded=False):
            cols = st.columns(3)
            cols[0].metric("Customer Returns", fmt.format_count(r.customer_return_count))
            cols[1].metric("Return Loss", fmt.format_currency(r.customer_return_loss))
            cols[2].metric("Return Rate", fmt.format_percentage(r.customer_return_percentage))

    if report.bank_transfers:
        st.markdown("#### Bank Transfers")
        st.caption(f"Total transferred: {fmt.format_currency(fmt.bank_transfer_total(report))}")
        st.dataframe(fmt.transfers_frame(report), hide_index=True, use_container_width=True)

    if report.sku_wise_details:
        head = st.columns([3, 1])
        head[0].markdown("#### SKU Wise Details")
        with head[1]:
            st.download_button(
                "Download SKU Wise Details",
                data=fmt.export_sku_csv(report.sku_wise_details),
                file_name=config.SKU_CSV_FILENAME,
                mime="text/csv",
                use_container_width=True,
            )
        st.dataframe(fmt.sku_rows_frame(report.sku_wise_details), hide_index=True, use_container_width=True)

    if skus:
        missing = fmt.skus_missing_from_report(report, skus)
        if missing:
            st.caption(f"No profit row returned for: {', '.join(missing)}")

    if st.button("Print Full Report", key="print_report"):
        print_view()


def render_step_show_report(wizard: WizardController):
    state = wizard.state
    st.subheader("Step 4 — Profit report")
    if state.report is None:
        st.warning("No report yet.")
        return
    render_profit_report(state.report, state.skus)


def render_dashboard():
    wizard = get_wizard()
    state = wizard.state
    render_header(state)
    render_stepper(state)

    if state.error_message:
        st.error(state.error_message)

    step = state.step
    with st.container():
        if step == WizardStep.IDLE:
            render_step_idle(wizard)
        elif step == WizardStep.UPLOAD_ORDERS:
            render_step_upload_orders(wizard)
        elif step == WizardStep.UPLOAD_SETTLEMENT:
            render_step_upload_settlement(wizard)
        elif step == WizardStep.ENTER_COSTS:
            render_step_enter_costs(wizard)
        elif step == WizardStep.SHOW_REPORT:
            render_step_show_report(wizard)

    if step == WizardStep.IDLE:
        return

    st.markdown("---")
    nav_cols = st.columns([1, 1, 1])
    with nav_cols[0]:
        st.button("Previous", key="nav_prev", on_click=wizard.back, disabled=state.busy, use_container_width=True)
    with nav_cols[1]:
        st.button("Start Over", key="nav_start_over", on_click=wizard.start_over, use_container_width=True)
    with nav_cols[2]:
        if step != WizardStep.SHOW_REPORT:
            st.button(
                "Next",
                key="nav_next",
                type="primary",
                disabled=state.busy or not can_advance(state),
                on_click=wizard.forward,
                use_container_width=True,
            )


# ===========================
# Profit summary
# ===========================

def render_profit_summary():
    st.subheader("Profit Summary")
    try:
        with st.spinner("Loading profit summary..."):
            summary = get_services().profit.summary()
    except ApiError as exc:
        redirect_if_signed_out()
        st.error(exc.message or "Failed to fetch profit data")
        return

    fmt = report_fmt
    cols = st.columns(5)
    cols[0].metric("Revenue", fmt.format_currency(summary.total_revenue))
    cols[1].metric("Cost", fmt.format_currency(summary.total_cost))
    cols[2].metric("Profit", fmt.format_currency(summary.total_profit))
    cols[3].metric("Margin", fmt.format_percentage(summary.margin))
    cols[4].metric("Settlement", fmt.format_currency(summary.total_settlement))

    if not summary.sku_profits:
        st.info("No SKU profit data yet. Upload files and add cost prices first.")
        return

    st.download_button(
        "Download CSV",
        data=fmt.export_sku_csv(summary.sku_profits),
        file_name=config.SKU_CSV_FILENAME,
        mime="text/csv",
    )
    st.dataframe(fmt.sku_rows_frame(summary.sku_profits), hide_index=True, use_container_width=True)


# ===========================
# SKU costs
# ===========================

def render_sku_costs():
    st.subheader("SKU Cost Prices")
    services = get_services()

    message = st.session_state.get("sku_cost_message")
    if message:
        st.success(message)
        st.session_state["sku_cost_message"] = None

    with st.form("sku_cost_form", clear_on_submit=True):
        sku = st.text_input("SKU")
        cost = st.number_input("Cost Price (₹)", min_value=0.0, step=1.0, format="%.2f")
        submitted = st.form_submit_button("Save", type="primary")

    if submitted:
        code = (sku or "").strip().upper()
        if not code:
            st.error("Please fill in all fields")
        else:
            try:
                services.sku_costs.upsert(code, cost)
            except ApiError as exc:
                redirect_if_signed_out()
                st.error(exc.message or "Failed to save SKU cost. Please try again.")
            else:
                st.session_state["sku_cost_message"] = f"Saved cost for {code}"
                st.rerun()

    try:
        costs = services.sku_costs.list_costs()
    except ApiError as exc:
        redirect_if_signed_out()
        st.error(exc.message)
        return

    if costs:
        table = pd.DataFrame(
            [{"SKU": k, "Cost Price": report_fmt.format_currency(v)} for k, v in sorted(costs.items())]
        )
        st.dataframe(table, hide_index=True, use_container_width=True)
    else:
        st.info("No cost prices saved yet.")


# ===========================
# Main
# ===========================

def render_sidebar():
    tokens = get_token_store()
    if not tokens.is_logged_in():
        return
    with st.sidebar:
        st.markdown(f"**{tokens.get_email() or ''}**")
        for page, label in PROTECTED_PAGES.items():
            st.button(
                label,
                key=f"nav_{page}",
                type="primary" if st.session_state["page"] == page else "secondary",
                on_click=lambda p=page: go_to_page(p),
                use_container_width=True,
            )
        st.markdown("---")
        st.button("Logout", key="logout_btn", on_click=logout, use_container_width=True)
        st.caption(config.SINGLE_USER_NOTICE)


def main():
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    st.set_page_config(page_title=config.APP_TITLE, layout="wide", page_icon="📈")
    init_session_state()

    st.title(config.APP_TITLE)

    render_sidebar()

    page = st.session_state["page"]
    renderers = {
        LOGIN_PAGE: render_login,
        REGISTER_PAGE: render_register,
        DASHBOARD_PAGE: render_dashboard,
        PROFIT_PAGE: render_profit_summary,
        SKU_COST_PAGE: render_sku_costs,
    }
    render = renderers.get(page, render_dashboard)
    if not guarded(render, get_token_store(), go_to_page, page=page):
        logger.info("Redirecting %s -> %s", page, st.session_state["page"])
        render_login()


if __name__ == "__main__":
    main()
