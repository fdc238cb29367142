# tests/test_wizard.py
import pytest

from config import seller_profit as config
from core.auth_service import AuthService
from core.errors import AuthError
from core.resources import UploadedFileRef
from core.wizard import (
    STEP_SEQUENCE,
    WizardController,
    WizardState,
    WizardStep,
    WizardTransitionError,
    can_advance,
    parse_cost,
)
from tests.conftest import FakeResponse

ORDERS = UploadedFileRef("orders.csv", 10, "text/csv", b"order,sku\n")
SETTLEMENT = UploadedFileRef("settlement.csv", 12, "text/csv", b"date,amount\n")

DETAILED = {"data": {
    "totalSales": 1000, "profit": 250, "profitMargin": 25,
    "skuWiseDetails": [{"sku": "A", "revenue": 600, "cost": 300, "profit": 300}],
}}


@pytest.fixture
def backend(fake_session, token_store):
    token_store.set_token("t")
    fake_session.routes.update({
        ("POST", "/api/upload/orders"): FakeResponse(200, {"data": {"totalOrders": 5, "totalSales": 1000}}),
        ("POST", "/api/upload/settlement"): FakeResponse(200, {"message": "ok"}),
        ("GET", "/api/sku"): FakeResponse(200, ["b", "A", " a "]),
        ("GET", "/api/sku-cost"): FakeResponse(200, []),
        ("PUT", "/api/sku-cost"): FakeResponse(200, {}),
        ("GET", "/api/profit/detailed"): FakeResponse(200, DETAILED),
    })
    return fake_session


@pytest.fixture
def wizard(services, storage, backend):
    return WizardController(WizardState(), services, storage)


def _to_costs(wizard):
    wizard.start()
    wizard.select_order_file(ORDERS)
    assert wizard.upload_orders()
    wizard.select_settlement_file(SETTLEMENT)
    assert wizard.upload_settlement()


def test_happy_path_visits_every_step_in_order(wizard, storage, backend):
    seen = [wizard.state.step]
    wizard.start()
    seen.append(wizard.state.step)
    wizard.select_order_file(ORDERS)
    assert wizard.upload_orders()
    seen.append(wizard.state.step)
    assert wizard.state.order_summary.total_orders == 5
    assert wizard.state.order_file is None

    wizard.select_settlement_file(SETTLEMENT)
    assert wizard.upload_settlement()
    seen.append(wizard.state.step)

    wizard.set_cost("A", "120")
    wizard.set_cost("B", "0")
    assert wizard.submit_costs()
    seen.append(wizard.state.step)

    assert seen == STEP_SEQUENCE
    assert wizard.state.report.profit == 250
    assert wizard.state.busy is False
    assert storage.get_json(config.REPORT_KEY) == DETAILED
    bodies = sorted((c["json"]["sku"], c["json"]["costPrice"]) for c in backend.calls_to("PUT", "/api/sku-cost"))
    assert bodies == [("A", 120.0), ("B", 0.0)]


def test_missing_costs_default_to_empty_strings(wizard):
    _to_costs(wizard)
    assert wizard.state.step == WizardStep.ENTER_COSTS
    assert wizard.state.skus == ["A", "B"]
    assert wizard.state.sku_costs == {"A": "", "B": ""}


def test_stored_costs_prefill(wizard, backend):
    backend.routes[("GET", "/api/sku-cost")] = FakeResponse(200, [
        {"sku": "a", "costPrice": 120.0},
        {"sku": "B", "costPrice": 0},
    ])
    _to_costs(wizard)
    assert wizard.state.sku_costs == {"A": "120", "B": "0"}


def test_one_failed_upsert_keeps_costs_step_with_single_message(wizard, backend):
    def upsert(call):
        if call["json"]["sku"] == "B":
            return FakeResponse(500, {"message": "db down"})
        return FakeResponse(200, {})

    backend.routes[("PUT", "/api/sku-cost")] = upsert
    backend.routes[("GET", "/api/sku")] = FakeResponse(200, ["A", "B", "C", "D"])
    _to_costs(wizard)
    for sku in wizard.state.skus:
        wizard.set_cost(sku, "10")

    assert not wizard.submit_costs()
    assert wizard.state.step == WizardStep.ENTER_COSTS
    assert wizard.state.error_message.count("\n") == 0
    assert wizard.state.error_message.startswith("Failed to save cost for 1 of 4 SKUs (B)")
    assert "db down" in wizard.state.error_message
    assert len(backend.calls_to("PUT", "/api/sku-cost")) == 4
    assert backend.calls_to("GET", "/api/profit/detailed") == []
    assert wizard.state.report is None
    assert wizard.state.busy is False


def test_invalid_costs_block_submit_without_calls(wizard, backend):
    _to_costs(wizard)
    wizard.set_cost("A", "12.5")
    wizard.set_cost("B", "-3")
    assert wizard.invalid_costs() == ["B"]
    assert not wizard.submit_costs()
    assert "B" in wizard.state.error_message
    assert backend.calls_to("PUT", "/api/sku-cost") == []

    wizard.set_cost("B", "")
    assert not wizard.submit_costs()
    assert wizard.state.step == WizardStep.ENTER_COSTS


def test_failed_upload_stays_on_step(wizard, backend):
    backend.routes[("POST", "/api/upload/orders")] = FakeResponse(400, {"message": "Invalid file format or structure"})
    wizard.start()
    wizard.select_order_file(ORDERS)
    assert not wizard.upload_orders()
    assert wizard.state.step == WizardStep.UPLOAD_ORDERS
    assert wizard.state.error_message == "Invalid file format or structure"
    assert wizard.state.order_file == ORDERS

    backend.routes[("POST", "/api/upload/orders")] = FakeResponse(200, {"data": {}})
    assert wizard.upload_orders()
    assert wizard.state.error_message == ""


def test_sku_fetch_failure_stays_on_settlement(wizard, backend):
    backend.routes[("GET", "/api/sku")] = FakeResponse(503, {})
    wizard.start()
    wizard.select_order_file(ORDERS)
    wizard.upload_orders()
    wizard.select_settlement_file(SETTLEMENT)
    assert not wizard.upload_settlement()
    assert wizard.state.step == WizardStep.UPLOAD_SETTLEMENT
    assert wizard.state.error_message


def test_report_failure_stays_on_costs(wizard, backend):
    backend.routes[("GET", "/api/profit/detailed")] = FakeResponse(500, {"message": "aggregation failed"})
    _to_costs(wizard)
    wizard.set_cost("A", "1")
    wizard.set_cost("B", "2")
    assert not wizard.submit_costs()
    assert wizard.state.step == WizardStep.ENTER_COSTS
    assert wizard.state.error_message == "Server error: aggregation failed"


def test_upload_without_file(wizard, backend):
    wizard.start()
    assert not wizard.upload_orders()
    assert wizard.state.error_message == "Please select a file"
    assert backend.calls == []


def test_cannot_skip_steps(wizard):
    with pytest.raises(WizardTransitionError):
        wizard.submit_costs()
    with pytest.raises(WizardTransitionError):
        wizard.upload_settlement()
    wizard.start()
    with pytest.raises(WizardTransitionError):
        wizard.start()
    with pytest.raises(WizardTransitionError):
        wizard.set_cost("A", "1")


def test_forward_only_where_data_exists(wizard):
    assert not can_advance(WizardState(step=WizardStep.UPLOAD_ORDERS))
    _to_costs(wizard)
    assert not wizard.forward()
    assert wizard.state.step == WizardStep.ENTER_COSTS


def test_back_keeps_gathered_data(wizard):
    _to_costs(wizard)
    wizard.set_cost("A", "55")
    wizard.back()
    assert wizard.state.step == WizardStep.UPLOAD_SETTLEMENT
    wizard.back()
    assert wizard.state.step == WizardStep.UPLOAD_ORDERS
    assert wizard.state.order_summary is not None
    assert wizard.state.sku_costs["A"] == "55"

    assert wizard.forward()
    assert wizard.forward()
    assert wizard.state.step == WizardStep.ENTER_COSTS

    # Re-uploading keeps what the user typed
    wizard.back()
    wizard.select_settlement_file(SETTLEMENT)
    assert wizard.upload_settlement()
    assert wizard.state.sku_costs == {"A": "55", "B": ""}


def test_start_over_resets_everything(wizard, storage):
    _to_costs(wizard)
    wizard.set_cost("A", "1")
    wizard.set_cost("B", "1")
    assert wizard.submit_costs()
    generation = wizard.state.generation

    wizard.start_over()
    assert wizard.state.step == WizardStep.IDLE
    assert wizard.state.report is None
    assert wizard.state.skus == []
    assert wizard.state.order_summary is None
    assert wizard.state.generation > generation
    assert storage.get(config.REPORT_KEY) is None


def test_late_response_after_navigation_is_discarded(wizard, backend):
    def slow_upload(call):
        # user navigates away while the upload is in flight
        wizard.back()
        return FakeResponse(200, {"data": {"totalOrders": 9}})

    backend.routes[("POST", "/api/upload/orders")] = slow_upload
    wizard.start()
    wizard.select_order_file(ORDERS)
    assert not wizard.upload_orders()
    assert wizard.state.step == WizardStep.IDLE
    assert wizard.state.order_summary is None


def test_restore_resumes_at_report_or_idle(storage):
    assert WizardController.restore_state(storage).step == WizardStep.IDLE

    storage.set_json(config.REPORT_KEY, DETAILED)
    state = WizardController.restore_state(storage)
    assert state.step == WizardStep.SHOW_REPORT
    assert state.report.total_sales == 1000
    assert state.order_file is None


def test_unauthorized_upsert_logs_out(wizard, backend, token_store):
    backend.routes[("PUT", "/api/sku-cost")] = FakeResponse(401, {"message": "expired"})
    _to_costs(wizard)
    wizard.set_cost("A", "1")
    wizard.set_cost("B", "1")
    assert not wizard.submit_costs()
    assert wizard.state.step == WizardStep.ENTER_COSTS
    assert not token_store.is_logged_in()


def test_parse_cost():
    assert parse_cost("12.50") == 12.5
    assert parse_cost(" 1,200 ") == 1200.0
    assert parse_cost("0") == 0.0
    assert parse_cost("") is None
    assert parse_cost(None) is None
    assert parse_cost("-1") is None
    assert parse_cost("abc") is None
    assert parse_cost("nan") is None


def test_expired_session_drops_saved_report_before_next_login(wizard, backend, services, storage, client):
    _to_costs(wizard)
    wizard.set_cost("A", "1")
    wizard.set_cost("B", "1")
    assert wizard.submit_costs()
    assert storage.get_json(config.REPORT_KEY) is not None

    backend.routes[("GET", "/api/profit")] = FakeResponse(401, {"message": "expired"})
    with pytest.raises(AuthError):
        services.profit.summary()
    assert storage.get(config.REPORT_KEY) is None

    backend.routes[("POST", "/api/auth/login")] = FakeResponse(200, {"token": "t-b"})
    AuthService(client).login("other@shop.in", "secret1")
    assert WizardController.restore_state(storage).step == WizardStep.IDLE


def test_login_as_another_account_drops_saved_report(client, backend, token_store, storage):
    token_store.set_email("first@shop.in")
    storage.set_json(config.REPORT_KEY, DETAILED)
    backend.routes[("POST", "/api/auth/login")] = FakeResponse(200, {"token": "t2"})

    AuthService(client).login("FIRST@shop.in", "secret1")
    assert storage.get_json(config.REPORT_KEY) == DETAILED

    AuthService(client).login("second@shop.in", "secret1")
    assert storage.get(config.REPORT_KEY) is None


def test_new_orders_upload_requires_new_settlement(wizard, backend):
    _to_costs(wizard)
    wizard.set_cost("A", "42")
    wizard.back()
    wizard.back()
    wizard.select_order_file(ORDERS)
    assert wizard.upload_orders()
    assert wizard.state.step == WizardStep.UPLOAD_SETTLEMENT

    assert not wizard.forward()
    assert wizard.state.step == WizardStep.UPLOAD_SETTLEMENT

    backend.routes[("GET", "/api/sku")] = FakeResponse(200, ["A", "C"])
    wizard.select_settlement_file(SETTLEMENT)
    assert wizard.upload_settlement()
    assert wizard.state.skus == ["A", "C"]
    assert wizard.state.sku_costs == {"A": "42", "C": ""}


def test_unexpected_error_clears_busy(wizard, backend):
    backend.routes[("POST", "/api/upload/orders")] = RuntimeError("boom")
    wizard.start()
    wizard.select_order_file(ORDERS)
    with pytest.raises(RuntimeError):
        wizard.upload_orders()
    assert wizard.state.busy is False
    assert wizard.state.step == WizardStep.UPLOAD_ORDERS
