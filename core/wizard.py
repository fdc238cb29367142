"""
Profit wizard state machine.

Steps run strictly in order:

    Idle -> Upload Orders -> Upload Settlement -> SKU Costs -> Report

and "start over" returns to Idle from anywhere. A failed backend call never
moves the wizard: the step stays put and `error_message` carries one line for
the banner. Going back keeps everything gathered so far.

Only the finished report outlives a restart (uploaded files cannot be
restored), so a fresh session resumes at Report when one was saved and at Idle
otherwise.

Usage Example:
    state = WizardController.restore_state(storage)
    wizard = WizardController(state, services, storage)
    wizard.start()
    wizard.select_order_file(UploadedFileRef.from_upload(uploaded))
    wizard.upload_orders()
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from config import seller_profit as config
from core.errors import ApiError
from core.report import OrderSummary, ProfitReport, normalize_report, plain_number
from core.resources import Services, UploadedFileRef
from core.session_store import KeyValueStore

logger = logging.getLogger(__name__)


class WizardStep(Enum):
    IDLE = "idle"
    UPLOAD_ORDERS = "upload_orders"
    UPLOAD_SETTLEMENT = "upload_settlement"
    ENTER_COSTS = "enter_costs"
    SHOW_REPORT = "show_report"


STEP_SEQUENCE = [
    WizardStep.IDLE,
    WizardStep.UPLOAD_ORDERS,
    WizardStep.UPLOAD_SETTLEMENT,
    WizardStep.ENTER_COSTS,
    WizardStep.SHOW_REPORT,
]


class WizardTransitionError(ValueError):
    """Raised when an action is invoked from a step that does not allow it."""


@dataclass
class WizardState:
    step: WizardStep = WizardStep.IDLE
    order_file: Optional[UploadedFileRef] = None
    order_summary: Optional[OrderSummary] = None
    settlement_file: Optional[UploadedFileRef] = None
    settlement_uploaded: bool = False
    skus: List[str] = field(default_factory=list)
    sku_costs: Dict[str, str] = field(default_factory=dict)
    report: Optional[ProfitReport] = None
    error_message: str = ""
    busy: bool = False
    # Bumped whenever in-flight work becomes irrelevant (new call, back, start over)
    generation: int = 0

    def reset(self) -> None:
        generation = self.generation + 1
        self.__dict__.update(WizardState().__dict__)
        self.generation = generation

    @property
    def step_number(self) -> int:
        return STEP_SEQUENCE.index(self.step)


def parse_cost(value) -> Optional[float]:
    """Cost text -> float >= 0, or None when blank/invalid/negative."""
    text = str(value if value is not None else "").strip().replace(",", "")
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number) or number < 0:
        return None
    return number


def can_advance(state: WizardState) -> bool:
    """Gate forward navigation (without a backend call) so steps aren't skipped."""
    if state.step == WizardStep.IDLE:
        return True
    if state.step == WizardStep.UPLOAD_ORDERS:
        return state.order_summary is not None
    if state.step == WizardStep.UPLOAD_SETTLEMENT:
        return state.settlement_uploaded
    # Costs must be submitted to reach the report
    return False


class WizardController:
    """Drives WizardState through the upload -> costs -> report flow."""

    def __init__(
        self,
        state: WizardState,
        services: Services,
        storage: KeyValueStore,
        max_workers: int = config.MAX_PARALLEL_UPSERTS,
    ):
        self.state = state
        self.services = services
        self.storage = storage
        self.max_workers = max_workers

    # ---------- restore ----------

    @staticmethod
    def restore_state(storage: KeyValueStore) -> WizardState:
        """Fresh state for a new session: Report if one was saved, else Idle."""
        payload = storage.get_json(config.REPORT_KEY)
        if payload is None:
            return WizardState()
        logger.info("Resuming with saved profit report")
        return WizardState(step=WizardStep.SHOW_REPORT, report=normalize_report(payload))

    # ---------- internals ----------

    def _require(self, *steps: WizardStep) -> None:
        if self.state.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise WizardTransitionError(
                f"Cannot do that from step {self.state.step.value} (allowed: {allowed})"
            )

    def _move_to(self, step: WizardStep) -> None:
        logger.info("Wizard: %s -> %s", self.state.step.value, step.value)
        self.state.step = step

    def _begin_call(self) -> int:
        self.state.generation += 1
        self.state.busy = True
        self.state.error_message = ""
        return self.state.generation

    def _is_current(self, ticket: int) -> bool:
        if ticket != self.state.generation:
            logger.info("Discarding stale response (ticket %s, now %s)", ticket, self.state.generation)
            return False
        return True

    def _fail(self, ticket: int, message: str) -> bool:
        if self._is_current(ticket):
            self.state.busy = False
            self.state.error_message = message
        return False

    @contextmanager
    def _releasing(self, ticket: int):
        """Unexpected errors still propagate, but never leave the step busy."""
        try:
            yield
        except Exception:
            if self._is_current(ticket):
                self.state.busy = False
            raise

    # ---------- navigation ----------

    def start(self) -> None:
        self._require(WizardStep.IDLE)
        self.state.error_message = ""
        self._move_to(WizardStep.UPLOAD_ORDERS)

    def forward(self) -> bool:
        """Re-advance after going back, only where the data for the next step exists."""
        if not can_advance(self.state):
            return False
        self.state.error_message = ""
        self._move_to(STEP_SEQUENCE[self.state.step_number + 1])
        return True

    def back(self) -> None:
        """One step back, keeping all gathered data; in-flight results are dropped."""
        if self.state.step == WizardStep.IDLE:
            return
        self.state.generation += 1
        self.state.busy = False
        self.state.error_message = ""
        self._move_to(STEP_SEQUENCE[self.state.step_number - 1])

    def start_over(self) -> None:
        logger.info("Wizard: start over")
        self.state.reset()
        self.storage.delete(config.REPORT_KEY)

    # ---------- step 1: orders ----------

    def select_order_file(self, file_ref: Optional[UploadedFileRef]) -> None:
        self._require(WizardStep.UPLOAD_ORDERS)
        self.state.order_file = file_ref

    def upload_orders(self) -> bool:
        self._require(WizardStep.UPLOAD_ORDERS)
        if self.state.order_file is None:
            self.state.error_message = "Please select a file"
            return False

        ticket = self._begin_call()
        with self._releasing(ticket):
            try:
                summary = self.services.uploads.upload_orders(self.state.order_file)
            except ApiError as exc:
                return self._fail(ticket, exc.message or "Order upload failed")
        if not self._is_current(ticket):
            return False

        # New orders need a fresh settlement upload and SKU list; typed costs stay
        self.state.order_summary = summary
        self.state.order_file = None
        self.state.settlement_uploaded = False
        self.state.busy = False
        self._move_to(WizardStep.UPLOAD_SETTLEMENT)
        return True

    # ---------- step 2: settlement ----------

    def select_settlement_file(self, file_ref: Optional[UploadedFileRef]) -> None:
        self._require(WizardStep.UPLOAD_SETTLEMENT)
        self.state.settlement_file = file_ref

    def upload_settlement(self) -> bool:
        """Upload settlement, then load SKUs and their stored costs for editing."""
        self._require(WizardStep.UPLOAD_SETTLEMENT)
        if self.state.settlement_file is None:
            self.state.error_message = "Please select a file"
            return False

        ticket = self._begin_call()
        with self._releasing(ticket):
            try:
                self.services.uploads.upload_settlement(self.state.settlement_file)
                skus = self.services.skus.list_skus()
                stored = self.services.sku_costs.list_costs()
            except ApiError as exc:
                return self._fail(ticket, exc.message or "Settlement upload failed")
        if not self._is_current(ticket):
            return False

        previous = self.state.sku_costs
        costs: Dict[str, str] = {}
        for sku in skus:
            if previous.get(sku, "").strip():
                costs[sku] = previous[sku]
            elif sku in stored:
                costs[sku] = plain_number(stored[sku])
            else:
                costs[sku] = ""

        self.state.skus = skus
        self.state.sku_costs = costs
        self.state.settlement_file = None
        self.state.settlement_uploaded = True
        self.state.busy = False
        self._move_to(WizardStep.ENTER_COSTS)
        return True

    # ---------- step 3: costs ----------

    def set_cost(self, sku: str, value: str) -> None:
        self._require(WizardStep.ENTER_COSTS)
        if sku not in self.state.sku_costs:
            raise KeyError(sku)
        self.state.sku_costs[sku] = value

    def invalid_costs(self) -> List[str]:
        return [sku for sku, value in self.state.sku_costs.items() if parse_cost(value) is None]

    def submit_costs(self) -> bool:
        """Save every cost (concurrently), then fetch the report. All or nothing."""
        self._require(WizardStep.ENTER_COSTS)
        invalid = self.invalid_costs()
        if invalid:
            self.state.error_message = (
                "Enter a cost price of 0 or more for: " + ", ".join(invalid)
            )
            return False

        costs = {sku: parse_cost(value) for sku, value in self.state.sku_costs.items()}
        ticket = self._begin_call()
        with self._releasing(ticket):
            failures = self._upsert_all(costs)
            if failures:
                first = next(iter(failures.values()))
                failed = ", ".join(sorted(failures))
                return self._fail(
                    ticket,
                    f"Failed to save cost for {len(failures)} of {len(costs)} SKUs ({failed}): {first.message}",
                )
            if not self._is_current(ticket):
                return False

            try:
                payload = self.services.profit.fetch_detailed_payload()
            except ApiError as exc:
                return self._fail(ticket, exc.message or "Report generation failed")
            if not self._is_current(ticket):
                return False

            self.state.report = normalize_report(payload)
            self.storage.set_json(config.REPORT_KEY, payload)
        self.state.busy = False
        self._move_to(WizardStep.SHOW_REPORT)
        return True

    def _upsert_all(self, costs: Dict[str, float]) -> Dict[str, ApiError]:
        """Fire every upsert, wait for all of them, return failures by SKU."""
        if not costs:
            return {}
        failures: Dict[str, ApiError] = {}
        workers = max(1, min(self.max_workers, len(costs)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self.services.sku_costs.upsert, sku, price): sku
                for sku, price in costs.items()
            }
            for future in as_completed(futures):
                sku = futures[future]
                try:
                    future.result()
                except ApiError as exc:
                    logger.warning("Cost upsert failed for %s: %s", sku, exc.message)
                    failures[sku] = exc
        return failures
