#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Checkout assembler: turns an ad-hoc cart into a payable draft order.

This module provides the `CheckoutAssembler` class, which runs one checkout
attempt through three stages:

- Provisioning: create a temporary sell-able unit per cart line.
- Aggregation: create one draft order referencing all of them.
- Compensation: on any failure after provisioning began (including
  cancellation), delete every unit that was created, best-effort.

An attempt moves Provisioning -> Aggregating -> Succeeded, or to Compensating
-> Failed from either of the first two states. Units are kept on the platform
only when the attempt succeeds. When a ledger session is supplied the outcome,
including the fate of each unit, is recorded there.
"""

import asyncio
import logging
from typing import List, Optional
import uuid

from draft_checkout import db
from draft_checkout.config import PlatformConfig
from draft_checkout.enums import AttemptStatus
from draft_checkout.enums import ProvisioningStrategy
from draft_checkout.enums import UnitState
from draft_checkout.exceptions import ValidationError
from draft_checkout.models import CheckoutRequest
from draft_checkout.models import CheckoutResult
from draft_checkout.models import CompensationReport
from draft_checkout.models import DraftOrder
from draft_checkout.models import ProvisionedUnit
from draft_checkout.platform_client import AdminApiClient
from draft_checkout.services.aggregation import AggregationStage
from draft_checkout.services.compensation import CompensationStage
from draft_checkout.services.currency import LinePricer
from draft_checkout.services.currency import RateProvider
from draft_checkout.services.provisioning import get_unit_strategy
from draft_checkout.services.provisioning import ProvisioningStage
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class CheckoutAssembler:
  """Service for assembling draft-order checkouts from storefront carts."""

  def __init__(
      self,
      client: AdminApiClient,
      config: PlatformConfig,
      ledger_session: Optional[AsyncSession] = None,
      rate_provider: Optional[RateProvider] = None,
  ):
    self.client = client
    self.config = config
    self.ledger_session = ledger_session
    self.pricer = LinePricer(config.base_currency, rate_provider)
    self.aggregation = AggregationStage(client, self.pricer)

    # Custom line items create nothing on the platform, so their results
    # carry no unit IDs and the one-unit-per-line rule does not apply.
    self.provisioning: Optional[ProvisioningStage] = None
    self.compensation: Optional[CompensationStage] = None
    if config.strategy != ProvisioningStrategy.CUSTOM_LINE_ITEMS:
      unit_strategy = get_unit_strategy(client, config)
      self.provisioning = ProvisioningStage(
          unit_strategy, self.pricer, config.max_concurrency
      )
      self.compensation = CompensationStage(
          unit_strategy, config.max_concurrency
      )

  def _validate(self, checkout_req: CheckoutRequest) -> None:
    if not checkout_req.lines:
      raise ValidationError("Cart is empty.")

  def _transition(self, attempt_id: str, status: AttemptStatus) -> None:
    logger.info("Checkout %s -> %s", attempt_id, status.value)

  async def create_checkout(
      self,
      checkout_req: CheckoutRequest,
      attempt_id: Optional[str] = None,
  ) -> CheckoutResult:
    """Provisions, aggregates and, on failure, compensates one checkout.

    Args:
      checkout_req: The cart to check out.
      attempt_id: Optional ID used in logs and the ledger.

    Returns:
      The checkout URL and the IDs of the units backing it.

    Raises:
      ValidationError: If the cart is empty. Raised before any platform call.
      ProvisioningError: If a line could not be provisioned.
      AggregationError: If the draft order could not be created.
    """
    self._validate(checkout_req)
    attempt_id = attempt_id or str(uuid.uuid4())
    currency = checkout_req.presentment_currency or self.config.default_currency
    lines = checkout_req.lines
    created: List[ProvisionedUnit] = []

    logger.info(
        "Creating checkout %s: %d line(s) in %s using %s strategy",
        attempt_id,
        len(lines),
        currency,
        self.config.strategy.value,
    )
    self._transition(attempt_id, AttemptStatus.PROVISIONING)
    try:
      units = None
      if self.provisioning is not None:
        units = await self.provisioning.provision(lines, currency, created)
      self._transition(attempt_id, AttemptStatus.AGGREGATING)
      draft_order = await self.aggregation.create_order(
          lines, units, currency, checkout_req.country_hint
      )
    except (Exception, asyncio.CancelledError) as e:
      self._transition(attempt_id, AttemptStatus.COMPENSATING)
      report = await asyncio.shield(self._compensate(created))
      self._transition(attempt_id, AttemptStatus.FAILED)
      await self._record_outcome(
          attempt_id,
          AttemptStatus.FAILED,
          checkout_req,
          currency,
          created,
          report=report,
          error=e,
      )
      raise

    self._transition(attempt_id, AttemptStatus.SUCCEEDED)
    units = units or []
    await self._record_outcome(
        attempt_id,
        AttemptStatus.SUCCEEDED,
        checkout_req,
        currency,
        units,
        draft_order=draft_order,
    )
    return CheckoutResult(
        checkout_url=draft_order.checkout_url,
        provisioned_unit_ids=[unit.local_id for unit in units],
        draft_order_id=draft_order.draft_order_id,
    )

  async def _compensate(
      self, created: List[ProvisionedUnit]
  ) -> CompensationReport:
    if self.compensation is None or not created:
      return CompensationReport()
    return await self.compensation.compensate(list(created))

  async def _record_outcome(
      self,
      attempt_id: str,
      status: AttemptStatus,
      checkout_req: CheckoutRequest,
      currency: str,
      units: List[ProvisionedUnit],
      report: Optional[CompensationReport] = None,
      draft_order: Optional[DraftOrder] = None,
      error: Optional[BaseException] = None,
  ) -> None:
    """Writes the attempt to the ledger, if there is one.

    The ledger is an audit trail; failing to write it is logged and does not
    change the outcome returned to the caller.
    """
    if self.ledger_session is None:
      return

    states = {}
    errors = {}
    failures = {f.local_id: f.message for f in report.failed} if report else {}
    for unit in units:
      if report is None:
        states[unit.local_id] = UnitState.RETAINED.value
      elif unit.local_id in failures:
        states[unit.local_id] = UnitState.DELETE_FAILED.value
        errors[unit.local_id] = failures[unit.local_id]
      else:
        states[unit.local_id] = UnitState.DELETED.value

    fields = {
        "strategy": self.config.strategy.value,
        "currency": currency,
        "country": checkout_req.country_hint,
        "request": checkout_req.model_dump(mode="json"),
    }
    if draft_order is not None:
      fields["checkout_url"] = draft_order.checkout_url
      fields["draft_order_id"] = draft_order.draft_order_id
    if error is not None:
      fields["error_code"] = getattr(error, "code", type(error).__name__)
      fields["error_message"] = str(error)

    try:
      await db.save_checkout_attempt(
          self.ledger_session, attempt_id, status.value, **fields
      )
      await db.save_provisioned_units(
          self.ledger_session, attempt_id, units, states, errors
      )
      await self.ledger_session.commit()
    except SQLAlchemyError as e:
      logger.error(
          "Failed to record checkout %s in the ledger: %s", attempt_id, e
      )
      await self.ledger_session.rollback()
