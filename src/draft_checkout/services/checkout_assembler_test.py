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

"""Tests for the checkout assembler."""

import asyncio
import os
import shutil
import tempfile

from absl.testing import absltest
from draft_checkout import db
from draft_checkout.config import PlatformConfig
from draft_checkout.enums import AttemptStatus
from draft_checkout.enums import ProvisioningStrategy
from draft_checkout.enums import UnitState
from draft_checkout.exceptions import AggregationError
from draft_checkout.exceptions import ProvisioningError
from draft_checkout.exceptions import ValidationError
from draft_checkout.fake_platform import FakePlatform
from draft_checkout.fake_platform import TEST_INVOICE_URL
from draft_checkout.models import CheckoutRequest
from draft_checkout.platform_client import AdminApiClient
from draft_checkout.services.checkout_assembler import CheckoutAssembler


def _config(**overrides) -> PlatformConfig:
  values = {
      "store_domain": "test-shop.myshopify.com",
      "admin_access_token": "shpat_test",
      "template_product_id": "777",
  }
  values.update(overrides)
  return PlatformConfig(**values)


def _request(*titles, currency="EUR", country=None) -> CheckoutRequest:
  return CheckoutRequest.model_validate({
      "items": [
          {"title": title, "unitPrice": "19.99", "quantity": 1}
          for title in titles
      ],
      "currency": currency,
      "country": country,
  })


class CheckoutAssemblerTest(absltest.TestCase):

  def setUp(self):
    super().setUp()
    self.platform = FakePlatform()

  def _checkout(self, checkout_req, config=None):
    """Runs one checkout; returns the result or the raised CheckoutError."""
    config = config or _config()

    async def go():
      async with self.platform.http_client() as http_client:
        assembler = CheckoutAssembler(
            AdminApiClient(config, http_client), config
        )
        try:
          return await assembler.create_checkout(checkout_req)
        except (ValidationError, ProvisioningError, AggregationError) as e:
          return e

    return asyncio.run(go())

  def test_single_line_success(self):
    result = self._checkout(
        CheckoutRequest.model_validate({
            "items": [{"title": "A", "unitPrice": 10.00, "quantity": 2}],
            "currency": "EUR",
        })
    )

    self.assertEqual(result.checkout_url, TEST_INVOICE_URL)
    self.assertLen(result.provisioned_unit_ids, 1)
    self.assertLen(self.platform.variants, 1)
    self.assertEmpty(self.platform.deleted_variants)

    draft_input = self.platform.draft_order_inputs[0]
    self.assertEqual(draft_input["presentmentCurrencyCode"], "EUR")
    variant_id = next(iter(self.platform.variants))
    self.assertEqual(
        draft_input["lineItems"][0]["variantId"],
        f"gid://shopify/ProductVariant/{variant_id}",
    )
    self.assertEqual(draft_input["lineItems"][0]["quantity"], 2)
    self.assertEqual(self.platform.variants[variant_id]["price"], "10.00")

  def test_line_count_matches_units(self):
    result = self._checkout(_request("A", "B", "C", country="nl"))

    self.assertLen(result.provisioned_unit_ids, 3)
    self.assertLen(set(result.provisioned_unit_ids), 3)
    draft_input = self.platform.draft_order_inputs[0]
    self.assertLen(draft_input["lineItems"], 3)
    self.assertEqual(draft_input["marketRegionCountryCode"], "NL")

  def test_default_currency(self):
    self._checkout(_request("A", currency=None), _config(base_currency="GBP"))

    self.assertEqual(
        self.platform.draft_order_inputs[0]["presentmentCurrencyCode"], "GBP"
    )

  def test_empty_cart_makes_no_platform_calls(self):
    error = self._checkout(CheckoutRequest.model_validate({"items": []}))

    self.assertIsInstance(error, ValidationError)
    self.assertEqual(error.status_code, 400)
    self.assertEmpty(self.platform.requests)

  def test_user_errors_trigger_compensation(self):
    self.platform.draft_order_user_errors = [
        {"field": ["lineItems"], "message": "Variant is unavailable"}
    ]

    error = self._checkout(_request("Shirt"))

    self.assertIsInstance(error, AggregationError)
    self.assertLen(error.user_errors, 1)
    self.assertEmpty(self.platform.variants)
    self.assertLen(self.platform.deleted_variants, 1)

  def test_provisioning_failure_compensates_created_units_once(self):
    self.platform.network_error_titles.add("B")

    error = self._checkout(_request("A", "B"))

    self.assertIsInstance(error, ProvisioningError)
    self.assertEqual(error.details, {"index": 1})
    self.assertLen(self.platform.deleted_variants, 1)
    self.assertLen(self.platform.requests_for("DELETE", "/variants/"), 1)
    self.assertEmpty(self.platform.variants)
    self.assertEmpty(self.platform.draft_order_inputs)

  def test_compensation_failure_keeps_original_error(self):
    self.platform.draft_order_status = 500
    self.platform.delete_status = 500

    error = self._checkout(_request("A"))

    self.assertIsInstance(error, AggregationError)
    self.assertIsNotNone(error.transport_error)
    self.assertLen(self.platform.variants, 1)

  def test_product_strategy(self):
    config = _config(
        strategy=ProvisioningStrategy.PRODUCT, template_product_id=None
    )
    self.platform.draft_order_invoice_url = None

    error = self._checkout(_request("A", "B"), config)

    self.assertIsInstance(error, AggregationError)
    self.assertLen(self.platform.requests_for("POST", "/products.json"), 2)
    self.assertLen(self.platform.deleted_products, 2)
    self.assertEmpty(self.platform.products)

  def test_custom_line_items_strategy(self):
    config = _config(
        strategy=ProvisioningStrategy.CUSTOM_LINE_ITEMS,
        template_product_id=None,
    )

    result = self._checkout(_request("A", "B"), config)

    self.assertEqual(result.checkout_url, TEST_INVOICE_URL)
    self.assertEmpty(result.provisioned_unit_ids)
    self.assertLen(self.platform.requests, 1)
    line_items = self.platform.draft_order_inputs[0]["lineItems"]
    self.assertEqual([li["title"] for li in line_items], ["A", "B"])
    self.assertEqual(line_items[0]["originalUnitPrice"], "19.99")

  def test_cancellation_compensates(self):
    self.platform.draft_order_delay = 5.0
    config = _config()

    async def go():
      async with self.platform.http_client() as http_client:
        assembler = CheckoutAssembler(
            AdminApiClient(config, http_client), config
        )
        task = asyncio.create_task(
            assembler.create_checkout(_request("A", "B"))
        )
        await self.platform.draft_order_started.wait()
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
          await task

    asyncio.run(go())

    self.assertLen(self.platform.deleted_variants, 2)
    self.assertEmpty(self.platform.variants)

  def test_cancellation_during_provisioning_compensates_created_units(self):
    self.platform.stalled_titles.add("B")
    # One line at a time, so "A" is fully provisioned before "B" stalls.
    config = _config(max_concurrency=1)

    async def go():
      async with self.platform.http_client() as http_client:
        assembler = CheckoutAssembler(
            AdminApiClient(config, http_client), config
        )
        task = asyncio.create_task(
            assembler.create_checkout(_request("A", "B"))
        )
        await self.platform.create_stalled.wait()
        created_ids = list(self.platform.variants)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
          await task
        return created_ids

    created_ids = asyncio.run(go())

    self.assertLen(created_ids, 1)
    self.assertEqual(self.platform.deleted_variants, created_ids)
    self.assertLen(self.platform.requests_for("DELETE", "/variants/"), 1)
    self.assertEmpty(self.platform.variants)
    self.assertEmpty(self.platform.draft_order_inputs)


class CheckoutLedgerTest(absltest.TestCase):

  def test_outcomes_are_recorded(self):
    platform = FakePlatform()
    config = _config()
    test_dir = tempfile.mkdtemp()
    self.addCleanup(shutil.rmtree, test_dir, ignore_errors=True)
    path = os.path.join(test_dir, "ledger.db")
    manager = db.DatabaseManager()

    async def go():
      await manager.init_db(path)
      try:
        async with platform.http_client() as http_client:
          client = AdminApiClient(config, http_client)
          async with manager.session_factory() as session:
            assembler = CheckoutAssembler(client, config, session)
            await assembler.create_checkout(_request("Kept"), "ok-1")

            platform.draft_order_user_errors = [{"message": "nope"}]
            with self.assertRaises(AggregationError):
              await assembler.create_checkout(_request("Dropped"), "bad-1")

          async with manager.session_factory() as session:
            ok = await db.get_checkout_attempt(session, "ok-1")
            bad = await db.get_checkout_attempt(session, "bad-1")
            retained = await db.get_provisioned_units(
                session, state=UnitState.RETAINED.value
            )
            deleted = await db.get_provisioned_units(
                session, attempt_id="bad-1"
            )
            return ok, bad, retained, deleted
      finally:
        await manager.close()

    ok, bad, retained, deleted = asyncio.run(go())

    self.assertEqual(ok.status, AttemptStatus.SUCCEEDED.value)
    self.assertEqual(ok.checkout_url, TEST_INVOICE_URL)
    self.assertEqual(ok.request["lines"][0]["title"], "Kept")
    self.assertEqual(bad.status, AttemptStatus.FAILED.value)
    self.assertEqual(bad.error_code, "AGGREGATION_FAILED")
    self.assertEqual([u.attempt_id for u in retained], ["ok-1"])
    self.assertLen(deleted, 1)
    self.assertEqual(deleted[0].state, UnitState.DELETED.value)


if __name__ == "__main__":
  absltest.main()
