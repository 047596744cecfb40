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

"""Tests for the compensation stage."""

import asyncio

from absl.testing import absltest
from draft_checkout.config import PlatformConfig
from draft_checkout.fake_platform import FakePlatform
from draft_checkout.models import ProvisionedUnit
from draft_checkout.platform_client import AdminApiClient
from draft_checkout.services.compensation import CompensationStage
from draft_checkout.services.provisioning import VariantPerLineStrategy


def _unit(local_id, variant_id):
  return ProvisionedUnit(
      local_id=local_id,
      line_index=0,
      remote_variant_id=variant_id,
      quantity=1,
      option_value=f"X-1-{local_id}",
  )


class CompensationStageTest(absltest.TestCase):

  def setUp(self):
    super().setUp()
    self.platform = FakePlatform()
    self.platform.variants["11"] = {"id": 11}
    self.platform.variants["12"] = {"id": 12}
    self.config = PlatformConfig(
        store_domain="test-shop.myshopify.com",
        admin_access_token="shpat_test",
        template_product_id="777",
    )

  def _compensate(self, units):
    async def go():
      async with self.platform.http_client() as http_client:
        strategy = VariantPerLineStrategy(
            AdminApiClient(self.config, http_client), self.config
        )
        return await CompensationStage(strategy, 2).compensate(units)

    return asyncio.run(go())

  def test_deletes_each_unit_once(self):
    a = _unit("a", "11")
    b = _unit("b", "12")

    report = self._compensate([a, b, a])

    self.assertTrue(report.complete)
    self.assertCountEqual(report.deleted, ["a", "b"])
    self.assertCountEqual(self.platform.deleted_variants, ["11", "12"])
    self.assertLen(self.platform.requests_for("DELETE", "/variants/"), 2)

  def test_already_deleted_counts_as_deleted(self):
    report = self._compensate([_unit("gone", "99")])

    self.assertTrue(report.complete)
    self.assertEqual(report.deleted, ["gone"])

  def test_failures_are_reported_not_raised(self):
    self.platform.delete_status = 500

    report = self._compensate([_unit("a", "11"), _unit("b", "12")])

    self.assertFalse(report.complete)
    self.assertEmpty(report.deleted)
    self.assertCountEqual([f.local_id for f in report.failed], ["a", "b"])
    self.assertIn("Failed to delete provisioned unit", report.failed[0].message)

  def test_nothing_to_compensate(self):
    report = self._compensate([])

    self.assertTrue(report.complete)
    self.assertEmpty(self.platform.requests)


if __name__ == "__main__":
  absltest.main()
