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

"""Tests for loading the platform config from the environment."""

from absl.testing import absltest
from draft_checkout.config import normalize_store_domain
from draft_checkout.config import PlatformConfig
from draft_checkout.enums import ProvisioningStrategy
from draft_checkout.exceptions import ConfigurationError

BASE_ENV = {
    "MASTER_STORE_DOMAIN": "test-shop.myshopify.com",
    "ADMIN_API_ACCESS_TOKEN": "shpat_test",
    "TEMPLATE_PRODUCT_ID": "777",
}


class PlatformConfigTest(absltest.TestCase):

  def test_from_env_defaults(self):
    config = PlatformConfig.from_env(BASE_ENV)

    self.assertEqual(config.store_domain, "test-shop.myshopify.com")
    self.assertEqual(config.template_product_id, "777")
    self.assertEqual(config.strategy, ProvisioningStrategy.VARIANT)
    self.assertEqual(config.api_version, "2024-10")
    self.assertIsNone(config.base_currency)
    self.assertEqual(config.default_currency, "EUR")
    self.assertEqual(config.max_concurrency, 5)
    self.assertEqual(
        config.admin_base_url,
        "https://test-shop.myshopify.com/admin/api/2024-10",
    )

  def test_missing_credentials_are_all_reported(self):
    with self.assertRaises(ConfigurationError) as cm:
      PlatformConfig.from_env({})

    self.assertEqual(cm.exception.status_code, 500)
    self.assertIn("MASTER_STORE_DOMAIN", cm.exception.message)
    self.assertIn("ADMIN_API_ACCESS_TOKEN", cm.exception.message)
    self.assertIn("TEMPLATE_PRODUCT_ID", cm.exception.message)

  def test_template_product_only_required_for_variants(self):
    env = dict(BASE_ENV, CHECKOUT_STRATEGY="product")
    del env["TEMPLATE_PRODUCT_ID"]

    config = PlatformConfig.from_env(env)

    self.assertEqual(config.strategy, ProvisioningStrategy.PRODUCT)
    self.assertIsNone(config.template_product_id)

  def test_unknown_strategy(self):
    with self.assertRaises(ConfigurationError):
      PlatformConfig.from_env(dict(BASE_ENV, CHECKOUT_STRATEGY="magic"))

  def test_optional_settings(self):
    config = PlatformConfig.from_env(
        dict(
            BASE_ENV,
            STORE_BASE_CURRENCY="gbp",
            CHECKOUT_MAX_CONCURRENCY="2",
            PLATFORM_TIMEOUT_SECONDS="2.5",
            SHOPIFY_API_VERSION="2025-01",
        )
    )

    self.assertEqual(config.base_currency, "GBP")
    self.assertEqual(config.default_currency, "GBP")
    self.assertEqual(config.max_concurrency, 2)
    self.assertEqual(config.request_timeout_seconds, 2.5)
    self.assertEqual(config.api_version, "2025-01")

  def test_invalid_concurrency(self):
    with self.assertRaises(ConfigurationError):
      PlatformConfig.from_env(dict(BASE_ENV, CHECKOUT_MAX_CONCURRENCY="lots"))
    with self.assertRaises(ConfigurationError):
      PlatformConfig.from_env(dict(BASE_ENV, CHECKOUT_MAX_CONCURRENCY="0"))

  def test_normalize_store_domain(self):
    self.assertEqual(
        normalize_store_domain(" https://shop.myshopify.com/ "),
        "shop.myshopify.com",
    )
    self.assertEqual(
        normalize_store_domain("http://shop.example"), "shop.example"
    )
    self.assertEqual(normalize_store_domain(""), "")


if __name__ == "__main__":
  absltest.main()
