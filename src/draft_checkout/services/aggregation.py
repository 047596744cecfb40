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

"""Aggregation stage: a single draft order for the whole cart."""

import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlsplit

from draft_checkout.exceptions import AggregationError
from draft_checkout.exceptions import PlatformRequestError
from draft_checkout.models import CartLine
from draft_checkout.models import DraftOrder
from draft_checkout.models import ProvisionedUnit
from draft_checkout.platform_client import AdminApiClient
from draft_checkout.services.currency import format_price
from draft_checkout.services.currency import LinePricer

logger = logging.getLogger(__name__)

DRAFT_ORDER_CREATE_MUTATION = """
mutation draftOrderCreate($input: DraftOrderInput!) {
  draftOrderCreate(input: $input) {
    draftOrder {
      id
      invoiceUrl
    }
    userErrors {
      field
      message
    }
  }
}
"""


def is_absolute_url(url: str) -> bool:
  parts = urlsplit(url)
  return parts.scheme in ("http", "https") and bool(parts.netloc)


class AggregationStage:
  """Creates the draft order that turns provisioned units into a checkout."""

  def __init__(self, client: AdminApiClient, pricer: LinePricer):
    self.client = client
    self.pricer = pricer

  def _custom_attributes(
      self, line: CartLine, presentment_currency: str
  ) -> List[Dict[str, str]]:
    attributes = [
        {
            "key": "_original_product",
            "value": line.source_product_title or line.title,
        },
        {
            "key": "_original_price",
            "value": (
                f"{format_price(line.unit_price, presentment_currency)}"
                f" {presentment_currency}"
            ),
        },
    ]
    if self.pricer.converts(presentment_currency):
      attributes.append({
          "key": "_base_price",
          "value": (
              f"{self.pricer.price(line.unit_price, presentment_currency)}"
              f" {self.pricer.pricing_currency(presentment_currency)}"
          ),
      })
    return attributes

  def build_input(
      self,
      lines: Sequence[CartLine],
      units: Optional[Sequence[ProvisionedUnit]],
      presentment_currency: str,
      country_hint: Optional[str] = None,
  ) -> Dict[str, Any]:
    """Builds the `DraftOrderInput` for the mutation.

    Args:
      lines: The cart lines, in order.
      units: The provisioned units, or None to send free-form lines.
      presentment_currency: The currency the checkout is quoted in.
      country_hint: Optional ISO 3166 country used for market pricing.

    Returns:
      The mutation input.
    """
    line_items = []
    if units is None:
      for line in lines:
        line_items.append({
            "title": line.title,
            "originalUnitPrice": self.pricer.price(
                line.unit_price, presentment_currency
            ),
            "quantity": line.quantity,
            "requiresShipping": True,
            "customAttributes": self._custom_attributes(
                line, presentment_currency
            ),
        })
    else:
      for unit in units:
        line_items.append({
            "variantId": unit.variant_gid,
            "quantity": unit.quantity,
            "customAttributes": self._custom_attributes(
                lines[unit.line_index], presentment_currency
            ),
        })

    draft_input: Dict[str, Any] = {
        "lineItems": line_items,
        "presentmentCurrencyCode": presentment_currency,
    }
    if country_hint:
      draft_input["marketRegionCountryCode"] = country_hint
    return draft_input

  async def create_order(
      self,
      lines: Sequence[CartLine],
      units: Optional[Sequence[ProvisionedUnit]],
      presentment_currency: str,
      country_hint: Optional[str] = None,
  ) -> DraftOrder:
    """Issues the single draft order creation call.

    Raises:
      AggregationError: With `user_errors` when the platform rejected the
        input, or `transport_error` when the call or its response failed.
    """
    variables = {
        "input": self.build_input(
            lines, units, presentment_currency, country_hint
        )
    }
    try:
      data = await self.client.graphql(DRAFT_ORDER_CREATE_MUTATION, variables)
    except PlatformRequestError as e:
      raise AggregationError(
          "Could not create checkout on the platform.",
          transport_error=str(e),
      ) from e

    result = data.get("draftOrderCreate") or {}
    user_errors = result.get("userErrors") or []
    if user_errors:
      logger.error("Draft order user errors: %s", user_errors)
      raise AggregationError(
          f"Platform validation error: {user_errors[0].get('message')}",
          user_errors=user_errors,
      )

    draft_order = result.get("draftOrder") or {}
    invoice_url = draft_order.get("invoiceUrl")
    if not invoice_url or not is_absolute_url(invoice_url):
      logger.error("No usable invoice URL in response: %s", data)
      raise AggregationError(
          "Could not create the draft order checkout URL.",
          transport_error=f"Missing or invalid invoiceUrl: {invoice_url!r}",
      )

    logger.info("Draft order %s created", draft_order.get("id"))
    return DraftOrder(
        checkout_url=invoice_url, draft_order_id=draft_order.get("id")
    )
