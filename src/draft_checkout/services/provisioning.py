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

"""Provisioning stage: one temporary sell-able unit per cart line.

The platform rejects variants whose option values collide, so every unit gets
an option value built from the line title, a millisecond timestamp and a random
suffix. How a unit is represented on the platform is decided by a
`UnitStrategy`:

- `VariantPerLineStrategy` adds a variant to a configured template product.
- `ProductPerLineStrategy` creates an unpublished single-variant product.

Lines are provisioned concurrently, bounded by a semaphore, and the caller's
accumulator receives each unit as soon as the platform has created it so that
nothing is stranded if the stage fails or is cancelled midway.
"""

from abc import ABC
from abc import abstractmethod
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence
import uuid

from draft_checkout.config import PlatformConfig
from draft_checkout.enums import ProvisioningStrategy
from draft_checkout.exceptions import ConfigurationError
from draft_checkout.exceptions import PlatformRequestError
from draft_checkout.exceptions import ProvisioningError
from draft_checkout.models import CartLine
from draft_checkout.models import ProvisionedUnit
from draft_checkout.platform_client import AdminApiClient
from draft_checkout.services.currency import LinePricer

logger = logging.getLogger(__name__)

OPTION_TITLE_LENGTH = 40
THROWAWAY_PRODUCT_TAG = "dynamic-checkout"


def normalize_image_url(url: Optional[str]) -> Optional[str]:
  """Turns protocol-relative URLs (`//host/path`) into https URLs."""
  if not url or not url.strip():
    return None
  url = url.strip()
  if url.startswith("//"):
    return f"https:{url}"
  return url


def unique_option_value(title: str) -> str:
  timestamp = int(time.time() * 1000)
  suffix = uuid.uuid4().hex[:6]
  return f"{title[:OPTION_TITLE_LENGTH]}-{timestamp}-{suffix}"


def _rest_id(value: str) -> Any:
  # The REST API takes numeric ids; keep anything else as given.
  return int(value) if value.isdigit() else value


def _variant_payload(option_value: str, price: str) -> Dict[str, Any]:
  return {
      "option1": option_value,
      "price": price,
      "inventory_policy": "deny",
      "inventory_management": None,
      "requires_shipping": True,
  }


class UnitStrategy(ABC):
  """How a cart line is represented as a sell-able unit on the platform."""

  kind: ProvisioningStrategy

  def __init__(self, client: AdminApiClient, config: PlatformConfig):
    self.client = client
    self.config = config

  @abstractmethod
  async def create_unit(
      self, index: int, line: CartLine, option_value: str, price: str
  ) -> ProvisionedUnit:
    """Creates the unit on the platform."""

  @abstractmethod
  async def attach_image(self, unit: ProvisionedUnit, image_url: str) -> None:
    """Uploads an image for the unit by source URL."""

  @abstractmethod
  async def delete_unit(self, unit: ProvisionedUnit) -> None:
    """Removes the unit from the platform."""


class VariantPerLineStrategy(UnitStrategy):
  """Adds one variant per line to the template product."""

  kind = ProvisioningStrategy.VARIANT

  def __init__(self, client: AdminApiClient, config: PlatformConfig):
    super().__init__(client, config)
    if not config.template_product_id:
      raise ConfigurationError(
          "TEMPLATE_PRODUCT_ID is required for the variant strategy"
      )
    self.template_product_id = config.template_product_id

  async def create_unit(
      self, index: int, line: CartLine, option_value: str, price: str
  ) -> ProvisionedUnit:
    variant = await self.client.create_variant(
        self.template_product_id, _variant_payload(option_value, price)
    )
    logger.info("Created variant %s for line %d", variant["id"], index)
    return ProvisionedUnit(
        local_id=str(uuid.uuid4()),
        line_index=index,
        remote_variant_id=str(variant["id"]),
        quantity=line.quantity,
        option_value=option_value,
    )

  async def attach_image(self, unit: ProvisionedUnit, image_url: str) -> None:
    await self.client.create_product_image(
        self.template_product_id,
        {"src": image_url, "variant_ids": [_rest_id(unit.remote_variant_id)]},
    )

  async def delete_unit(self, unit: ProvisionedUnit) -> None:
    await self.client.delete_variant(
        self.template_product_id, unit.remote_variant_id
    )


class ProductPerLineStrategy(UnitStrategy):
  """Creates one unpublished, single-variant product per line."""

  kind = ProvisioningStrategy.PRODUCT

  async def create_unit(
      self, index: int, line: CartLine, option_value: str, price: str
  ) -> ProvisionedUnit:
    product = await self.client.create_product({
        "title": line.title,
        "status": "active",
        "published": False,
        "tags": THROWAWAY_PRODUCT_TAG,
        "variants": [_variant_payload(option_value, price)],
    })
    variant = product["variants"][0]
    logger.info(
        "Created product %s (variant %s) for line %d",
        product["id"],
        variant["id"],
        index,
    )
    return ProvisionedUnit(
        local_id=str(uuid.uuid4()),
        line_index=index,
        remote_product_id=str(product["id"]),
        remote_variant_id=str(variant["id"]),
        quantity=line.quantity,
        option_value=option_value,
    )

  async def attach_image(self, unit: ProvisionedUnit, image_url: str) -> None:
    await self.client.create_product_image(
        unit.remote_product_id,
        {"src": image_url, "variant_ids": [_rest_id(unit.remote_variant_id)]},
    )

  async def delete_unit(self, unit: ProvisionedUnit) -> None:
    await self.client.delete_product(unit.remote_product_id)


_STRATEGIES = {
    ProvisioningStrategy.VARIANT: VariantPerLineStrategy,
    ProvisioningStrategy.PRODUCT: ProductPerLineStrategy,
}


def get_unit_strategy(
    client: AdminApiClient, config: PlatformConfig
) -> UnitStrategy:
  """Returns the unit strategy selected by the config."""
  strategy_cls = _STRATEGIES.get(config.strategy)
  if strategy_cls is None:
    raise ConfigurationError(
        f"Strategy '{config.strategy.value}' does not provision units"
    )
  return strategy_cls(client, config)


class ProvisioningStage:
  """Creates one unit per cart line, concurrently."""

  def __init__(
      self,
      strategy: UnitStrategy,
      pricer: LinePricer,
      max_concurrency: int,
  ):
    self.strategy = strategy
    self.pricer = pricer
    self.max_concurrency = max_concurrency

  async def provision(
      self,
      lines: Sequence[CartLine],
      presentment_currency: str,
      created: List[ProvisionedUnit],
  ) -> List[ProvisionedUnit]:
    """Provisions every line and returns the units in line order.

    Args:
      lines: The cart lines.
      presentment_currency: The currency the cart prices are quoted in.
      created: Accumulator that receives every unit the platform created,
        in completion order, including units of a run that later fails.

    Returns:
      One unit per line, in the same order as `lines`.

    Raises:
      ProvisioningError: For the lowest-indexed line that failed, once every
        line has settled.
    """
    semaphore = asyncio.Semaphore(self.max_concurrency)

    async def provision_line(index: int, line: CartLine) -> ProvisionedUnit:
      async with semaphore:
        option_value = unique_option_value(line.title)
        price = self.pricer.price(line.unit_price, presentment_currency)
        try:
          unit = await self.strategy.create_unit(
              index, line, option_value, price
          )
        except Exception as e:  # pylint: disable=broad-exception-caught
          logger.error("Failed to provision line %d: %s", index, e)
          raise ProvisioningError(index, e) from e
        created.append(unit)

        image_url = normalize_image_url(line.image_url)
        if image_url:
          await self._attach_image(unit, image_url)
        return unit

    results = await asyncio.gather(
        *(provision_line(i, line) for i, line in enumerate(lines)),
        return_exceptions=True,
    )

    units = []
    for index, result in enumerate(results):
      if isinstance(result, ProvisioningError):
        raise result
      if isinstance(result, BaseException):
        raise ProvisioningError(index, result) from result
      units.append(result)
    return units

  async def _attach_image(self, unit: ProvisionedUnit, image_url: str) -> None:
    """Uploads the line image. Failure leaves the unit without an image."""
    try:
      await self.strategy.attach_image(unit, image_url)
    except PlatformRequestError as e:
      logger.warning(
          "Image upload for line %d failed, continuing without image: %s",
          unit.line_index,
          e,
      )
