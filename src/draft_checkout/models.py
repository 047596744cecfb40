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

"""Request, result and intermediate models for the draft checkout service.

Inbound JSON uses the storefront's camelCase names (and the older `price` /
`image` keys the cart scripts still send); Python code uses snake_case. Results
are serialized with `by_alias=True` so callers get camelCase back.
"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

VARIANT_GID_PREFIX = "gid://shopify/ProductVariant/"

# Prices must quantize to three decimals within the default decimal context.
MAX_PRICE_INTEGER_DIGITS = 15


class CartLine(BaseModel):
  """A single line of the storefront cart."""

  model_config = ConfigDict(frozen=True)

  title: str = Field(min_length=1)
  unit_price: Decimal = Field(
      ge=0, validation_alias=AliasChoices("unitPrice", "price", "unit_price")
  )
  quantity: int = Field(gt=0)
  image_url: Optional[str] = Field(
      None, validation_alias=AliasChoices("imageUrl", "image", "image_url")
  )
  source_product_title: Optional[str] = Field(
      None,
      validation_alias=AliasChoices(
          "sourceProductTitle", "originalTitle", "source_product_title"
      ),
  )

  @field_validator("unit_price")
  @classmethod
  def check_price_magnitude(cls, value: Decimal) -> Decimal:
    if not value.is_finite() or value.adjusted() >= MAX_PRICE_INTEGER_DIGITS:
      raise ValueError(
          f"unit price must be below 10^{MAX_PRICE_INTEGER_DIGITS}"
      )
    return value


class CheckoutRequest(BaseModel):
  """A cart checkout request as received from the storefront."""

  model_config = ConfigDict(frozen=True)

  lines: tuple[CartLine, ...] = Field(
      validation_alias=AliasChoices("items", "lines")
  )
  presentment_currency: Optional[str] = Field(
      None,
      pattern=r"^[A-Za-z]{3}$",
      validation_alias=AliasChoices(
          "currency", "presentmentCurrency", "presentment_currency"
      ),
  )
  country_hint: Optional[str] = Field(
      None,
      pattern=r"^[A-Za-z]{2}$",
      validation_alias=AliasChoices("country", "countryHint", "country_hint"),
  )

  @field_validator("presentment_currency", "country_hint")
  @classmethod
  def normalize_code(cls, value: Optional[str]) -> Optional[str]:
    return value.upper() if value else value


class ProvisionedUnit(BaseModel):
  """A temporary sell-able unit created on the platform for one cart line.

  `remote_product_id` is only set when the unit owns a throwaway product;
  variants attached to the template product leave it empty.
  """

  model_config = ConfigDict(frozen=True)

  local_id: str
  line_index: int
  remote_variant_id: str
  remote_product_id: Optional[str] = None
  quantity: int = Field(gt=0)
  option_value: str

  @property
  def variant_gid(self) -> str:
    if self.remote_variant_id.startswith("gid://"):
      return self.remote_variant_id
    return f"{VARIANT_GID_PREFIX}{self.remote_variant_id}"


class DraftOrder(BaseModel):
  checkout_url: str
  draft_order_id: Optional[str] = None


class CheckoutResult(BaseModel):
  """Successful outcome of a checkout assembly."""

  checkout_url: str = Field(serialization_alias="checkoutUrl")
  provisioned_unit_ids: list[str] = Field(
      default_factory=list, serialization_alias="provisionedUnitIds"
  )
  draft_order_id: Optional[str] = Field(
      None, serialization_alias="draftOrderId"
  )


class CompensationFailure(BaseModel):
  local_id: str
  message: str


class CompensationReport(BaseModel):
  """What the compensation stage managed to clean up."""

  deleted: list[str] = Field(default_factory=list)
  failed: list[CompensationFailure] = Field(default_factory=list)

  @property
  def complete(self) -> bool:
    return not self.failed


class ErrorResponse(BaseModel):
  """JSON body returned for every failed request."""

  error: str
  code: str
  details: Optional[Any] = None
