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

"""Price formatting and currency conversion helpers.

Prices are handled as `Decimal` throughout and quantized to the currency's
minor units only when they are rendered for the platform.
"""

from abc import ABC
from abc import abstractmethod
from decimal import Decimal
from decimal import ROUND_HALF_UP
import logging
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_MINOR_UNITS = 2

# ISO 4217 currencies whose minor unit differs from two decimals.
MINOR_UNITS = {
    "BIF": 0,
    "CLP": 0,
    "DJF": 0,
    "GNF": 0,
    "ISK": 0,
    "JPY": 0,
    "KMF": 0,
    "KRW": 0,
    "PYG": 0,
    "RWF": 0,
    "UGX": 0,
    "VND": 0,
    "VUV": 0,
    "XAF": 0,
    "XOF": 0,
    "XPF": 0,
    "BHD": 3,
    "IQD": 3,
    "JOD": 3,
    "KWD": 3,
    "LYD": 3,
    "OMR": 3,
    "TND": 3,
}

# Value of one unit of each currency in EUR. Example rates; replace with a
# live provider for production use.
DEFAULT_EUR_RATES = {
    "EUR": Decimal("1.0"),
    "GBP": Decimal("1.17"),
    "USD": Decimal("0.92"),
}


def minor_units(currency: str) -> int:
  return MINOR_UNITS.get(currency.upper(), DEFAULT_MINOR_UNITS)


def quantize_price(amount: Decimal, currency: str) -> Decimal:
  """Rounds an amount half-up to the currency's minor units."""
  exponent = Decimal(1).scaleb(-minor_units(currency))
  return Decimal(amount).quantize(exponent, rounding=ROUND_HALF_UP)


def format_price(amount: Decimal, currency: str) -> str:
  """Renders an amount as a fixed-precision decimal string, e.g. '10.00'."""
  return f"{quantize_price(amount, currency):f}"


class RateProvider(ABC):
  """Source of exchange rates."""

  @abstractmethod
  def rate(self, from_currency: str, to_currency: str) -> Optional[Decimal]:
    """Returns how many `to_currency` units one `from_currency` unit buys.

    Returns None when the pair is unknown.
    """

  def convert(
      self, amount: Decimal, from_currency: str, to_currency: str
  ) -> Decimal:
    """Converts an amount, keeping it unchanged when no rate is known."""
    if from_currency == to_currency:
      return amount
    rate = self.rate(from_currency, to_currency)
    if rate is None:
      logger.warning(
          "No exchange rate for %s -> %s, using original price",
          from_currency,
          to_currency,
      )
      return amount
    converted = amount * rate
    logger.info(
        "Converted %s %s to %s %s",
        amount,
        from_currency,
        format_price(converted, to_currency),
        to_currency,
    )
    return converted


class StaticRateProvider(RateProvider):
  """Rate provider backed by a fixed table of values in a pivot currency."""

  def __init__(self, pivot_rates: Optional[Mapping[str, Decimal]] = None):
    self._rates = {
        code.upper(): Decimal(value)
        for code, value in (pivot_rates or DEFAULT_EUR_RATES).items()
    }

  def rate(self, from_currency: str, to_currency: str) -> Optional[Decimal]:
    from_rate = self._rates.get(from_currency.upper())
    to_rate = self._rates.get(to_currency.upper())
    if from_rate is None or to_rate is None or not to_rate:
      return None
    return from_rate / to_rate


class LinePricer:
  """Decides the currency unit prices are sent to the platform in.

  Without a store base currency prices go out as quoted, in the presentment
  currency. With one, they are converted to the base currency first, since
  that is the currency catalog prices are stored in.
  """

  def __init__(
      self,
      base_currency: Optional[str] = None,
      rate_provider: Optional[RateProvider] = None,
  ):
    self.base_currency = base_currency
    self.rate_provider = rate_provider or StaticRateProvider()

  def pricing_currency(self, presentment_currency: str) -> str:
    return self.base_currency or presentment_currency

  def converts(self, presentment_currency: str) -> bool:
    return bool(self.base_currency) and (
        self.base_currency != presentment_currency
    )

  def price(self, amount: Decimal, presentment_currency: str) -> str:
    """Returns the formatted unit price in the pricing currency."""
    currency = self.pricing_currency(presentment_currency)
    if self.converts(presentment_currency):
      amount = self.rate_provider.convert(
          amount, presentment_currency, currency
      )
    return format_price(amount, currency)
