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

"""Custom exceptions for the draft checkout service."""

from typing import Any, Optional


class CheckoutError(Exception):
  """Base class for all checkout exceptions."""

  def __init__(
      self,
      message: str,
      code: str = "INTERNAL_ERROR",
      status_code: int = 500,
      details: Optional[Any] = None,
  ):
    self.message = message
    self.code = code
    self.status_code = status_code
    self.details = details
    super().__init__(self.message)


class ConfigurationError(CheckoutError):
  """Raised when required platform settings are missing or invalid."""

  def __init__(self, message: str):
    super().__init__(message, code="CONFIGURATION_ERROR", status_code=500)


class ValidationError(CheckoutError):
  """Raised when the cart is empty or malformed."""

  def __init__(self, message: str, details: Optional[Any] = None):
    super().__init__(
        message, code="INVALID_REQUEST", status_code=400, details=details
    )


class PlatformRequestError(CheckoutError):
  """Raised when a call to the commerce platform fails.

  Covers both transport failures (no response) and non-2xx responses. The
  upstream status, if any, is kept on `upstream_status`.
  """

  def __init__(
      self,
      message: str,
      upstream_status: Optional[int] = None,
      body: Optional[Any] = None,
  ):
    super().__init__(
        message, code="PLATFORM_ERROR", status_code=502, details=body
    )
    self.upstream_status = upstream_status
    self.body = body


class ProvisioningError(CheckoutError):
  """Raised when creating the sell-able unit for one cart line fails."""

  def __init__(self, index: int, cause: BaseException):
    super().__init__(
        f"Failed to provision cart line {index}: {cause}",
        code="PROVISIONING_FAILED",
        status_code=500,
        details={"index": index},
    )
    self.index = index
    self.cause = cause


class AggregationError(CheckoutError):
  """Raised when the draft order could not be created.

  Exactly one of `user_errors` (validation errors reported by the platform)
  or `transport_error` (network, HTTP or malformed response) is set.
  """

  def __init__(
      self,
      message: str,
      user_errors: Optional[list[dict[str, Any]]] = None,
      transport_error: Optional[str] = None,
  ):
    details: dict[str, Any] = {}
    if user_errors:
      details["userErrors"] = user_errors
    if transport_error:
      details["transportError"] = transport_error
    super().__init__(
        message,
        code="AGGREGATION_FAILED",
        status_code=500,
        details=details or None,
    )
    self.user_errors = user_errors or []
    self.transport_error = transport_error


class CompensationError(CheckoutError):
  """Raised internally when deleting a provisioned unit fails.

  Never surfaced to the HTTP caller; collected into the compensation report.
  """

  def __init__(self, local_id: str, cause: BaseException):
    super().__init__(
        f"Failed to delete provisioned unit {local_id}: {cause}",
        code="COMPENSATION_FAILED",
        status_code=500,
    )
    self.local_id = local_id
    self.cause = cause
