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

"""Async client for the commerce platform's admin REST and GraphQL APIs.

Every failure, whether the request never got a response or the platform
answered with a non-2xx status, surfaces as `PlatformRequestError`. No call is
retried.
"""

import logging
from typing import Any, Dict, Optional

from draft_checkout.config import PlatformConfig
from draft_checkout.exceptions import PlatformRequestError
import httpx

logger = logging.getLogger(__name__)

ACCESS_TOKEN_HEADER = "X-Shopify-Access-Token"

SHOP_NAME_QUERY = "{ shop { name } }"


class AdminApiClient:
  """Service for calling the platform admin API."""

  def __init__(
      self,
      config: PlatformConfig,
      http_client: Optional[httpx.AsyncClient] = None,
  ):
    self.config = config
    self._owns_client = http_client is None
    self._client = http_client or httpx.AsyncClient(
        timeout=config.request_timeout_seconds
    )
    self._headers = {
        "Content-Type": "application/json",
        ACCESS_TOKEN_HEADER: config.admin_access_token,
    }

  async def __aenter__(self) -> "AdminApiClient":
    return self

  async def __aexit__(self, *exc_info) -> None:
    await self.aclose()

  async def aclose(self) -> None:
    if self._owns_client:
      await self._client.aclose()

  async def _request(
      self,
      method: str,
      path: str,
      payload: Optional[Dict[str, Any]] = None,
  ) -> Dict[str, Any]:
    """Sends a request and returns the decoded JSON body."""
    url = f"{self.config.admin_base_url}/{path.lstrip('/')}"
    try:
      response = await self._client.request(
          method, url, json=payload, headers=self._headers
      )
    except httpx.HTTPError as e:
      logger.error("Network error calling %s %s: %s", method, path, e)
      raise PlatformRequestError(f"{method} {path} failed: {e}") from e

    body: Any = {}
    if response.content:
      try:
        body = response.json()
      except ValueError:
        body = response.text

    if response.is_error:
      logger.error(
          "%s %s returned status %d: %s",
          method,
          path,
          response.status_code,
          body,
      )
      raise PlatformRequestError(
          f"{method} {path} returned status {response.status_code}",
          upstream_status=response.status_code,
          body=body,
      )
    if not isinstance(body, dict):
      raise PlatformRequestError(
          f"{method} {path} returned a non-JSON body",
          upstream_status=response.status_code,
          body=body,
      )
    return body

  async def create_variant(
      self, product_id: str, variant: Dict[str, Any]
  ) -> Dict[str, Any]:
    """Creates a variant under an existing product."""
    body = await self._request(
        "POST", f"products/{product_id}/variants.json", {"variant": variant}
    )
    created = body.get("variant") or {}
    if not created.get("id"):
      raise PlatformRequestError(
          "Variant creation returned no variant id", body=body
      )
    return created

  async def create_product(self, product: Dict[str, Any]) -> Dict[str, Any]:
    """Creates a product (with its variants)."""
    body = await self._request("POST", "products.json", {"product": product})
    created = body.get("product") or {}
    if not created.get("id") or not created.get("variants"):
      raise PlatformRequestError(
          "Product creation returned no product or variant id", body=body
      )
    return created

  async def create_product_image(
      self, product_id: str, image: Dict[str, Any]
  ) -> Dict[str, Any]:
    """Uploads an image to a product by source URL."""
    body = await self._request(
        "POST", f"products/{product_id}/images.json", {"image": image}
    )
    return body.get("image") or {}

  async def delete_variant(self, product_id: str, variant_id: str) -> None:
    await self._request(
        "DELETE", f"products/{product_id}/variants/{variant_id}.json"
    )

  async def delete_product(self, product_id: str) -> None:
    await self._request("DELETE", f"products/{product_id}.json")

  async def graphql(
      self, query: str, variables: Optional[Dict[str, Any]] = None
  ) -> Dict[str, Any]:
    """Runs a GraphQL operation and returns its `data` object.

    Top-level GraphQL `errors` (as opposed to a mutation's own `userErrors`)
    are treated like a transport failure.
    """
    payload: Dict[str, Any] = {"query": query}
    if variables is not None:
      payload["variables"] = variables
    body = await self._request("POST", "graphql.json", payload)
    if body.get("errors"):
      raise PlatformRequestError("GraphQL request failed", body=body["errors"])
    return body.get("data") or {}

  async def get_shop_name(self) -> str:
    data = await self.graphql(SHOP_NAME_QUERY)
    return (data.get("shop") or {}).get("name", "")
