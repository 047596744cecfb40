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

"""In-memory stand-in for the platform admin API.

Test support only: nothing in the service imports this module, and it is left
out of built wheels. `FakePlatform` serves the REST and GraphQL endpoints the
service uses through an `httpx.MockTransport`, records every request, and can
be told to fail or stall specific calls.
"""

import asyncio
import json
import re
from typing import Any, Dict, List, Optional

import httpx

_PATH_RE = re.compile(r"^/admin/api/[^/]+/(?P<rest>.+)$")

TEST_INVOICE_URL = "https://test-shop.myshopify.com/12345/invoices/abcdef"


class FakePlatform:
  """Records calls and simulates the platform's responses."""

  def __init__(self) -> None:
    self.requests: List[httpx.Request] = []
    self.variants: Dict[str, Dict[str, Any]] = {}
    self.products: Dict[str, Dict[str, Any]] = {}
    self.images: List[Dict[str, Any]] = []
    self.draft_order_inputs: List[Dict[str, Any]] = []
    self.deleted_variants: List[str] = []
    self.deleted_products: List[str] = []
    self._next_id = 1000

    # Failure knobs.
    self.network_error_titles: set[str] = set()
    self.rejected_titles: set[str] = set()
    self.stalled_titles: set[str] = set()
    self.create_stalled = asyncio.Event()
    self.image_status = 201
    self.delete_status: Optional[int] = None
    self.draft_order_user_errors: List[Dict[str, Any]] = []
    self.draft_order_status = 200
    self.draft_order_invoice_url: Optional[str] = TEST_INVOICE_URL
    self.draft_order_delay = 0.0
    self.draft_order_started = asyncio.Event()

  def transport(self) -> httpx.MockTransport:
    return httpx.MockTransport(self.handle)

  def http_client(self) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=self.transport())

  def requests_for(self, method: str, fragment: str) -> List[httpx.Request]:
    return [
        r
        for r in self.requests
        if r.method == method and fragment in r.url.path
    ]

  def _new_id(self) -> str:
    self._next_id += 1
    return str(self._next_id)

  def _check_title(self, request: httpx.Request, title: str) -> None:
    if title in self.network_error_titles:
      raise httpx.ConnectError("connection refused", request=request)

  async def handle(self, request: httpx.Request) -> httpx.Response:
    self.requests.append(request)
    match = _PATH_RE.match(request.url.path)
    if not match:
      return httpx.Response(404, json={"errors": "Not Found"})
    path = match.group("rest")
    body = json.loads(request.content) if request.content else {}

    if request.method == "POST" and path == "graphql.json":
      return await self._graphql(body)

    variant_create = re.fullmatch(r"products/(\w+)/variants\.json", path)
    if request.method == "POST" and variant_create:
      return await self._create_variant(
          request, variant_create.group(1), body
      )

    if request.method == "POST" and path == "products.json":
      return self._create_product(request, body)

    if request.method == "POST" and re.fullmatch(
        r"products/\w+/images\.json", path
    ):
      if self.image_status >= 400:
        return httpx.Response(
            self.image_status, json={"errors": {"src": ["is invalid"]}}
        )
      self.images.append(body["image"])
      return httpx.Response(201, json={"image": {"id": self._new_id()}})

    variant_delete = re.fullmatch(r"products/\w+/variants/(\w+)\.json", path)
    if request.method == "DELETE" and variant_delete:
      return self._delete(
          variant_delete.group(1), self.variants, self.deleted_variants
      )

    product_delete = re.fullmatch(r"products/(\w+)\.json", path)
    if request.method == "DELETE" and product_delete:
      return self._delete(
          product_delete.group(1), self.products, self.deleted_products
      )

    return httpx.Response(404, json={"errors": "Not Found"})

  async def _create_variant(
      self, request: httpx.Request, product_id: str, body: Dict[str, Any]
  ) -> httpx.Response:
    variant = dict(body["variant"])
    title = variant["option1"].rsplit("-", 2)[0]
    self._check_title(request, title)
    if title in self.stalled_titles:
      self.create_stalled.set()
      await asyncio.sleep(3600)
    if title in self.rejected_titles:
      return httpx.Response(
          422, json={"errors": {"option1": ["has already been taken"]}}
      )
    variant["id"] = int(self._new_id())
    variant["product_id"] = product_id
    self.variants[str(variant["id"])] = variant
    return httpx.Response(201, json={"variant": variant})

  def _create_product(
      self, request: httpx.Request, body: Dict[str, Any]
  ) -> httpx.Response:
    product = dict(body["product"])
    self._check_title(request, product["title"])
    if product["title"] in self.rejected_titles:
      return httpx.Response(422, json={"errors": {"title": ["is invalid"]}})
    product["id"] = int(self._new_id())
    product["variants"] = [
        dict(v, id=int(self._new_id())) for v in product["variants"]
    ]
    self.products[str(product["id"])] = product
    return httpx.Response(201, json={"product": product})

  def _delete(
      self, item_id: str, store: Dict[str, Any], deleted: List[str]
  ) -> httpx.Response:
    if self.delete_status is not None:
      return httpx.Response(self.delete_status, json={"errors": "boom"})
    if item_id not in store:
      return httpx.Response(404, json={"errors": "Not Found"})
    del store[item_id]
    deleted.append(item_id)
    return httpx.Response(200, json={})

  async def _graphql(self, body: Dict[str, Any]) -> httpx.Response:
    query = body.get("query", "")
    if "draftOrderCreate" in query:
      self.draft_order_inputs.append(body["variables"]["input"])
      self.draft_order_started.set()
      if self.draft_order_delay:
        await asyncio.sleep(self.draft_order_delay)
      if self.draft_order_status >= 400:
        return httpx.Response(
            self.draft_order_status, json={"errors": "Internal error"}
        )
      if self.draft_order_user_errors:
        return httpx.Response(200, json={"data": {"draftOrderCreate": {
            "draftOrder": None,
            "userErrors": self.draft_order_user_errors,
        }}})
      draft_order = None
      if self.draft_order_invoice_url is not None:
        draft_order = {
            "id": "gid://shopify/DraftOrder/1",
            "invoiceUrl": self.draft_order_invoice_url,
        }
      return httpx.Response(200, json={"data": {"draftOrderCreate": {
          "draftOrder": draft_order,
          "userErrors": [],
      }}})
    if "shop" in query:
      return httpx.Response(200, json={"data": {"shop": {"name": "Test Shop"}}})
    return httpx.Response(
        200, json={"errors": [{"message": "Unknown operation"}]}
    )
