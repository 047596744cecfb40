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

"""Health and connectivity routes for the draft checkout service."""

from typing import Any

from draft_checkout import dependencies
from draft_checkout.platform_client import AdminApiClient
from fastapi import APIRouter
from fastapi import Depends

router = APIRouter()


@router.get("/healthz", operation_id="healthz")
async def healthz() -> dict[str, Any]:
  return {"status": "ok"}


@router.get(
    "/api/test-connection",
    response_model=dict[str, Any],
    operation_id="test_connection",
    summary="Test Platform Connection",
)
async def test_connection(
    platform_client: AdminApiClient = Depends(
        dependencies.get_platform_client
    ),
) -> dict[str, Any]:
  """Checks the configured credentials by reading the shop name."""
  shop_name = await platform_client.get_shop_name()
  return {"status": "ok", "shop": {"name": shop_name}}
