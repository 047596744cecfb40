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

"""FastAPI dependencies for the draft checkout service.

This module contains dependency injection logic for FastAPI endpoints,
including:
- Platform configuration loading (fails with ConfigurationError).
- The outbound HTTP client and the admin API client built on it.
- Ledger session management (None when no ledger is configured).
- CheckoutAssembler instantiation.
"""

from typing import AsyncGenerator, Optional

from draft_checkout import config
from draft_checkout import db
from draft_checkout.config import PlatformConfig
from draft_checkout.platform_client import AdminApiClient
from draft_checkout.services.checkout_assembler import CheckoutAssembler
from fastapi import Depends
import httpx
from sqlalchemy.ext.asyncio import AsyncSession


def get_platform_config() -> PlatformConfig:
  """Dependency provider for the platform config."""
  return config.get_platform_config()


async def get_http_client(
    platform_config: PlatformConfig = Depends(get_platform_config),
) -> AsyncGenerator[httpx.AsyncClient, None]:
  """Dependency provider for the outbound HTTP client."""
  async with httpx.AsyncClient(
      timeout=platform_config.request_timeout_seconds
  ) as client:
    yield client


def get_platform_client(
    platform_config: PlatformConfig = Depends(get_platform_config),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> AdminApiClient:
  """Dependency provider for the admin API client."""
  return AdminApiClient(platform_config, http_client)


async def get_ledger_db() -> AsyncGenerator[Optional[AsyncSession], None]:
  """Dependency provider for a ledger DB session, if the ledger is enabled."""
  if not db.manager.enabled:
    yield None
    return
  async with db.manager.session_factory() as session:
    yield session


def get_checkout_assembler(
    platform_config: PlatformConfig = Depends(get_platform_config),
    platform_client: AdminApiClient = Depends(get_platform_client),
    ledger_session: Optional[AsyncSession] = Depends(get_ledger_db),
) -> CheckoutAssembler:
  """Dependency provider for CheckoutAssembler."""
  return CheckoutAssembler(platform_client, platform_config, ledger_session)
