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

"""Shared configuration and startup logic for the draft checkout service.

Platform credentials come from the process environment (optionally seeded from
a `.env` file) and are wrapped in an immutable `PlatformConfig` that is handed
to the workflow at construction time. Process-level settings such as the port
and the ledger location are absl flags.
"""

import contextlib
import os
from typing import Any, Mapping, Optional

from absl import flags
from draft_checkout import db
from draft_checkout.enums import ProvisioningStrategy
from draft_checkout.exceptions import ConfigurationError
from fastapi import FastAPI
from pydantic import BaseModel
from pydantic import ConfigDict

FLAGS = flags.FLAGS

DEFAULT_API_VERSION = "2024-10"
DEFAULT_CURRENCY = "EUR"
DEFAULT_MAX_CONCURRENCY = 5
DEFAULT_TIMEOUT_SECONDS = 10.0

# Define flags only if they haven't been defined yet (to avoid duplicates
# during tests or re-imports)
try:
  flags.DEFINE_string("host", "0.0.0.0", "Interface to bind the server to")
  flags.DEFINE_integer("port", None, "Port to run the server on")
  flags.DEFINE_string(
      "ledger_db_path",
      None,
      "Optional path to the checkout ledger DB. When unset no ledger is kept.",
  )
  flags.DEFINE_string("env_file", None, "Optional .env file to load")
except flags.DuplicateFlagError:
  pass


def normalize_store_domain(value: str) -> str:
  """Strips protocol and stray slashes from a configured store domain."""
  domain = (value or "").strip()
  for prefix in ("https://", "http://"):
    if domain.lower().startswith(prefix):
      domain = domain[len(prefix):]
  return domain.strip().strip("/")


class PlatformConfig(BaseModel):
  """Settings needed to talk to the commerce platform's admin API."""

  model_config = ConfigDict(frozen=True)

  store_domain: str
  admin_access_token: str
  template_product_id: Optional[str] = None
  api_version: str = DEFAULT_API_VERSION
  base_currency: Optional[str] = None
  strategy: ProvisioningStrategy = ProvisioningStrategy.VARIANT
  max_concurrency: int = DEFAULT_MAX_CONCURRENCY
  request_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

  @property
  def admin_base_url(self) -> str:
    return f"https://{self.store_domain}/admin/api/{self.api_version}"

  @property
  def default_currency(self) -> str:
    """Currency used when a request does not name one."""
    return self.base_currency or DEFAULT_CURRENCY

  @classmethod
  def from_env(
      cls, environ: Optional[Mapping[str, str]] = None
  ) -> "PlatformConfig":
    """Builds the config from environment variables.

    Args:
      environ: Mapping to read from. Defaults to `os.environ`.

    Returns:
      The validated config.

    Raises:
      ConfigurationError: If a required setting is missing or malformed.
    """
    env = os.environ if environ is None else environ

    store_domain = normalize_store_domain(env.get("MASTER_STORE_DOMAIN", ""))
    access_token = env.get("ADMIN_API_ACCESS_TOKEN", "").strip()
    missing = []
    if not store_domain:
      missing.append("MASTER_STORE_DOMAIN")
    if not access_token:
      missing.append("ADMIN_API_ACCESS_TOKEN")

    raw_strategy = env.get("CHECKOUT_STRATEGY", "").strip().lower()
    try:
      strategy = (
          ProvisioningStrategy(raw_strategy)
          if raw_strategy
          else ProvisioningStrategy.VARIANT
      )
    except ValueError as e:
      raise ConfigurationError(
          f"Unknown CHECKOUT_STRATEGY '{raw_strategy}'"
      ) from e

    template_product_id = env.get("TEMPLATE_PRODUCT_ID", "").strip() or None
    if strategy == ProvisioningStrategy.VARIANT and not template_product_id:
      missing.append("TEMPLATE_PRODUCT_ID")

    if missing:
      raise ConfigurationError(
          "Server configuration error: missing " + ", ".join(missing)
      )

    values: dict[str, Any] = {
        "store_domain": store_domain,
        "admin_access_token": access_token,
        "template_product_id": template_product_id,
        "strategy": strategy,
        "api_version": (
            env.get("SHOPIFY_API_VERSION", "").strip() or DEFAULT_API_VERSION
        ),
    }

    base_currency = env.get("STORE_BASE_CURRENCY", "").strip().upper()
    if base_currency:
      values["base_currency"] = base_currency

    try:
      if env.get("CHECKOUT_MAX_CONCURRENCY"):
        values["max_concurrency"] = int(env["CHECKOUT_MAX_CONCURRENCY"])
      if env.get("PLATFORM_TIMEOUT_SECONDS"):
        values["request_timeout_seconds"] = float(
            env["PLATFORM_TIMEOUT_SECONDS"]
        )
    except ValueError as e:
      raise ConfigurationError(f"Invalid numeric setting: {e}") from e
    if values.get("max_concurrency", DEFAULT_MAX_CONCURRENCY) < 1:
      raise ConfigurationError("CHECKOUT_MAX_CONCURRENCY must be at least 1")

    return cls(**values)


_PLATFORM_CONFIG_CACHE: Optional[PlatformConfig] = None


def get_platform_config() -> PlatformConfig:
  """Reads and caches the platform config from the environment.

  Failures are not cached so that a fixed environment is picked up on the
  next request.
  """
  global _PLATFORM_CONFIG_CACHE
  if _PLATFORM_CONFIG_CACHE is None:
    _PLATFORM_CONFIG_CACHE = PlatformConfig.from_env()
  return _PLATFORM_CONFIG_CACHE


def reset_platform_config() -> None:
  global _PLATFORM_CONFIG_CACHE
  _PLATFORM_CONFIG_CACHE = None


def cors_allow_origins() -> list[str]:
  """CORS origins from CORS_ALLOW_ORIGINS, comma separated."""
  origins = os.environ.get("CORS_ALLOW_ORIGINS", "").strip()
  if not origins:
    return ["*"]
  return [o.strip() for o in origins.split(",") if o.strip()]


def ledger_db_path() -> Optional[str]:
  """Location of the ledger DB from flags, falling back to the environment."""
  if FLAGS.is_parsed() and FLAGS.ledger_db_path:
    return FLAGS.ledger_db_path
  return os.environ.get("CHECKOUT_LEDGER_DB_PATH") or None


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
  """Shared lifespan manager for initializing the ledger database."""
  del app  # Unused.
  path = ledger_db_path()
  if path:
    await db.manager.init_db(path)
  yield
  await db.manager.close()
