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

"""Checkout ledger: an optional local audit trail of checkout attempts.

The service itself is stateless; the ledger only records what happened so that
units left on the platform can be found later. It utilizes SQLAlchemy with
SQLite (via aiosqlite).

Key features include:
- `DatabaseManager`: Handles asynchronous engine initialization and session
  factory setup. When it is never initialized the service runs without a
  ledger.
- WAL Mode: Enabled so the dump tool can read while the server writes.
- Declarative Models: Tables for checkout attempts, the units each attempt
  provisioned (and whether they were retained or deleted), and request logs.
- Data Access Helpers: Asynchronous functions for writing and querying them.
"""

import datetime
import logging
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Optional

from draft_checkout.models import ProvisionedUnit
from sqlalchemy import Column
from sqlalchemy import ForeignKey
from sqlalchemy import Integer
from sqlalchemy import JSON
from sqlalchemy import select
from sqlalchemy import String
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

LedgerBase = declarative_base()


class DatabaseManager:
  """Manages the ledger engine and sessions without using global variables."""

  def __init__(self) -> None:
    self.engine: Optional[AsyncEngine] = None
    self.session_factory: Optional[sessionmaker] = None

  @property
  def enabled(self) -> bool:
    return self.session_factory is not None

  async def init_db(self, path: str) -> None:
    """Initializes the database engine and creates tables."""
    url = f"sqlite+aiosqlite:///{path}"
    self.engine = create_async_engine(url, echo=False)

    async with self.engine.connect() as conn:
      await conn.execute(text("PRAGMA journal_mode=WAL"))

    self.session_factory = sessionmaker(
        self.engine, expire_on_commit=False, class_=AsyncSession
    )

    async with self.engine.begin() as conn:
      await conn.run_sync(LedgerBase.metadata.create_all)
    logger.info("Checkout ledger initialized at %s", path)

  async def close(self) -> None:
    """Closes the database engine."""
    if self.engine:
      await self.engine.dispose()
    self.engine = None
    self.session_factory = None


# Global manager instance (to be initialized via lifespan)
manager = DatabaseManager()


def _now() -> str:
  return datetime.datetime.now(datetime.timezone.utc).isoformat()


class CheckoutAttempt(LedgerBase):
  __tablename__ = "checkout_attempts"

  id = Column(String, primary_key=True)
  created_at = Column(String)
  updated_at = Column(String)
  status = Column(String)
  strategy = Column(String)
  currency = Column(String)
  country = Column(String, nullable=True)
  checkout_url = Column(String, nullable=True)
  draft_order_id = Column(String, nullable=True)
  error_code = Column(String, nullable=True)
  error_message = Column(String, nullable=True)
  # SQLAlchemy JSON type handles serialization automatically
  request = Column(JSON, nullable=True)


class ProvisionedUnitRecord(LedgerBase):
  __tablename__ = "provisioned_units"

  local_id = Column(String, primary_key=True)
  attempt_id = Column(String, ForeignKey("checkout_attempts.id"), index=True)
  line_index = Column(Integer)
  remote_product_id = Column(String, nullable=True)
  remote_variant_id = Column(String)
  quantity = Column(Integer)
  option_value = Column(String)
  state = Column(String, index=True)  # See enums.UnitState
  error_message = Column(String, nullable=True)


class RequestLog(LedgerBase):
  __tablename__ = "request_logs"

  id = Column(Integer, primary_key=True, autoincrement=True)
  timestamp = Column(String)
  method = Column(String)
  url = Column(String)
  attempt_id = Column(String, nullable=True)
  payload = Column(JSON, nullable=True)


async def save_checkout_attempt(
    session: AsyncSession,
    attempt_id: str,
    status: str,
    **fields: Any,
) -> None:
  """Saves or updates a checkout attempt.

  Args:
    session: The ledger session.
    attempt_id: The attempt to create or update.
    status: The attempt status (see enums.AttemptStatus).
    **fields: Any other `CheckoutAttempt` columns to set.
  """
  existing = await session.get(CheckoutAttempt, attempt_id)
  now = _now()
  if existing:
    existing.status = status
    existing.updated_at = now
    for key, value in fields.items():
      setattr(existing, key, value)
  else:
    session.add(
        CheckoutAttempt(
            id=attempt_id,
            status=status,
            created_at=now,
            updated_at=now,
            **fields,
        )
    )


async def get_checkout_attempt(
    session: AsyncSession, attempt_id: str
) -> Optional[CheckoutAttempt]:
  """Retrieves a checkout attempt by ID."""
  return await session.get(CheckoutAttempt, attempt_id)


async def save_provisioned_units(
    session: AsyncSession,
    attempt_id: str,
    units: Iterable[ProvisionedUnit],
    states: Mapping[str, str],
    errors: Optional[Mapping[str, str]] = None,
) -> None:
  """Records the units an attempt provisioned and what became of them.

  Args:
    session: The ledger session.
    attempt_id: The owning attempt.
    units: The units that were created on the platform.
    states: Final state per unit, keyed by local ID.
    errors: Optional deletion error message per unit, keyed by local ID.
  """
  errors = errors or {}
  for unit in units:
    record = await session.get(ProvisionedUnitRecord, unit.local_id)
    if record is None:
      record = ProvisionedUnitRecord(
          local_id=unit.local_id,
          attempt_id=attempt_id,
          line_index=unit.line_index,
          remote_product_id=unit.remote_product_id,
          remote_variant_id=unit.remote_variant_id,
          quantity=unit.quantity,
          option_value=unit.option_value,
      )
      session.add(record)
    record.state = states[unit.local_id]
    record.error_message = errors.get(unit.local_id)


async def get_provisioned_units(
    session: AsyncSession,
    attempt_id: Optional[str] = None,
    state: Optional[str] = None,
) -> List[ProvisionedUnitRecord]:
  """Lists provisioned units, optionally filtered by attempt and state."""
  stmt = select(ProvisionedUnitRecord)
  if attempt_id is not None:
    stmt = stmt.where(ProvisionedUnitRecord.attempt_id == attempt_id)
  if state is not None:
    stmt = stmt.where(ProvisionedUnitRecord.state == state)
  stmt = stmt.order_by(
      ProvisionedUnitRecord.attempt_id, ProvisionedUnitRecord.line_index
  )
  result = await session.execute(stmt)
  return list(result.scalars().all())


async def log_request(
    session: AsyncSession,
    method: str,
    url: str,
    attempt_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
  """Logs an HTTP request to the database."""
  log_entry = RequestLog(
      timestamp=_now(),
      method=method,
      url=url,
      attempt_id=attempt_id,
      payload=payload,
  )
  session.add(log_entry)
