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

"""Utility script to dump checkout attempts from the ledger.

Prints each checkout attempt with its status, checkout URL or error, and the
units it provisioned. --state=retained lists only units still on the platform
behind successful (possibly abandoned) checkouts; --state=delete_failed lists
units that compensation could not remove.

Usage:
  draft-checkout-dump-ledger --ledger_db_path=... [--state=retained]
"""

import asyncio
import sys

from absl import app as absl_app
from absl import flags
from draft_checkout import db
from draft_checkout.enums import UnitState
from sqlalchemy import select

FLAGS = flags.FLAGS
try:
  flags.DEFINE_string("ledger_db_path", None, "Path to the checkout ledger DB")
except flags.DuplicateFlagError:
  pass
flags.DEFINE_enum(
    "state",
    None,
    [s.value for s in UnitState],
    "Only list provisioned units in this state",
)


async def dump_units(state: str) -> None:
  """Prints provisioned units in the given state."""
  async with db.manager.session_factory() as session:
    units = await db.get_provisioned_units(session, state=state)
    print(f"=== UNITS ({state}) ===")
    if not units:
      print("No units found.")
      return
    for unit in units:
      product = unit.remote_product_id or "-"
      print(
          f"{unit.attempt_id} line {unit.line_index}: variant"
          f" {unit.remote_variant_id} product {product}"
          f" x{unit.quantity} '{unit.option_value}'"
      )
      if unit.error_message:
        print(f"  Error: {unit.error_message}")


async def dump_attempts() -> None:
  """Prints every checkout attempt and its units."""
  async with db.manager.session_factory() as session:
    print("=== CHECKOUT ATTEMPTS ===")
    result = await session.execute(
        select(db.CheckoutAttempt).order_by(db.CheckoutAttempt.created_at)
    )
    attempts = result.scalars().all()

    if not attempts:
      print("No checkout attempts found.")
      return

    for attempt in attempts:
      print(
          f"[{attempt.created_at}] {attempt.id} {attempt.status}"
          f" ({attempt.strategy}, {attempt.currency})"
      )
      if attempt.checkout_url:
        print(f"  Checkout URL: {attempt.checkout_url}")
      if attempt.error_code:
        print(f"  Error: {attempt.error_code}: {attempt.error_message}")
      for unit in await db.get_provisioned_units(session, attempt.id):
        print(
            f"  line {unit.line_index}: variant {unit.remote_variant_id}"
            f" -> {unit.state}"
        )
      print("-" * 40)


async def dump_ledger() -> None:
  if not FLAGS.ledger_db_path:
    print("Error: --ledger_db_path is required.")
    sys.exit(1)

  await db.manager.init_db(FLAGS.ledger_db_path)
  try:
    if FLAGS.state:
      await dump_units(FLAGS.state)
    else:
      await dump_attempts()
  finally:
    await db.manager.close()


def main(argv):
  """Main entry point for the ledger dump script."""
  del argv
  asyncio.run(dump_ledger())


def run() -> None:
  absl_app.run(main)


if __name__ == "__main__":
  run()
