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

"""Compensation stage: best-effort deletion of provisioned units."""

import asyncio
import logging
from typing import Iterable, List

from draft_checkout.exceptions import CompensationError
from draft_checkout.exceptions import PlatformRequestError
from draft_checkout.models import CompensationFailure
from draft_checkout.models import CompensationReport
from draft_checkout.models import ProvisionedUnit
from draft_checkout.services.provisioning import UnitStrategy

logger = logging.getLogger(__name__)


class CompensationStage:
  """Deletes units left behind by a failed checkout attempt."""

  def __init__(self, strategy: UnitStrategy, max_concurrency: int):
    self.strategy = strategy
    self.max_concurrency = max_concurrency

  async def compensate(
      self, units: Iterable[ProvisionedUnit]
  ) -> CompensationReport:
    """Deletes each unit once, concurrently.

    A unit the platform no longer knows (404) counts as deleted. Other
    failures are logged and reported but never raised.

    Args:
      units: The units that were actually created. Duplicates are ignored.

    Returns:
      Which units were deleted and which could not be.
    """
    unique: List[ProvisionedUnit] = []
    seen = set()
    for unit in units:
      if unit.local_id not in seen:
        seen.add(unit.local_id)
        unique.append(unit)

    report = CompensationReport()
    if not unique:
      return report

    logger.info("Compensating %d provisioned unit(s)", len(unique))
    semaphore = asyncio.Semaphore(self.max_concurrency)

    async def delete(unit: ProvisionedUnit) -> None:
      async with semaphore:
        try:
          await self.strategy.delete_unit(unit)
        except PlatformRequestError as e:
          if e.upstream_status == 404:
            logger.info(
                "Unit %s (variant %s) already gone",
                unit.local_id,
                unit.remote_variant_id,
            )
            return
          raise CompensationError(unit.local_id, e) from e
        except Exception as e:  # pylint: disable=broad-exception-caught
          raise CompensationError(unit.local_id, e) from e

    results = await asyncio.gather(
        *(delete(unit) for unit in unique), return_exceptions=True
    )
    for unit, result in zip(unique, results):
      if result is None:
        report.deleted.append(unit.local_id)
        continue
      logger.error(
          "Compensation failed for unit %s (variant %s): %s",
          unit.local_id,
          unit.remote_variant_id,
          result,
      )
      report.failed.append(
          CompensationFailure(local_id=unit.local_id, message=str(result))
      )

    if report.failed:
      logger.warning(
          "Compensation incomplete: %d deleted, %d left on the platform",
          len(report.deleted),
          len(report.failed),
      )
    return report
