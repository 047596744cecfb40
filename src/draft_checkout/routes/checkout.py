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

"""Checkout routes for the draft checkout service."""

from typing import Any, Dict, Optional
import uuid

from draft_checkout import db
from draft_checkout import dependencies
from draft_checkout.exceptions import ValidationError
from draft_checkout.models import CheckoutRequest
from draft_checkout.services.checkout_assembler import CheckoutAssembler
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Request
import pydantic
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/api")


def parse_checkout_request(payload: Dict[str, Any]) -> CheckoutRequest:
  """Validates the raw body, mapping model errors to a 400 ValidationError."""
  try:
    return CheckoutRequest.model_validate(payload)
  except pydantic.ValidationError as e:
    raise ValidationError(
        "Malformed checkout request.",
        details=e.errors(include_url=False, include_context=False),
    ) from e


@router.post(
    "/create-checkout",
    response_model=dict[str, Any],
    operation_id="create_checkout",
    summary="Create Checkout",
)
async def create_checkout(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    assembler: CheckoutAssembler = Depends(
        dependencies.get_checkout_assembler
    ),
    ledger_session: Optional[AsyncSession] = Depends(
        dependencies.get_ledger_db
    ),
) -> dict[str, Any]:
  """Creates a draft-order checkout for the posted cart."""
  attempt_id = str(uuid.uuid4())
  if ledger_session is not None:
    await db.log_request(
        ledger_session,
        method="POST",
        url=request.url.path,
        attempt_id=attempt_id,
        payload=payload,
    )
    await ledger_session.commit()

  checkout_req = parse_checkout_request(payload)
  result = await assembler.create_checkout(checkout_req, attempt_id)
  return result.model_dump(mode="json", by_alias=True)
