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

"""Draft Checkout Server (Python/FastAPI).

Usage:
  draft-checkout-server --port=8182 [--ledger_db_path=ledger.db]
"""

import logging
import sys
from typing import Sequence

from absl import app as absl_app
from dotenv import load_dotenv
import draft_checkout
from draft_checkout import config
from draft_checkout.exceptions import CheckoutError
from draft_checkout.models import ErrorResponse
from draft_checkout.routes.checkout import router as checkout_router
from draft_checkout.routes.diagnostics import router as diagnostics_router
from fastapi import FastAPI
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

load_dotenv()

# --- App Setup ---

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Draft Checkout Service",
    version=draft_checkout.__version__,
    description="Creates draft-order checkouts for dynamically built carts",
    lifespan=config.lifespan,
)


def configure_cors(application: FastAPI) -> None:
  """(Re)installs the CORS middleware with origins from the environment.

  Called again by `main` once `--env_file` has been loaded.
  """
  application.middleware_stack = None
  application.user_middleware = [
      m for m in application.user_middleware if m.cls is not CORSMiddleware
  ]
  application.add_middleware(
      CORSMiddleware,
      allow_origins=config.cors_allow_origins(),
      allow_methods=["GET", "POST", "OPTIONS"],
      allow_headers=["Content-Type"],
  )


configure_cors(app)


def _error_response(
    status_code: int, message: str, code: str, details=None
) -> JSONResponse:
  body = ErrorResponse(error=message, code=code, details=details)
  return JSONResponse(
      status_code=status_code,
      content=jsonable_encoder(body.model_dump(exclude_none=True)),
  )


@app.exception_handler(CheckoutError)
async def checkout_exception_handler(request: Request, exc: CheckoutError):
  """Handles checkout exceptions and converts them to JSON responses."""
  del request  # Unused.
  return _error_response(exc.status_code, exc.message, exc.code, exc.details)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
):
  """Reports unparseable bodies as 400 like other invalid carts."""
  del request  # Unused.
  return _error_response(
      400, "Malformed checkout request.", "INVALID_REQUEST", exc.errors()
  )


@app.exception_handler(Exception)
async def unexpected_exception_handler(request: Request, exc: Exception):
  logger.exception("Unhandled error serving %s", request.url.path)
  del exc  # Logged above.
  return _error_response(500, "Internal Server Error", "INTERNAL_ERROR")


app.include_router(checkout_router)
app.include_router(diagnostics_router)


def main(argv: Sequence[str]) -> None:
  """Main entry point for the Draft Checkout Server."""
  del argv  # Unused.

  if config.FLAGS.port is None:
    logger.error("--port must be provided.")
    print("\nUsage:")
    print(config.FLAGS.main_module_help())
    sys.exit(1)

  if config.FLAGS.env_file:
    load_dotenv(config.FLAGS.env_file, override=True)
    config.reset_platform_config()
    configure_cors(app)

  uvicorn.run(app, host=config.FLAGS.host, port=config.FLAGS.port)


def run() -> None:
  absl_app.run(main)


if __name__ == "__main__":
  run()
