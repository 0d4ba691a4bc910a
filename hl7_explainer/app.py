"""FastAPI application for the HL7 explainer gateway.

Provides a single /explain endpoint that admits the request, forwards the
HL7 text to the LLM provider and returns a plain-English explanation, plus
an admin-only /stats endpoint over the in-memory usage ledger.

Admission order for /explain:
1. Per-source rate limit (dependency, before the body is handled)
2. Global daily ceiling
3. Payload presence and size
4. Admission count, geo tagging, provider call, token/failure accounting
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hl7_explainer.auth import AuthorizationError, verify_admin_key
from hl7_explainer.config import ExplainerConfig, load_config
from hl7_explainer.geo import GeoClassifier
from hl7_explainer.ledger import DailyLimitReached, QuotaLedger
from hl7_explainer.limiter import (
    RateLimitExceeded,
    RateLimiter,
    RateLimitStatus,
    source_key_for,
)
from hl7_explainer.models import ErrorResponse, ExplainRequest, ExplainResponse
from hl7_explainer.prompt import load_system_prompt
from hl7_explainer.provider import ProviderError, call_provider
from hl7_explainer.stats import build_report
from hl7_explainer.telemetry import log_request, logger, setup_logging
from hl7_explainer.validation import PayloadValidationError, validate_payload

RATE_LIMITED_MESSAGE = "Too many requests from this IP, please try again later."
DAILY_LIMIT_MESSAGE = "Daily request limit reached. Please try again tomorrow."
INVALID_BODY_MESSAGE = "Request body must be a JSON object with a string 'hl7' field."
GENERIC_ERROR_MESSAGE = "An error occurred while processing your request."
FORBIDDEN_MESSAGE = "Forbidden"

load_dotenv()

_config: Optional[ExplainerConfig] = None
_limiter: Optional[RateLimiter] = None
_ledger: Optional[QuotaLedger] = None
_geo: Optional[GeoClassifier] = None
_system_prompt: Optional[str] = None


def get_config() -> ExplainerConfig:
    """Return the loaded service configuration (lazy-init)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_limiter() -> RateLimiter:
    """Return the rate limiter (lazy-init from config)."""
    global _limiter
    if _limiter is None:
        cfg = get_config()
        _limiter = RateLimiter(
            window_ms=cfg.rate_limit.window_ms,
            max_requests=cfg.rate_limit.max_requests,
        )
    return _limiter


def get_ledger() -> QuotaLedger:
    """Return the process-wide usage ledger."""
    global _ledger
    if _ledger is None:
        _ledger = QuotaLedger()
    return _ledger


def get_geo() -> GeoClassifier:
    """Return the geo classifier (lazy-init from config)."""
    global _geo
    if _geo is None:
        _geo = GeoClassifier(get_config().geoip_database)
    return _geo


def get_system_prompt() -> str:
    """Return the system instruction (lazy-init from config)."""
    global _system_prompt
    if _system_prompt is None:
        _system_prompt = load_system_prompt(get_config().system_prompt_file)
    return _system_prompt


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Initialize config, logging, limiter, ledger, geo and prompt on startup."""
    cfg = get_config()
    setup_logging(cfg.log_file, cfg.log_level)
    get_limiter()
    get_ledger()
    get_system_prompt()
    if not get_geo().enabled:
        logger.warning("GEOIP_DATABASE not set; all requests counted as Unknown")
    if not cfg.provider.api_key:
        logger.warning(
            "%s not set; /explain returns stub explanations",
            cfg.provider.api_key_env,
        )
    if not cfg.admin_key:
        logger.warning("ADMIN_KEY not set; /stats rejects every request")
    yield
    get_geo().close()


app = FastAPI(title="HL7 Explainer Gateway", version="1.0.0", lifespan=lifespan)

# The CORS origin is fixed when this module is imported; FRONTEND_ORIGIN must
# be in the environment (or .env) before the app is loaded.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_config().frontend_origin],
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "x-admin"],
)


def _error_response(
    status: int,
    message: str,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body = ErrorResponse(error=message)
    return JSONResponse(status_code=status, content=body.model_dump(), headers=headers)


def _source_key(request: Request) -> str:
    return source_key_for(
        request.headers.get("x-forwarded-for"),
        request.client.host if request.client else None,
        trust_forwarded_for=get_config().trust_forwarded_for,
    )


async def admit_source(request: Request) -> RateLimitStatus:
    """Dependency: count the request against its source's rate-limit window."""
    return get_limiter().check(_source_key(request))


@app.post("/explain", response_model=None)
async def explain(
    body: ExplainRequest,
    request: Request,
    admission: RateLimitStatus = Depends(admit_source),
) -> JSONResponse:
    """Explain an HL7 message in plain English.

    Request flow:
    1. Reject if the daily ceiling is already reached (no quota consumed)
    2. Validate presence and size of the payload
    3. Count the admission against the ceiling
    4. Tag the source country
    5. Call the provider; record tokens on success, a failure otherwise
    """
    config = get_config()
    ledger = get_ledger()
    source = _source_key(request)
    request_id = "exp-{}".format(uuid.uuid4().hex[:12])
    rate_headers = admission.headers()

    # --- Daily ceiling ---
    if ledger.is_exhausted(config.daily_limit):
        log_request(request_id=request_id, source=source, outcome="daily_limit")
        return _error_response(429, DAILY_LIMIT_MESSAGE, rate_headers)

    # --- Payload validation ---
    try:
        text = validate_payload(body.hl7, config.max_payload_chars)
    except PayloadValidationError as exc:
        log_request(
            request_id=request_id,
            source=source,
            outcome="validation_error",
            error=exc.detail,
        )
        return _error_response(400, exc.detail, rate_headers)

    # --- Admission ---
    try:
        ledger.admit(config.daily_limit)
    except DailyLimitReached:
        log_request(request_id=request_id, source=source, outcome="daily_limit")
        return _error_response(429, DAILY_LIMIT_MESSAGE, rate_headers)

    # --- Geo accounting ---
    country = get_geo().country_for(source)
    ledger.record_country(country)

    # --- Provider call ---
    try:
        result = await call_provider(config.provider, get_system_prompt(), text)
    except ProviderError as exc:
        ledger.record_failure()
        log_request(
            request_id=request_id,
            source=source,
            country=country,
            outcome="provider_error",
            error=str(exc),
        )
        return _error_response(500, GENERIC_ERROR_MESSAGE, rate_headers)
    except Exception as exc:
        ledger.record_failure()
        logger.exception("Unexpected error while calling provider")
        log_request(
            request_id=request_id,
            source=source,
            country=country,
            outcome="provider_error",
            error=repr(exc),
        )
        return _error_response(500, GENERIC_ERROR_MESSAGE, rate_headers)

    ledger.record_tokens(result.total_tokens)

    log_request(
        request_id=request_id,
        source=source,
        country=country,
        outcome="success",
        tokens=result.total_tokens,
    )

    response = ExplainResponse(explanation=result.text)
    return JSONResponse(
        status_code=200, content=response.model_dump(), headers=rate_headers
    )


@app.get("/stats", response_model=None)
async def stats(x_admin: Optional[str] = Header(default=None)) -> JSONResponse:
    """Return the usage ledger and estimated spend (admin only)."""
    config = get_config()
    try:
        verify_admin_key(x_admin, config.admin_key)
    except AuthorizationError as exc:
        logger.warning("Rejected /stats request: %s", exc.detail)
        return _error_response(401, FORBIDDEN_MESSAGE)

    report = build_report(get_ledger().snapshot(), config.price_per_million_tokens)
    return JSONResponse(status_code=200, content=report.model_dump(by_alias=True))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Turn a rate-limit rejection into a 429 with Retry-After headers."""
    log_request(
        request_id="exp-{}".format(uuid.uuid4().hex[:12]),
        source=exc.source_key,
        outcome="rate_limited",
        error=exc.detail,
    )
    return _error_response(429, RATE_LIMITED_MESSAGE, exc.headers())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report unparseable /explain bodies as a 400 in the error envelope."""
    log_request(
        request_id="exp-{}".format(uuid.uuid4().hex[:12]),
        source=_source_key(request),
        outcome="validation_error",
        error=INVALID_BODY_MESSAGE,
    )
    return _error_response(400, INVALID_BODY_MESSAGE)
