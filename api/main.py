import os
import time
import uuid
from typing import List

import psycopg2
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import config
from api.config import API_TITLE, API_VERSION, DB
from api.events import log_api_event, log_chat_event, reset_event_log
from api.llm import LLMError, LLMNotConfigured, generate_guidance
from api.models import ChatRequest, ChatResponse, HealthResponse, Quotation, RandomQuotationResponse
from api.rate_limit import enforce_rate_limit
from api.selector import Deadline, pick_random, select_quotation
from api.store import QuotationStore, QuotationStoreError

app = FastAPI(title=API_TITLE, version=API_VERSION)

CORS_ALLOW_ALL = os.getenv("CORS_ALLOW_ALL", "1") == "1"
if CORS_ALLOW_ALL:
    allow_origins = ["*"]
else:
    raw_origins = os.getenv(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    )
    allow_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    expose_headers=["Retry-After"],
)

EVENT_LOG_RESET_ON_STARTUP = os.getenv("EVENT_LOG_RESET_ON_STARTUP", "0") == "1"


@app.on_event("startup")
def _reset_event_log_on_startup() -> None:
    if EVENT_LOG_RESET_ON_STARTUP:
        reset_event_log("startup")


@app.exception_handler(HTTPException)
def handle_http_exception(_request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "http_error", "message": str(exc.detail)}},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
def handle_validation_exception(_request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "validation_error",
                "message": "invalid request",
                "details": exc.errors(),
            }
        },
    )


def get_conn():
    try:
        conn = psycopg2.connect(**DB)
    except psycopg2.Error:
        log_api_event("store_unavailable", {"reason": "connect_failed"})
        yield None
        return
    try:
        yield conn
    finally:
        conn.close()


def _get_client_ip(request: Request) -> str:
    xff = request.headers.get("X-Forwarded-For", "")
    if xff:
        return xff.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def _valid_ids(values: List[str]) -> List[str]:
    ids = []
    for value in values or []:
        try:
            ids.append(str(uuid.UUID(value)))
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid id")
    return ids


@app.get("/healthz", response_model=HealthResponse)
def healthz():
    return {"ok": True}


@app.post("/v1/chat/messages", response_model=ChatResponse)
def post_message(payload: ChatRequest, request: Request = None, conn=Depends(get_conn)):
    client_id = _get_client_ip(request) if request else ""
    rate = enforce_rate_limit(client_id)
    if rate.get("status") == "limit":
        log_api_event("chat_rate_limited", {"client_id": client_id, "count": rate.get("count")})
        raise HTTPException(
            status_code=429,
            detail="too many requests",
            headers={"Retry-After": str(rate.get("retry_after") or config.CHAT_RATE_WINDOW_SEC)},
        )
    if not config.OPENROUTER_API_KEY:
        log_api_event("chat_failed", {"reason": "llm_not_configured"})
        raise HTTPException(status_code=500, detail="OpenRouter API key not configured")

    log_chat_event(
        "chat_message",
        {
            "client_id": client_id,
            "message_len": len(payload.message),
            "history_len": len(payload.history),
            "exclude_count": len(payload.excludeIds),
        },
    )

    quotation = None
    if conn is not None:
        deadline = Deadline(config.SELECTION_TIMEOUT_SEC)
        quotation = select_quotation(
            QuotationStore(conn),
            payload.message,
            payload.excludeIds,
            deadline=deadline,
        )

    history = [item.model_dump() for item in payload.history]
    try:
        response_text, llm_meta = generate_guidance(payload.message, history, quotation)
    except LLMNotConfigured:
        raise HTTPException(status_code=500, detail="OpenRouter API key not configured")
    except LLMError as exc:
        log_api_event("chat_failed", {"reason": exc.reason, "status": exc.status_code})
        raise HTTPException(status_code=502, detail="llm upstream error")

    log_chat_event(
        "chat_response",
        {
            "client_id": client_id,
            "quotation_id": quotation["id"] if quotation else None,
            "llm_model": llm_meta.get("model"),
            "llm_empty": llm_meta.get("empty", False),
            "elapsed_ms": llm_meta.get("elapsed_ms"),
        },
    )
    return {"response": response_text, "hiddenWord": quotation}


@app.get("/v1/quotations/random", response_model=RandomQuotationResponse)
def random_quotation(exclude: List[str] = Query([]), conn=Depends(get_conn)):
    if conn is None:
        raise HTTPException(status_code=503, detail="quotation store unavailable")
    exclude_ids = _valid_ids(exclude)
    start = time.perf_counter()
    quotation = pick_random(
        QuotationStore(conn),
        exclude_ids,
        deadline=Deadline(config.SELECTION_TIMEOUT_SEC),
    )
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    log_api_event(
        "quotation_random",
        {"exclude_count": len(exclude_ids), "found": quotation is not None, "elapsed_ms": elapsed_ms},
    )
    return {"hiddenWord": quotation}


@app.get("/v1/quotations/{quotation_id}", response_model=Quotation)
def get_quotation(quotation_id: str, conn=Depends(get_conn)):
    if conn is None:
        raise HTTPException(status_code=503, detail="quotation store unavailable")
    (quotation_id,) = _valid_ids([quotation_id])
    try:
        quotation = QuotationStore(conn).get(quotation_id)
    except QuotationStoreError:
        log_api_event("quotation_get_failed", {"reason": "store_error"})
        raise HTTPException(status_code=503, detail="quotation store unavailable")
    if not quotation:
        raise HTTPException(status_code=404, detail="quotation not found")
    log_api_event("quotation_get", {"quotation_id": quotation_id})
    return quotation


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "9000"))
    uvicorn.run("api.main:app", host="0.0.0.0", port=port, reload=True)
