import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from fiction_forge import config
from fiction_forge.errors import AuthFailure, RequestValidationFailure
from fiction_forge.llm_client import CompletionService
from fiction_forge.orchestrator import ForgeOrchestrator, GenerationRequest, validate_request

logger = logging.getLogger("fiction_forge")

SUCCESS_PREFIX = "Generation process completed. See details below and check generated files.\n"


class EmptyPreflightCORSMiddleware(CORSMiddleware):
    """Answers an accepted preflight with 200 and no body, keeping the Access-Control-* headers."""

    def preflight_response(self, request_headers):
        response = super().preflight_response(request_headers)
        if response.status_code != 200:
            return response
        headers = {
            k: v for k, v in response.headers.items()
            if k.lower() not in ("content-length", "content-type")
        }
        return Response(status_code=200, headers=headers)


app = FastAPI(title="AI Fiction Forge")

# CORS configuration
app.add_middleware(
    EmptyPreflightCORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: Optional[str] = Field(default=None, alias="apiKey")
    series: Optional[str] = None
    option: Optional[Union[str, int]] = None
    model: Optional[str] = None
    tool_card_purpose: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("toolCardPurpose", "toolPurpose"),
    )

    @field_validator("option", mode="before")
    @classmethod
    def _option_as_text(cls, value):
        return None if value is None else str(value)


class GenerateResponse(BaseModel):
    series: str = ""
    option_chosen: str = ""
    model_used: str = ""
    api_key_received: bool = False
    message: str = ""
    generated_content: Optional[str] = None
    timestamp: str = ""
    error: Optional[str] = None
    log_identifier: Optional[str] = None


_orchestrator = ForgeOrchestrator(CompletionService())


def get_orchestrator() -> ForgeOrchestrator:
    return _orchestrator


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _respond(status_code: int, response: GenerateResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=response.model_dump(exclude_none=True))


def _check_api_key(api_key: str) -> None:
    expected = config.GEMINI_API_KEY
    if expected and api_key != expected:
        raise AuthFailure("Invalid API Key.")


@app.exception_handler(RequestValidationError)
async def invalid_payload_handler(request: Request, exc: RequestValidationError):
    logger.info(f"[HTTP] Rejected malformed /generate payload: {exc.errors()}")
    response = GenerateResponse(
        message="Invalid request payload.",
        error="Invalid request payload: expected a JSON object with apiKey, series, option and model.",
        timestamp=_timestamp(),
    )
    return _respond(400, response)


@app.get("/")
async def status():
    return {"status": "AI Fiction Forge server is running"}


@app.options("/generate")
async def generate_preflight():
    return Response(status_code=200)


@app.post("/generate")
async def generate(payload: GenerateRequest, orchestrator: ForgeOrchestrator = Depends(get_orchestrator)):
    request = GenerationRequest(
        api_key=(payload.api_key or "").strip(),
        series=(payload.series or "").strip(),
        option=(payload.option or "").strip(),
        model=(payload.model or "").strip(),
        tool_purpose=(payload.tool_card_purpose or "").strip(),
    )
    response = GenerateResponse(
        series=request.series,
        option_chosen=request.option,
        model_used=request.model,
        api_key_received=bool(request.api_key),
        timestamp=_timestamp(),
    )

    try:
        validate_request(request)
        _check_api_key(request.api_key)
    except RequestValidationFailure as e:
        response.message = str(e)
        response.error = str(e)
        return _respond(400, response)
    except AuthFailure as e:
        response.message = str(e)
        response.error = str(e)
        return _respond(401, response)

    logger.info(f"[HTTP] /generate series='{request.series}' option={request.option} model={request.model}")

    cancel_event = threading.Event()
    task = asyncio.ensure_future(asyncio.to_thread(orchestrator.run, request, cancel_event))
    try:
        result = await asyncio.wait_for(asyncio.shield(task), timeout=config.REQUEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.info(f"[HTTP] Deadline of {config.REQUEST_TIMEOUT_SECONDS}s reached, cancelling remaining steps")
        cancel_event.set()
        result = await task
    except asyncio.CancelledError:
        cancel_event.set()
        raise
    except Exception as e:
        logger.exception(f"[HTTP] Unexpected error while generating for '{request.series}'")
        response.error = f"Error during generation: {e}"
        return _respond(500, response)

    response.option_chosen = result.option_label
    response.log_identifier = result.session_id
    response.generated_content = result.generated_json or None
    response.timestamp = _timestamp()

    if result.ok:
        response.message = SUCCESS_PREFIX + result.message
        return _respond(200, response)

    response.message = result.message
    response.error = f"Error during generation: {result.error}"
    return _respond(500, response)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
