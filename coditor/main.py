import html
import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field

from coditor import gemini_client
from coditor.handler import ReviewRequest, handle_review
from coditor.render import render_home, render_results, render_review_page
from coditor.view import ReviewView

if not logging.getLogger().handlers:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

log = logging.getLogger(__name__)

app = FastAPI(
    title="Coditor",
    description="AI-powered code review for React, Angular, Vue, and Svelte.",
    version="0.1.0",
)

allow_origins = [o.strip() for o in os.getenv("ALLOW_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = str(uuid.uuid4())
    start = time.time()
    request.state.request_id = rid
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        dur_ms = int((time.time() - start) * 1000)
        log.info(
            "rid=%s method=%s path=%s status=%s dur_ms=%d",
            rid,
            request.method,
            request.url.path,
            getattr(response, "status_code", "?"),
            dur_ms,
        )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for e in exc.errors():
        loc = ".".join(str(p) for p in e.get("loc", []) if p != "body") or "(body)"
        messages.append(f"{loc}: {e.get('msg', 'invalid')}")
    return JSONResponse(status_code=422, content={"error": "; ".join(messages) or "invalid request"})


class ResultsRequest(BaseModel):
    # Blank code is allowed here so the view can show its own prompt
    code: str = Field("", description="Code currently in the textarea")
    framework: str = Field("react", description="Selected framework")
    filename: Optional[str] = Field(None, description="Name of the uploaded file, if the code came from one")


@app.get("/", response_class=HTMLResponse)
def root() -> str:
    return render_home()


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/llm/status")
def llm_status_endpoint() -> Dict[str, Any]:
    return gemini_client.status()


@app.post("/api/review")
def review_endpoint(req: ReviewRequest) -> JSONResponse:
    status_code, payload = handle_review(req)
    return JSONResponse(status_code=status_code, content=payload)


@app.get("/review", response_class=HTMLResponse)
def review_page(framework: str = "react") -> str:
    try:
        view = ReviewView(framework=framework)
    except ValueError:
        view = ReviewView()
    return render_review_page(view)


@app.post("/review/results", response_class=HTMLResponse)
def review_results(req: ResultsRequest) -> HTMLResponse:
    """Run one submission through the view and return the rendered results fragment."""
    try:
        view = ReviewView(framework=req.framework)
    except ValueError as exc:
        return HTMLResponse(f'<div class="error" role="alert">{html.escape(str(exc))}</div>', status_code=422)
    if req.filename:
        view.upload(req.code, filename=req.filename)
    else:
        view.edit(req.code)
    state = view.submit(handle_review)
    log.info("review.view state=%s framework=%s file=%s", state.value, view.framework, view.filename or "-")
    return HTMLResponse(render_results(view))


def run() -> None:
    """Serve the app with uvicorn (`coditor` console script)."""
    import uvicorn

    uvicorn.run(
        "coditor.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
