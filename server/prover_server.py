"""
prover_server.py - Prover Runner HTTP Server

Endpoints:
- POST /        submit a prover job, returns {"summary": ..., "files": ...}
- GET  /livez   liveness
- GET  /readyz  readiness (prover binary present and executable)

Error mapping:
- 400 for malformed or schema-invalid bodies (before any workspace exists)
- 500 for fatal runner errors (workspace, launch, summary); no result body
- a prover timeout is NOT an error: the result carries "timed_out": true
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

sys.path.insert(0, str(Path(__file__).parent.parent))
from prover_runner import (
    JobOrchestrator,
    JobRequest,
    JobResult,
    RunnerConfig,
    RunnerError,
    StructuredLogger,
    __version__,
    generate_job_id,
)

# ============== CONFIGURATION ==============

# .env is optional; real environment variables win
load_dotenv()

CONFIG: RunnerConfig = RunnerConfig.from_env()
LOGGER = StructuredLogger(source="prover_server")

# ============== APP ==============

app = FastAPI(title="Prover Runner", version=__version__)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Reject bad request bodies with 400."""
    LOGGER.error("Invalid request", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without the raw input or exception objects."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


def get_orchestrator() -> JobOrchestrator:
    return JobOrchestrator(CONFIG, LOGGER)


# ============== ENDPOINTS ==============

@app.post("/", response_model=JobResult)
def prove(req: JobRequest):
    """Run the prover for one job and return its harvested result."""
    job_id = generate_job_id()
    LOGGER.info("Request received", job_id=job_id)
    try:
        return get_orchestrator().run(req, job_id=job_id)
    except RunnerError as e:
        LOGGER.error("Request failed", job_id=job_id, error_code=e.error_code, error=e.message)
        raise HTTPException(status_code=500, detail=e.to_dict())


@app.get("/livez")
def livez():
    """Liveness check."""
    return {"status": "ok"}


@app.get("/readyz")
def readyz():
    """Readiness check: the default prover build must be runnable."""
    binary = CONFIG.resolve_binary(trace=False)
    ready = binary.is_file() and os.access(binary, os.X_OK)
    body = {
        "status": "ready" if ready else "unavailable",
        "binary": str(binary),
        "file_grouping": CONFIG.file_grouping.value,
        "result_fields": CONFIG.result_fields.value,
    }
    return JSONResponse(status_code=200 if ready else 503, content=body)


# ============== MAIN ==============

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", "3000"))
    host = "localhost" if os.environ.get("ENV") == "dev" else "0.0.0.0"
    LOGGER.info("Starting server", host=host, port=port, bin_dir=str(CONFIG.bin_dir))
    uvicorn.run(app, host=host, port=port)
