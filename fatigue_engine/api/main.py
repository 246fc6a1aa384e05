# fatigue_engine/api/main.py
import logging
import os
import shutil
from datetime import datetime

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fatigue_engine import config
from fatigue_engine.agents.orchestrator import Orchestrator
from fatigue_engine.api.schemas import CheckResponse, CompliancePayload, ProspectiveResponse
from fatigue_engine.models import parse_request
from fatigue_engine.validator.compliance_validator import evaluate, prospective_work_warnings

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Fatigue Compliance Engine")
orch = Orchestrator()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def invalid_body(request: Request, exc: RequestValidationError):
    problems = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors())
    return JSONResponse(status_code=400, content={"error": f"Invalid request body ({problems})"})


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc) or exc.__class__.__name__})


def _parse(req: CompliancePayload):
    tz = config.get_timezone()
    return parse_request(req.model_dump(), now=datetime.now(tz), tz=tz)


@app.post("/compliance/check", response_model=CheckResponse)
def check(req: CompliancePayload):
    days, options = _parse(req)
    findings = evaluate(days, options)
    logger.info("Checked %d days (%s): %d findings", len(days), options.driver_type.value, len(findings))
    return {"results": [f.to_dict() for f in findings]}


@app.post("/compliance/prospective", response_model=ProspectiveResponse)
def prospective(req: CompliancePayload):
    days, options = _parse(req)
    return {"warnings": prospective_work_warnings(days, options)}


@app.post("/oversight")
async def oversight(sheets_json: UploadFile = File(...)):
    # Save upload, then run the batch report over it
    os.makedirs("uploads", exist_ok=True)
    sheets_path = f"uploads/{os.path.basename(sheets_json.filename or 'sheets.json')}"
    with open(sheets_path, "wb") as f:
        shutil.copyfileobj(sheets_json.file, f)

    try:
        return orch.run_pipeline(sheets_path, os.path.join(config.OUT_DIR, "oversight_report.csv"))
    except (FileNotFoundError, ValueError) as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
