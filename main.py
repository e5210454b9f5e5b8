# main.py - Medical Bill Analysis API

import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile

import config
from models import AnalysisData, AnalyzeRequest
from pipeline import BillAnalysisPipeline, InvalidBillError, load_bill_text
from reference_store import CostReferenceStore, ReferenceDataError

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# =====================================================================================
# 1. DEPENDENCIES
# =====================================================================================

@lru_cache(maxsize=1)
def get_reference_store() -> CostReferenceStore:
    """The reference data is read-only, so one store serves every request."""
    try:
        return CostReferenceStore()
    except ReferenceDataError as e:
        logger.error("Reference data unavailable: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


def get_pipeline(store: CostReferenceStore = Depends(get_reference_store)) -> BillAnalysisPipeline:
    # A fresh pipeline per request keeps each run's coding-service session to itself.
    return BillAnalysisPipeline.from_settings(store)


async def run_analysis(pipeline: BillAnalysisPipeline, bill_text: str, force_fallback: bool = False) -> AnalysisData:
    try:
        return await pipeline.analyze(bill_text, force_fallback=force_fallback)
    except InvalidBillError as e:
        raise HTTPException(status_code=400, detail=str(e))

# =====================================================================================
# 2. FASTAPI APPLICATION & API ENDPOINTS
# =====================================================================================

app = FastAPI(
    title="Medical Bill Analysis API",
    description="Extracts billing codes from an itemized medical bill and compares each charge with typical costs.",
    version="1.0.0",
)


@app.get("/health", tags=["Health"], summary="Liveness check")
async def health():
    return {"status": "ok"}


@app.post("/analyze-bill/", response_model=AnalysisData, tags=["Bill Analysis"], summary="Analyze an Itemized Bill")
async def analyze_bill(request: AnalyzeRequest, pipeline: BillAnalysisPipeline = Depends(get_pipeline)):
    """
    Runs the full pipeline on posted bill text:
    1.  Rewords the bill as one description per service.
    2.  Extracts medical codes for each description.
    3.  Compares each code's billed amount with its typical cost range.
    4.  Flags overcharges and summarizes totals.

    When no text is posted, the configured default bill file is analyzed instead.
    """
    bill_text = request.bill_text
    if bill_text is None:
        if not config.DEFAULT_BILL_PATH:
            raise HTTPException(status_code=400, detail="No bill text provided and no default bill is configured.")
        try:
            bill_text = load_bill_text(config.DEFAULT_BILL_PATH)
        except InvalidBillError as e:
            raise HTTPException(status_code=400, detail=str(e))
        logger.info("Loaded default medical bill from %s", config.DEFAULT_BILL_PATH)

    return await run_analysis(pipeline, bill_text, force_fallback=request.force_fallback)


@app.post("/analyze-bill/upload/", response_model=AnalysisData, tags=["Bill Analysis"], summary="Analyze an Uploaded Bill")
async def analyze_bill_upload(
    file: UploadFile = File(..., description="An itemized medical bill as a plain-text file."),
    pipeline: BillAnalysisPipeline = Depends(get_pipeline),
):
    """Same as /analyze-bill/, for a bill uploaded as a text file."""
    if not (file.content_type or "").startswith("text/plain"):
        raise HTTPException(status_code=400, detail=f"Invalid file type '{file.content_type}'. Please upload a plain-text bill.")

    try:
        bill_text = (await file.read()).decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=422, detail="The uploaded file is not valid UTF-8 text.")

    return await run_analysis(pipeline, bill_text)
