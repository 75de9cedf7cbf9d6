import logging
from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import ValidationError

from mailscan.config import settings
from mailscan.database import SessionLocal, get_db
from mailscan.exceptions import PrivacyViolationError, ScanStoreError
from mailscan.schemas import (
    AnalysisResult,
    EmailMetadata,
    Message,
    ScanRecord,
    ScanResponse,
    StatisticsResponse,
    ViewStatus,
    ViewUpdate,
)
from mailscan.services.analysis_service import AnalysisService, ANALYZE_CURRENT_EMAIL
from mailscan.services.scan_client import ScanClient
from mailscan.services.scan_repository import ScanRepository, ensure_no_content

logger = logging.getLogger(__name__)

router = APIRouter()

_analysis_service: Optional[AnalysisService] = None


def get_analysis_service() -> AnalysisService:
    """One service per process: the view state has to outlive a request."""
    global _analysis_service
    if _analysis_service is None:
        sink = ScanClient() if settings.SCAN_SINK_URL else None
        _analysis_service = AnalysisService(session_factory=SessionLocal, sink=sink)
    return _analysis_service

# ============================================================================
# SCAN STORE ENDPOINTS
# ============================================================================

@router.post("/scan", status_code=201)
def save_scan(payload: Dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    """Store one scan verdict. Message content is refused outright."""
    try:
        ensure_no_content(payload)
    except PrivacyViolationError as e:
        logger.warning(f"Blocked request containing PII: {e.fields}")
        return JSONResponse(status_code=400, content={"error": "Privacy violation: content not allowed"})

    if not payload.get("sender_domain") or payload.get("risk_score") is None or not payload.get("risk_level"):
        return JSONResponse(status_code=400, content={"error": "Missing required fields"})

    try:
        record = ScanRecord.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Invalid scan record: {e.error_count()} errors")
        return JSONResponse(status_code=400, content={"error": "Invalid scan record"})

    try:
        scan = ScanRepository(db).save(record)
    except ScanStoreError:
        return JSONResponse(status_code=500, content={"error": "Database error"})

    return {"message": "Scan saved successfully", "id": scan.id}


@router.get("/scans", response_model=List[ScanResponse])
def list_scans(skip: int = 0, limit: int = 50, risk_level: str = None, db: Session = Depends(get_db)):
    return ScanRepository(db).list(skip=skip, limit=limit, risk_level=risk_level)


@router.get("/scans/{scan_id}", response_model=ScanResponse)
def get_scan(scan_id: int, db: Session = Depends(get_db)):
    scan = ScanRepository(db).get(scan_id)
    if not scan:
        raise HTTPException(status_code=404, detail="Scan not found")
    return scan


@router.get("/statistics", response_model=StatisticsResponse)
def get_statistics(db: Session = Depends(get_db)):
    return ScanRepository(db).statistics()

# ============================================================================
# ANALYSIS ENDPOINTS
# ============================================================================

@router.post("/analyze", response_model=AnalysisResult)
def analyze_metadata(
    metadata: EmailMetadata,
    persist: bool = False,
    service: AnalysisService = Depends(get_analysis_service)
):
    """Score already-extracted metadata, optionally storing the verdict."""
    return service.analyze_metadata(metadata, persist=persist)


@router.post("/view", response_model=ViewStatus)
def update_view(update: ViewUpdate, service: AnalysisService = Depends(get_analysis_service)):
    """Report the current mail view; opening an email analyzes it."""
    result = service.observe_view(update.document)
    return ViewStatus(state=service.view_state.state.value, result=result)


@router.post("/message")
def handle_message(message: Message, service: AnalysisService = Depends(get_analysis_service)):
    response = service.handle_message(message.model_dump())
    if response["ok"]:
        return response
    status_code = 409 if message.type == ANALYZE_CURRENT_EMAIL else 400
    return JSONResponse(status_code=status_code, content=response)


@router.get("/health")
def health_check():
    return {"status": "healthy", "timestamp": datetime.utcnow(), "service": settings.APP_NAME}
