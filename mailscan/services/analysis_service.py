import logging
import threading
from typing import Any, Callable, Dict, Optional, Tuple
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mailscan.core.metadata_extractor import MetadataExtractor
from mailscan.core.risk_scorer import RiskScorer
from mailscan.core.url_utils import link_hostnames
from mailscan.core.view_state import ViewStateMachine
from mailscan.exceptions import NoEmailOpenError, ScanStoreError
from mailscan.schemas import AnalysisResult, EmailMetadata, ScanRecord, NO_REPLY_TO
from mailscan.services.scan_client import ScanClient
from mailscan.services.scan_repository import ScanRepository

logger = logging.getLogger(__name__)

ANALYZE_CURRENT_EMAIL = "ANALYZE_CURRENT_EMAIL"


def build_scan_record(result: AnalysisResult) -> ScanRecord:
    """Reduce a result to what the scan store keeps: domains and verdict."""
    reply_to = result.reply_to_domain
    return ScanRecord(
        sender_domain=result.sender_domain,
        reply_to_domain=None if reply_to == NO_REPLY_TO else reply_to,
        link_domains=link_hostnames(result.links),
        risk_score=result.risk_score,
        risk_level=result.risk_level,
        flags=list(result.flags),
    )


class AnalysisService:
    """
    Wires the mail view to the scorer: view changes come in, an email
    opening triggers extraction + scoring, results go to the scan store.
    """

    def __init__(self,
                 session_factory: Optional[Callable[[], Session]] = None,
                 sink: Optional[ScanClient] = None,
                 scorer: Optional[RiskScorer] = None,
                 extractor: Optional[MetadataExtractor] = None):
        self.session_factory = session_factory
        self.sink = sink
        self.scorer = scorer or RiskScorer()
        self.extractor = extractor or MetadataExtractor()
        self.view_state = ViewStateMachine(on_open=self._on_email_open)

        self.last_result: Optional[AnalysisResult] = None
        self.last_persist_error: Optional[str] = None
        self._opened_result: Optional[AnalysisResult] = None
        # _lock guards the view state, _state_lock the last_* diagnostics
        self._lock = threading.Lock()
        self._state_lock = threading.Lock()

    def analyze_metadata(self, metadata: EmailMetadata, persist: bool = True) -> AnalysisResult:
        result, _ = self._score(metadata, persist)
        return result

    def observe_view(self, document: str) -> Optional[AnalysisResult]:
        """
        Feed the current mail view. Returns a result only when this
        observation opened an email.
        """
        with self._lock:
            self._opened_result = None
            self.view_state.observe(document)
            result, self._opened_result = self._opened_result, None
        return result

    def analyze_current_email(self) -> AnalysisResult:
        """Re-analyze the email that is open right now."""
        result, _ = self._analyze_current()
        return result

    def handle_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        message_type = (message or {}).get("type")
        if message_type != ANALYZE_CURRENT_EMAIL:
            return {"ok": False, "error": f"unknown message type: {message_type}"}

        try:
            result, persist_error = self._analyze_current()
        except NoEmailOpenError as e:
            logger.warning(f"{ANALYZE_CURRENT_EMAIL} rejected: {e}")
            return {"ok": False, "error": str(e)}

        response = {"ok": True, "result": result.to_dict()}
        if persist_error:
            response["persistError"] = persist_error
        return response

    def _analyze_current(self) -> Tuple[AnalysisResult, Optional[str]]:
        with self._lock:
            if not self.view_state.is_open:
                raise NoEmailOpenError()
            document = self.view_state.current_document
        return self._score(self.extractor.extract_from_html(document), persist=True)

    def _on_email_open(self, document: str):
        result, _ = self._score(self.extractor.extract_from_html(document), persist=True)
        self._opened_result = result

    def _score(self, metadata: EmailMetadata, persist: bool) -> Tuple[AnalysisResult, Optional[str]]:
        result = self.scorer.analyze(metadata)
        logger.info(f"Analysis complete - sender: {result.sender_domain}, "
                    f"score: {result.risk_score}, level: {result.risk_level.value}")

        persist_error = self._persist(result) if persist else None

        with self._state_lock:
            self.last_result = result
            if persist:
                self.last_persist_error = persist_error
        return result, persist_error

    def _persist(self, result: AnalysisResult) -> Optional[str]:
        """
        Write the record to every configured store. Scoring is already done
        by now: a failed write is logged and returned, never retried, and
        never stops the other store.
        """
        if self.session_factory is None and self.sink is None:
            return None

        record = build_scan_record(result)
        errors = []

        if self.sink is not None:
            try:
                self.sink.submit(record)
            except ScanStoreError as e:
                logger.error(f"Scan sink failed for {result.sender_domain}: {e}")
                errors.append(f"sink: {e}")

        if self.session_factory is not None:
            db = self.session_factory()
            try:
                ScanRepository(db).save(record)
            except (ScanStoreError, SQLAlchemyError) as e:
                logger.error(f"Local scan store failed for {result.sender_domain}: {e}")
                errors.append(f"database: {e}")
            finally:
                db.close()

        return "; ".join(errors) or None
