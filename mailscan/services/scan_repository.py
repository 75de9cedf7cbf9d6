import logging
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import func, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mailscan.config import settings
from mailscan.exceptions import PrivacyViolationError, ScanStoreError
from mailscan.models import Scan
from mailscan.schemas import RiskLevel, ScanRecord, ScanResponse

logger = logging.getLogger(__name__)


def ensure_no_content(payload: Dict[str, Any], banned_fields: Optional[Iterable[str]] = None):
    """Reject payloads carrying message content (body, subject, recipient)."""
    banned = settings.BANNED_SCAN_FIELDS if banned_fields is None else banned_fields
    present = [field for field in banned if payload.get(field)]
    if present:
        raise PrivacyViolationError(present)


class ScanRepository:
    def __init__(self, db: Session):
        self.db = db

    def save(self, record: ScanRecord) -> Scan:
        scan = Scan(
            sender_domain=record.sender_domain,
            reply_to_domain=record.reply_to_domain or None,
            link_domains=list(record.link_domains),
            risk_score=record.risk_score,
            risk_level=record.risk_level.value,
            flags=[flag.model_dump() for flag in record.flags],
        )
        try:
            self.db.add(scan)
            self.db.commit()
            self.db.refresh(scan)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error inserting scan: {e}")
            raise ScanStoreError("Database error") from e

        logger.info(f"Saved scan {scan.id}: {scan.sender_domain} {scan.risk_level} ({scan.risk_score})")
        return scan

    def list(self, skip: int = 0, limit: int = 50, risk_level: Optional[str] = None) -> List[Scan]:
        query = self.db.query(Scan)
        if risk_level:
            query = query.filter(Scan.risk_level == risk_level.upper())
        return query.order_by(desc(Scan.created_at), desc(Scan.id)).offset(skip).limit(limit).all()

    def get(self, scan_id: int) -> Optional[Scan]:
        return self.db.query(Scan).filter(Scan.id == scan_id).first()

    def statistics(self) -> Dict[str, Any]:
        total = self.db.query(func.count(Scan.id)).scalar()
        counts = {
            level.value: self.db.query(func.count(Scan.id)).filter(Scan.risk_level == level.value).scalar()
            for level in RiskLevel
        }
        avg_score = self.db.query(func.avg(Scan.risk_score)).scalar() or 0

        return {
            "total_scans": total,
            "high": counts["HIGH"],
            "medium": counts["MEDIUM"],
            "low": counts["LOW"],
            "avg_risk_score": round(float(avg_score), 2),
            "recent_scans": [ScanResponse.model_validate(scan) for scan in self.list(limit=10)],
        }
