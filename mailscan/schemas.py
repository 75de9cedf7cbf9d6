from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime

UNKNOWN_SENDER = "Unknown"
NO_REPLY_TO = "N/A"

# ==========================================
# 🧱 ENGINE MODELS
# ==========================================

class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class EmailMetadata(BaseModel):
    """
    What the extractor hands to the scorer.
    Accepts camelCase (extension payloads) or snake_case field names.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    sender_domain: Optional[str] = None
    reply_to_domain: Optional[str] = None
    # Raw hrefs in document order, duplicates and junk included
    links: Tuple[str, ...] = ()


class Flag(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    evidence: str
    points: int = Field(ge=0)


class AnalysisResult(BaseModel):
    """Verdict for one email. Serialized with camelCase field names."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    sender_domain: str = UNKNOWN_SENDER
    reply_to_domain: str = NO_REPLY_TO
    links: Tuple[str, ...] = ()
    risk_score: int = Field(default=0, ge=0)
    risk_level: RiskLevel = RiskLevel.LOW
    flags: Tuple[Flag, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

# ==========================================
# 💾 SCAN STORE MODELS
# ==========================================

class ScanRecord(BaseModel):
    """
    Payload accepted by the scan store. Holds domains and verdicts only,
    never message content.
    """
    sender_domain: str = Field(min_length=1)
    reply_to_domain: Optional[str] = None
    link_domains: List[str] = []
    risk_score: int = Field(ge=0)
    risk_level: RiskLevel
    flags: List[Flag] = []


class ScanResponse(BaseModel):
    id: int
    sender_domain: Optional[str] = None
    reply_to_domain: Optional[str] = None
    link_domains: List[str] = []
    risk_score: int
    risk_level: Optional[str] = None
    flags: List[Dict[str, Any]] = []
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StatisticsResponse(BaseModel):
    total_scans: int
    high: int
    medium: int
    low: int
    avg_risk_score: float
    recent_scans: List[ScanResponse]

# ==========================================
# 📥 TRIGGER MODELS
# ==========================================

class ViewUpdate(BaseModel):
    document: str = ""


class ViewStatus(BaseModel):
    state: str
    result: Optional[AnalysisResult] = None


class Message(BaseModel):
    type: str
