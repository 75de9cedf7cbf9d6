from sqlalchemy import Column, Integer, String, DateTime, JSON
from datetime import datetime
from mailscan.database import Base

class Scan(Base):
    __tablename__ = "scans"

    id = Column(Integer, primary_key=True, index=True)

    # Domains only, no message content is ever stored
    sender_domain = Column(String(255), index=True)
    reply_to_domain = Column(String(255), nullable=True)
    link_domains = Column(JSON, default=list)

    # Verdict
    risk_score = Column(Integer, default=0)
    risk_level = Column(String(16), index=True)
    flags = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
