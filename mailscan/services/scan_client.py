import logging
from typing import Any, Dict, Optional

import requests

from mailscan.config import settings
from mailscan.exceptions import ScanStoreError
from mailscan.schemas import ScanRecord

logger = logging.getLogger(__name__)


class ScanClient:
    """Posts scan records to a remote scan store (POST {base_url}/scan)."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None,
                 session: Optional[requests.Session] = None):
        base_url = base_url or settings.SCAN_SINK_URL
        if not base_url:
            raise ValueError("Scan sink URL is not configured")
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout or settings.SCAN_SINK_TIMEOUT
        self.session = session or requests.Session()

    def submit(self, record: ScanRecord) -> Dict[str, Any]:
        url = f"{self.base_url}/scan"
        try:
            response = self.session.post(url, json=record.model_dump(mode="json"), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Scan sink unreachable at {url}: {e}")
            raise ScanStoreError(f"Scan sink unreachable: {e}") from e

        if response.status_code >= 300:
            logger.warning(f"Scan sink error ({response.status_code}): {response.text}")
            raise ScanStoreError(f"Scan sink rejected record ({response.status_code}): {response.text}")

        # 204 or an empty body: stored, nothing to report back
        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"Scan sink returned non-JSON body ({response.status_code}): {response.text[:200]}")
            raise ScanStoreError(f"Scan sink returned an unreadable response: {e}") from e
