import re
import logging
from email import policy
from email.parser import BytesParser
from email.utils import getaddresses
from typing import List, Optional

from bs4 import BeautifulSoup

from mailscan.config import settings
from mailscan.core.url_utils import domain_from_address
from mailscan.schemas import EmailMetadata

logger = logging.getLogger(__name__)

REPLY_TO_LABEL = re.compile(r'^\s*reply-to:?\s*$', re.IGNORECASE)
ADDRESS_PATTERN = re.compile(r'[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+')


class MetadataExtractor:
    """
    Pulls sender domain, Reply-To domain and link hrefs out of an opened
    email, either from the rendered webmail DOM or from the raw message.

    Nothing here raises on a missing element: absent data becomes an
    absent field and the scorer decides what that means.
    """

    def __init__(self,
                 sender_selector: Optional[str] = None,
                 reply_to_selector: Optional[str] = None,
                 body_selector: Optional[str] = None):
        self.sender_selector = sender_selector or settings.SENDER_SELECTOR
        self.reply_to_selector = reply_to_selector or settings.REPLY_TO_SELECTOR
        self.body_selector = body_selector or settings.BODY_SELECTOR

    def extract_from_html(self, document: str) -> EmailMetadata:
        """
        Extract metadata from an opened-email HTML document.

        Args:
            document: HTML of the mail view

        Returns:
            EmailMetadata with links in document order, mailto: excluded
        """
        soup = BeautifulSoup(document or '', 'lxml')

        return EmailMetadata(
            sender_domain=self._find_sender_domain(soup),
            reply_to_domain=self._find_reply_to_domain(soup),
            links=tuple(self._collect_links(soup)),
        )

    def extract_from_raw_email(self, raw_email: bytes) -> EmailMetadata:
        """
        Extract metadata from raw RFC 822 bytes.

        Links come from the first text/html part only; plain text bodies
        are not scanned.
        """
        try:
            msg = BytesParser(policy=policy.default).parsebytes(raw_email)
            sender_domain = self._header_domain(msg, 'From')
            reply_to_domain = self._header_domain(msg, 'Reply-To')
            html_body = self._get_html_body(msg)
        except Exception as e:
            logger.error(f"Failed to parse email: {e}")
            return EmailMetadata()

        links = []
        if html_body:
            links = self._collect_links(BeautifulSoup(html_body, 'lxml'))

        return EmailMetadata(
            sender_domain=sender_domain,
            reply_to_domain=reply_to_domain,
            links=tuple(links),
        )

    def _find_sender_domain(self, soup) -> Optional[str]:
        element = soup.select_one(self.sender_selector)
        if element is None:
            logger.debug("Sender element not found")
            return None
        return domain_from_address(element.get('email'))

    def _find_reply_to_domain(self, soup) -> Optional[str]:
        element = soup.select_one(self.reply_to_selector)
        if element is not None:
            return domain_from_address(element.get('data-reply-to'))

        # Gmail's header details table: "reply-to:" label, then the address chip
        label = soup.find(string=REPLY_TO_LABEL)
        if label is None:
            return None

        chip = label.find_next(attrs={'email': True})
        if chip is not None:
            return domain_from_address(chip.get('email'))

        row = label.find_parent('tr') or label.parent
        match = ADDRESS_PATTERN.search(row.get_text(' ')) if row is not None else None
        return domain_from_address(match.group(0)) if match else None

    def _collect_links(self, soup) -> List[str]:
        containers = soup.select(self.body_selector) or [soup]

        links = []
        for container in containers:
            for anchor in container.find_all('a', href=True):
                href = anchor['href']
                if href.strip().lower().startswith('mailto:'):
                    continue
                links.append(href)
        return links

    def _header_domain(self, msg, header: str) -> Optional[str]:
        values = msg.get_all(header) or []
        addresses = getaddresses([str(v) for v in values])
        for _, address in addresses:
            domain = domain_from_address(address)
            if domain:
                return domain
        return None

    def _get_html_body(self, msg) -> Optional[str]:
        for part in msg.walk():
            if part.get_content_disposition() == 'attachment':
                continue
            if part.get_content_type() == 'text/html':
                return part.get_content()
        return None
