import logging
from enum import Enum
from typing import Callable, Optional

from bs4 import BeautifulSoup

from mailscan.config import settings

logger = logging.getLogger(__name__)


class ViewState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"


class ViewStateMachine:
    """
    Tracks whether an email is currently open in the mail view.

    CLOSED -> OPEN when the open-email marker appears in an observed
    document, OPEN -> CLOSED when it disappears. on_open fires once per
    CLOSED -> OPEN transition.
    """

    def __init__(self,
                 on_open: Optional[Callable[[str], None]] = None,
                 marker_selector: Optional[str] = None):
        self.on_open = on_open
        self.marker_selector = marker_selector or settings.OPEN_MARKER_SELECTOR
        self.state = ViewState.CLOSED
        self._document: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state == ViewState.OPEN

    @property
    def current_document(self) -> Optional[str]:
        return self._document

    def observe(self, document: str) -> ViewState:
        if self._marker_present(document):
            opened = self.state == ViewState.CLOSED
            self.state = ViewState.OPEN
            self._document = document
            if opened:
                logger.info("Email opened")
                if self.on_open is not None:
                    self.on_open(document)
        else:
            if self.state == ViewState.OPEN:
                logger.info("Email closed")
            self.reset()
        return self.state

    def reset(self):
        self.state = ViewState.CLOSED
        self._document = None

    def _marker_present(self, document: str) -> bool:
        if not document:
            return False
        soup = BeautifulSoup(document, 'lxml')
        return soup.select_one(self.marker_selector) is not None
