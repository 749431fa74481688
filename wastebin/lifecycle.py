"""
Paste lifecycle on read.

A paste is LIVE until either its expiry passes (EXPIRED) or a burn-after-read
paste is read (CONSUMED); both end with the row deleted. Nothing ever
returns to LIVE.
"""
import enum
import logging
from datetime import datetime
from typing import Callable, Optional

from wastebin.errors import Gone, NotFound
from wastebin.records import Paste, utcnow
from wastebin.store import PasteID, PasteStore

logger = logging.getLogger(__name__)


class PasteState(enum.Enum):
    LIVE = "live"
    EXPIRED = "expired"
    CONSUMED = "consumed"


class LifecycleEvaluator:
    def __init__(self, store: PasteStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def evaluate(self, paste: Paste, now: datetime) -> PasteState:
        """Decide what a read at ``now`` does to ``paste``. No side effects."""
        if paste.is_expired(now):
            return PasteState.EXPIRED
        if paste.burn:
            return PasteState.CONSUMED
        return PasteState.LIVE

    def read(self, paste_id: PasteID, now: Optional[datetime] = None) -> Paste:
        """
        Fetch a paste for a reader, applying expiry and burn-after-read.

        Burn-after-read pastes are served exactly once: the row is deleted
        atomically and only the reader whose delete removed it gets the
        content.

        Raises:
            InvalidID: malformed id
            NotFound: no such paste
            Gone: the paste expired, or another reader already consumed it
            StorageFailure: storage error
        """
        now = now or self.clock()
        paste = self.store.fetch_by_id(paste_id)
        state = self.evaluate(paste, now)

        if state is PasteState.EXPIRED:
            try:
                self.store.delete_by_id(paste.id)
            except NotFound:
                # A concurrent reader removed it first
                pass
            logger.info(f"Paste {paste.id} expired at {paste.expiry_timestamp.isoformat()}, deleted")
            raise Gone()

        if state is PasteState.CONSUMED:
            try:
                paste = self.store.take_by_id(paste.id, now)
            except NotFound:
                logger.info(f"Paste {paste.id} was already burned by another reader or has expired")
                raise Gone() from None
            logger.info(f"Paste {paste.id} burned after read")
            return paste

        return paste
