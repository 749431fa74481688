"""
Content validation for new pastes.
Pure checks on size, encoding, language and expiry; nothing here touches storage.
"""
import logging
import re
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Union

from wastebin.config import DEFAULT_MAX_PASTE_SIZE
from wastebin.errors import (
    ContentTooLarge,
    EmptyContent,
    ExpiryInPast,
    ExpiryTooFar,
    InvalidEncoding,
    InvalidExpiry,
    InvalidLanguage,
)
from wastebin.models import PasteCreate
from wastebin.records import NewPaste, utcnow

logger = logging.getLogger(__name__)

MIN_EXPIRY_MINUTES = 1
MAX_EXPIRY_MINUTES = 60 * 24 * 365  # 1 year

ALLOWED_LANGUAGES = frozenset({
    "txt",
    "javascript",
    "python",
    "go",
    "java",
    "c",
    "cpp",
    "html",
    "css",
    "json",
    "xml",
    "yaml",
    "markdown",
    "sql",
    "bash",
    "shell",
    "php",
    "ruby",
    "rust",
})

# Matches are only logged. Raw pastes are always served as text/plain,
# which keeps these inert in a browser.
DANGEROUS_PATTERNS = [
    re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
]


class ContentValidator:
    """Validates and normalizes paste submissions before they are stored."""

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_PASTE_SIZE,
        languages: Iterable[str] = ALLOWED_LANGUAGES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.max_size = max_size
        self.languages = frozenset(languages)
        self.clock = clock

    def sanitize(self, content: Union[str, bytes]) -> str:
        """
        Check UTF-8 validity and normalize line endings.

        NUL bytes are removed and CRLF / bare CR become LF.

        Raises:
            InvalidEncoding: if the content is not valid UTF-8
        """
        if isinstance(content, bytes):
            try:
                content = content.decode("utf-8")
            except UnicodeDecodeError as e:
                logger.warning("Invalid UTF-8 content detected")
                raise InvalidEncoding() from e
        else:
            try:
                # Lone surrogates survive JSON decoding but are not UTF-8
                content.encode("utf-8")
            except UnicodeEncodeError as e:
                logger.warning("Invalid UTF-8 content detected")
                raise InvalidEncoding() from e

        content = content.replace("\x00", "")
        content = content.replace("\r\n", "\n").replace("\r", "\n")

        for pattern in self.scan(content):
            logger.warning(f"Potentially dangerous pattern detected in content: {pattern}")

        return content

    def scan(self, content: str) -> list[str]:
        """Return the dangerous patterns found in ``content``."""
        return [p.pattern for p in DANGEROUS_PATTERNS if p.search(content)]

    def validate_content(self, content: Union[str, bytes]) -> str:
        """Sanitize then bound-check content. Returns the normalized text."""
        content = self.sanitize(content)
        if not content:
            raise EmptyContent()
        if len(content.encode("utf-8")) > self.max_size:
            raise ContentTooLarge()
        return content

    def validate_language(self, language: Optional[str]) -> str:
        """Check the tag against the allowlist. Returns it trimmed, case kept."""
        if not language:
            return ""
        tag = language.strip()
        if tag.lower() not in self.languages:
            logger.warning(f"Invalid language specified: {language!r}")
            raise InvalidLanguage()
        return tag

    def validate_expiry(self, expiry: datetime, now: Optional[datetime] = None) -> datetime:
        """
        Check an absolute expiry against now.

        Raises:
            InvalidExpiry: if the timestamp carries no timezone
            ExpiryInPast: if it is not strictly in the future
            ExpiryTooFar: if it is more than one year out
        """
        if expiry.tzinfo is None:
            raise InvalidExpiry("expiry timestamp must be timezone-aware")
        now = now or self.clock()
        if expiry <= now:
            raise ExpiryInPast()
        if expiry > now + timedelta(minutes=MAX_EXPIRY_MINUTES):
            raise ExpiryTooFar()
        return expiry

    def expiry_from_minutes(self, minutes, now: Optional[datetime] = None) -> datetime:
        if isinstance(minutes, bool) or not isinstance(minutes, int):
            raise InvalidExpiry("expiry must be a whole number of minutes")
        # Range first, huge values overflow timedelta
        if minutes < MIN_EXPIRY_MINUTES:
            raise ExpiryInPast()
        if minutes > MAX_EXPIRY_MINUTES:
            raise ExpiryTooFar()
        now = now or self.clock()
        return self.validate_expiry(now + timedelta(minutes=minutes), now)

    def validate(self, request: PasteCreate, now: Optional[datetime] = None) -> NewPaste:
        """Run every check on a create request."""
        now = now or self.clock()
        return NewPaste(
            content=self.validate_content(request.content),
            language=self.validate_language(request.language),
            burn=request.burn,
            expiry_timestamp=self.expiry_from_minutes(request.expiry_minutes, now),
        )
