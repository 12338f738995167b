"""
Hemeroteca Input Validators
===========================

URL validation and canonicalization used for feed sources and as the
strong dedup key of archived articles.
"""

import re
from urllib.parse import urlparse, urlunparse, urljoin, parse_qsl, urlencode
from typing import Optional

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation and sanitization utilities."""

    ALLOWED_SCHEMES = {"http", "https"}

    # Query parameters that never identify content
    TRACKING_PARAMS = {
        "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
        "utm_id", "ref", "referer", "fbclid", "gclid", "dclid", "_ga", "_gl",
        "mc_cid", "mc_eid", "ns_campaign", "ns_mchannel", "ns_source",
    }

    URL_PATTERN = re.compile(r"^(http|https)://[^\s/$.?#].[^\s]*$", re.IGNORECASE)

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate and normalize a feed URL.

        Args:
            url: URL to validate

        Returns:
            Normalized URL

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url",
            )

        url = url.strip()

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise ValidationError(
                f"Invalid URL format: {e}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            ) from e

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be {' or '.join(sorted(cls.ALLOWED_SCHEMES))}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        if not parsed.netloc:
            raise ValidationError(
                "URL must include a hostname",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        return urlunparse(parsed._replace(
            scheme=parsed.scheme.lower(),
            netloc=parsed.netloc.lower(),
            path=parsed.path or "/",
            fragment="",
        ))

    @classmethod
    def resolve(cls, url: str, base_url: Optional[str] = None) -> str:
        """Resolve a possibly relative link against ``base_url`` without normalizing it.

        Raises:
            ValidationError: If either URL cannot be parsed
        """
        url = (url or "").strip()
        try:
            if base_url and url and not urlparse(url).netloc:
                return urljoin(base_url, url)
        except ValueError as e:
            raise ValidationError(
                f"Invalid URL format: {e}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            ) from e
        return url

    @classmethod
    def canonicalize(cls, url: str, base_url: Optional[str] = None) -> str:
        """Produce the canonical form of an article URL.

        Lowercases scheme and host, drops the fragment and tracking
        parameters and sorts the remaining query parameters.

        Args:
            url: Article URL, possibly relative
            base_url: URL to resolve a relative link against

        Returns:
            Canonical URL

        Raises:
            ValidationError: If the URL is not an absolute http(s) URL
        """
        validated = cls.validate_feed_url(cls.resolve(url, base_url))
        parsed = urlparse(validated)

        query = [
            (key, value)
            for key, value in parse_qsl(parsed.query, keep_blank_values=True)
            if key.lower() not in cls.TRACKING_PARAMS
        ]
        query.sort()

        netloc = parsed.netloc
        if parsed.scheme == "http" and netloc.endswith(":80"):
            netloc = netloc[:-3]
        elif parsed.scheme == "https" and netloc.endswith(":443"):
            netloc = netloc[:-4]

        return urlunparse(parsed._replace(netloc=netloc, query=urlencode(query)))

    @classmethod
    def is_valid_url(cls, url: str) -> bool:
        """Quick check used when reading configuration lines."""
        return bool(url) and bool(cls.URL_PATTERN.match(url.strip()))


def canonicalize_url(url: str, base_url: Optional[str] = None) -> str:
    """Module-level shortcut for URLValidator.canonicalize."""
    return URLValidator.canonicalize(url, base_url=base_url)


def resolve_url(url: str, base_url: Optional[str] = None) -> str:
    """Module-level shortcut for URLValidator.resolve."""
    return URLValidator.resolve(url, base_url=base_url)
