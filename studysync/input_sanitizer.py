import re
from typing import Optional

import bleach


class InputSanitizer:
    """Cleans user text that other collaborators will later read"""

    # Allowed HTML tags and attributes for rich text (descriptions, notes)
    ALLOWED_TAGS = [
        'p', 'br', 'strong', 'em', 'u', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
        'ul', 'ol', 'li', 'blockquote', 'code', 'pre', 'a'
    ]

    ALLOWED_ATTRIBUTES = {
        '*': ['class'],
        'a': ['href', 'title'],
    }

    EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

    @staticmethod
    def sanitize_text(text: Optional[str]) -> str:
        """Strip every tag; for single-line fields like titles"""
        if not isinstance(text, str):
            return ""

        cleaned = bleach.clean(text, tags=[], attributes={}, strip=True, strip_comments=True)
        return re.sub(r'\s+', ' ', cleaned).strip()

    @staticmethod
    def sanitize_html(html_content: Optional[str]) -> str:
        """Sanitize rich text while preserving safe tags"""
        if not isinstance(html_content, str):
            return ""

        return bleach.clean(
            html_content,
            tags=InputSanitizer.ALLOWED_TAGS,
            attributes=InputSanitizer.ALLOWED_ATTRIBUTES,
            protocols=['http', 'https', 'mailto'],
            strip=True,
            strip_comments=True,
        ).strip()

    @staticmethod
    def normalize_email(email: Optional[str]) -> str:
        """Trim and lowercase; returns "" when the address is not well formed"""
        if not isinstance(email, str):
            return ""

        email = email.strip().lower()
        if not InputSanitizer.EMAIL_PATTERN.match(email):
            return ""
        return email

    @staticmethod
    def sanitize_url(url: Optional[str]) -> str:
        """Trimmed http(s) URL, or "" for anything else"""
        if not isinstance(url, str):
            return ""

        url = url.strip()
        if not url.startswith(('http://', 'https://')):
            return ""
        return url

