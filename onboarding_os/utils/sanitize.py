"""
Plain-text sanitization for provider-authored flow content.

Flow names, step titles, descriptions and contract bodies are rendered in
the client portal, so markup is stripped before they are stored.
"""

from typing import Optional

import bleach


def sanitize_plain_text(content: Optional[str]) -> str:
    """
    Strip ALL HTML tags for plain text fields.

    Args:
        content: Raw content from the provider

    Returns:
        Plain text with all HTML removed
    """
    if not content:
        return ""

    cleaned = bleach.clean(content, tags=[], strip=True)

    return cleaned.strip()
