from __future__ import annotations

import re

MIN_TEXT_LENGTH = 3
MAX_TEXT_LENGTH = 10_000


def api_endpoint_from_url(url: str) -> str:
    """
    Extract the API endpoint from a URL.

    Args:
        url (str): The URL to extract the API endpoint from.

    Returns:
        str: The API endpoint.
    """
    match = re.search(r"^https?://[^/]+/v\d+/(.+)$", url)
    if match is None:
        # Try for Azure OpenAI deployment urls
        match = re.search(r"^https://[^/]+/openai/deployments/[^/]+/(.+?)(\?|$)", url)
    if match is None:
        raise ValueError(f"Could not extract API endpoint from URL: {url}")
    return match[1]


def validate_text(text: str | None) -> str:
    """
    Check that text is suitable for enhancement and return it trimmed.

    Args:
        text (str | None): Text selected by the user

    Returns:
        str: The trimmed text

    Raises:
        ValueError: If the text is empty, shorter than 3 or longer than 10,000 characters
    """
    trimmed = (text or "").strip()
    if not trimmed:
        raise ValueError("Selected text is empty or contains only whitespace.")
    if len(trimmed) > MAX_TEXT_LENGTH:
        raise ValueError(
            "Selected text is too long. Please select less than 10,000 characters."
        )
    if len(trimmed) < MIN_TEXT_LENGTH:
        raise ValueError("Selected text is too short. Please select at least 3 characters.")
    return trimmed


def preview_text(text: str, max_length: int = 50) -> str:
    """Single-line preview of ``text``, truncated with "..." past ``max_length``."""
    single_line = " ".join(text.split())
    if len(single_line) <= max_length:
        return single_line
    return single_line[: max(0, max_length - 3)].rstrip() + "..."
