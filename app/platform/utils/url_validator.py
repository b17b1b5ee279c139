from typing import Tuple
from urllib.parse import urlparse


def validate_absolute_url(url: str) -> Tuple[bool, str, str]:
    """
    Check that ``url`` is a well-formed absolute http(s) URL.

    Unlike a scan form there is no scheme guessing here: a task is audited
    against exactly the URL the caller submitted.

    Returns (is_valid, stripped_url, error_message).
    """
    if not url or not url.strip():
        return False, "", "URL cannot be empty"

    url = url.strip()

    try:
        parsed = urlparse(url)
    except ValueError as e:
        return False, url, f"URL parsing error: {str(e)}"

    if not parsed.scheme:
        return False, url, "Invalid URL format: missing scheme"

    if parsed.scheme not in ["http", "https"]:
        return False, url, f"Invalid URL scheme: {parsed.scheme} (must be http or https)"

    if not parsed.netloc or not parsed.hostname:
        return False, url, "Invalid URL format: missing domain"

    try:
        parsed.port
    except ValueError as e:
        return False, url, f"Invalid URL port: {str(e)}"

    return True, url, ""
