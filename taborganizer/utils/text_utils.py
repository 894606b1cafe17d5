"""Text processing utilities."""


def clean_text(text: str, max_chars: int) -> str:
    """Collapse whitespace and cut to max_chars."""
    return " ".join((text or "").split())[:max_chars]


def excerpt(text: str, max_chars: int) -> str:
    """Bounded prefix of page content sent along with a request."""
    return (text or "")[:max_chars]
