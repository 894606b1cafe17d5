"""Utility functions for the tab organizer."""
from .text_utils import clean_text, excerpt
from .fingerprint import exact_key, domain_key, extract_domain, path_pattern

__all__ = [
    "clean_text",
    "excerpt",
    "exact_key",
    "domain_key",
    "extract_domain",
    "path_pattern",
]
