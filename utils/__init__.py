"""
Utilities package for shared helper functions.
"""

from utils.keywords import extract_query_keywords, extract_content_keywords

__all__ = ['extract_query_keywords', 'extract_content_keywords']
