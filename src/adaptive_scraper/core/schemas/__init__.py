"""Pydantic schemas for request/response validation.

Sub-modules:
    scraping: FetchOptions, extraction profiles, ScrapeResult, BatchReport
"""

from __future__ import annotations
