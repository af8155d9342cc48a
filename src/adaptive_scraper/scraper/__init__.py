"""Adaptive fetch-and-extract pipeline.

Fetches pages with a plain HTTP GET, escalates to a headless browser when the
response looks like a bot challenge, and extracts structured content from the
resulting HTML.

Sub-modules:
- ``config``             : constants (headers, challenge markers, browser flags)
- ``urls``               : URL validation, normalization and resolution
- ``http_fetcher``       : async httpx-based static fetcher
- ``block_detector``     : decides whether a static response must escalate
- ``browser_session``    : shared Chromium process with per-operation pages
- ``playwright_fetcher`` : rendered fetch and screenshots through the session
- ``content_extractor``  : BeautifulSoup-based fixed and selector extraction
- ``orchestrator``       : static → (escalation) → rendered state machine
- ``batch``              : per-URL isolated batch runner
- ``service``            : ``ScraperService`` facade used by host applications
"""
