"""Command-line tools for the Complyx knowledge base.

- ``python -m complyx.cli`` -- ingest files and URLs, manage RSS feeds,
  search, and show statistics.
"""
