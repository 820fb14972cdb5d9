"""
Candidate Portal - backend for a candidate-application portal.

Accepts applications with a PDF resume and an introduction video,
validates them, stores the files as blobs and the metadata as a record,
and streams the files back on request.

This package contains the complete application:
- core: Framework-agnostic submission logic
- infrastructure: External service integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
