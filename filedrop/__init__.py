"""
filedrop - a password-gated media file dashboard backed by Cloudflare R2.

This package contains the complete application:
- core: Framework-agnostic session and file logic
- infrastructure: Object storage integration
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
