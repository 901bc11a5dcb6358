"""Starlette middleware: request ids, security headers, rate limiting, authentication."""
