"""Authentication — password login and stateless bearer tokens.

Learn: Two halves:
1. Login time (strict): username/password → JWT access + refresh tokens.
   Every failure is surfaced to the caller with a distinct message.
2. Request time (lenient): the authentication middleware verifies the
   bearer token and publishes a per-request AuthContext. Bad or missing
   tokens degrade to an anonymous request; routes that need an identity
   say so explicitly with ``require_principal``.
"""
