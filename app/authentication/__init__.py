"""
Authentication application.

Holds the User model that conversations, messages and reports point at.
Accounts are issued by the identity service; this service verifies the
JWTs it signs (see SIMPLE_JWT in settings) and resolves ``user_id`` claims
to rows here.

Usage:
    from authentication.models import User
"""
