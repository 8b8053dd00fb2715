"""
Tests for authentication app.

This package contains test modules for:
- test_managers.py: UserManager and the is_admin flag
- factories.py: UserFactory shared with the chat tests

Usage:
    pytest authentication/tests/
"""
