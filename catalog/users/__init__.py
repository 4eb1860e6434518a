"""
User accounts, as managed by admins.

Responsibilities:
- Create, list, inspect and edit accounts (name, email, password, role).
- Lock and unlock accounts; locked accounts cannot log in or use a session.
- Soft-delete and restore accounts with the same guards as dishes and restaurants.
"""
