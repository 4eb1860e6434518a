"""
Dish catalog.

Responsibilities:
- Create, list and look up dishes with soft-delete visibility applied.
- Guarded soft-delete / restore transitions for admins.
- Append-only edit history with revert-to-version.
"""
