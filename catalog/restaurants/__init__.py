"""
Restaurant catalog.

Responsibilities:
- Restaurant CRUD with soft-delete / restore.
- Write-time integrity check for restaurant -> dish assignments.
- Proximity search ("restaurants near a point") composed with ordinary filters.
"""
