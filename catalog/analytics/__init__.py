"""
Operator-facing analytics.

Responsibilities:
- Record operational events such as abandoned rating recomputes.
- Build the admin dashboard overview from the entity store.
"""
