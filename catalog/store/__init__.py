"""
Entity store.

Responsibilities:
- Hold Dish, Restaurant, Review and User documents.
- Offer atomic conditional single-document writes.
- Enforce (partial) unique indexes as the final guard against races.
"""
