"""
Reviews and rating aggregation.

Responsibilities:
- Create, edit, soft-delete and hard-delete reviews (one per user and target).
- List visible reviews for a dish or restaurant.
- Recompute average rating and review count after every review mutation.
"""
