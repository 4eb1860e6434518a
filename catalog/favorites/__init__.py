"""
User favorites.

Responsibilities:
- Keep durable (dish, added_at) edges on the user document.
- Hide edges that point at inactive dishes from listings and counts.
"""
