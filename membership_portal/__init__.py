"""
Membership-gated content portal.

Serves articles and videos through a Flask API and rations content detail
views with a per-user daily quota keyed to the user's membership tier.
"""

__version__ = "0.1.0"
