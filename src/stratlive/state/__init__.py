"""Client-side state reconciliation.

This package decides which engine updates reach the presented state and
when, and tracks how trustworthy the feed currently is.
"""
