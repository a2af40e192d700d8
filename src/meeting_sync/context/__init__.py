"""Reference-data context for meeting processing.

ContextCache loads contacts, active projects, coaches, and the fixed partner
roster from the document tree and serves TTL-cached snapshots.
"""
