"""
Reconciler - referential integrity maintenance for a schema-less member store.

Finds and removes records that point at deleted members, cascades member
deletes across dependent collections, and refreshes derived member profiles.
"""

__version__ = "1.0.0"
