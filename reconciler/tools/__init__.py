"""
Reconciler Tools

Tool implementations organized by function.

Tool set:
1. cleanup_storage - Remove records that reference deleted members
2. delete_member - Cascade-delete one member
3. refresh_profiles - One batch of the profile refresh sweep
"""

from reconciler.tools.maintenance import cleanup_storage, delete_member, refresh_profiles

__all__ = [
    "cleanup_storage",
    "delete_member",
    "refresh_profiles",
]
