"""User profiles -- identity, role, and partner team membership.

The profiles table is the source of truth for roles used by admin gates,
partner permission resolution, and invitation flows.
"""
