"""Invitations module -- staff, partner, and investor invitations."""
