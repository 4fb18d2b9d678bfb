"""Data room module -- folder templates, document storage, review, and health."""
