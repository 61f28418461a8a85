"""Bring external skill folders into the repository."""
