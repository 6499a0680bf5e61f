"""Read-only accessors over published snapshots."""
