"""Refresh jobs that rebuild the published snapshots."""
