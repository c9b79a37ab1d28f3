"""Append-only audit trail: every operation attempt, allowed or not."""
