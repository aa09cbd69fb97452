"""Reconciliation services for window-state-daemon."""
