"""Ledger domain services: access control, invites, the event log and stats.

HTTP routes, socket handlers and the session orchestrator import from here,
keeping transport concerns separated from the ledger rules.
"""
