"""Shared models, utilities and database access for Lifeline services."""
