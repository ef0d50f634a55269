"""Lifeline services.

- Crisis Engine: assessment, intervention planning and dispatch
- Audit Service: hash-chained audit trail of assessment outcomes
"""
