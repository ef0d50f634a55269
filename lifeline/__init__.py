"""Lifeline crisis risk assessment and intervention dispatch."""
