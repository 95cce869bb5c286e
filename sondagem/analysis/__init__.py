"""
Analysis module for the sondagem tracker.

Provides phase taxonomies and normalization, predominant-phase resolution,
assessment reconciliation, cohort statistics and the LLM classification
oracle.
"""
