"""Backend package: DB models, pipelines, network analysis, API.

This package owns the CRM tables, the referral and relationship scoring
pipelines and the in-memory contact graph analysis served over HTTP.
"""
