"""
Projection Infrastructure
=========================

In-memory and SQLAlchemy stores for checkpoints and read models.
"""
