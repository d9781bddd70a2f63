"""
Lifecycle Bounded Context
=========================

CompanyProduct pipeline projections: current stage, stage SLA and stage
duration facts.
"""
