"""
SLA Module
==========

Bounded context for SLA configuration and the shared SLA arithmetic used by
the lifecycle and support contexts.

Responsibilities:
- Severity targets and stage catalog (YAML, hot reload)
- Stage and support case clock computations
- Breach notifications to Slack
- Background job scheduling
"""
