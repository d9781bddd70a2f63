"""
SLA Infrastructure Layer
=========================

- External: config watcher, Slack client, job scheduler
"""

from momentum.sla.infrastructure.external import (
    BreachNotice,
    CircuitBreaker,
    CircuitState,
    JobScheduler,
    SLAConfigManager,
    SlackClient,
    get_config_manager,
    get_sla_config,
)

__all__ = [
    "BreachNotice",
    "CircuitBreaker",
    "CircuitState",
    "JobScheduler",
    "SLAConfigManager",
    "SlackClient",
    "get_config_manager",
    "get_sla_config",
]
