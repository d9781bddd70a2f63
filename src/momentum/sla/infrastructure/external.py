"""
SLA External Service Integrations
==================================

- YAML config file watcher (watchdog) with thread-safe hot reload
- Slack webhook notifications for SLA breaches (httpx, retry, circuit breaker)
- APScheduler wrapper that runs the SLA scan and projector catch-up jobs
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from momentum.config import settings
from momentum.core.exceptions import ConfigurationException
from momentum.shared.infrastructure.logging import get_logger
from momentum.sla.domain import SLAConfig

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA config file changes."""

    def __init__(self, config_manager: "SLAConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info("SLA config file changed", extra={"path": str(event.src_path)})
            self.config_manager.reload()


class SLAConfigManager:
    """
    Thread-safe SLA configuration manager with hot-reload support.

    Uses watchdog to monitor the YAML file; a failed reload keeps the
    previous configuration.
    """

    def __init__(self):
        self._config: Optional[SLAConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAConfig:
        """
        Initial configuration load.

        Raises:
            ConfigurationException: If the file exists but is invalid
        """
        self._path = Path(path)
        config = self._load_from_file(self._path)
        with self._lock:
            self._config = config
        return config

    def _load_from_file(self, path: Path) -> SLAConfig:
        if not path.exists():
            logger.warning("SLA config file not found, using defaults", extra={"path": str(path)})
            return SLAConfig()

        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationException(f"Invalid SLA config YAML: {e}", {"path": str(path)})

        try:
            return SLAConfig(**data)
        except ValidationError as e:
            raise ConfigurationException(f"Invalid SLA config: {e}", {"path": str(path)})

    def reload(self) -> bool:
        """Reload configuration from file; keep the old one on failure."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except ConfigurationException as e:
            logger.error("Failed to reload SLA config", extra={"error": e.message})
            return False

        with self._lock:
            self._config = new_config
        logger.info("SLA configuration reloaded", extra={"stages": len(new_config.stages)})
        return True

    def start_watching(self) -> None:
        """Start watching the configuration file (no-op when it does not exist)."""
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "Config file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.parent), recursive=False)
            self._observer.start()
            logger.info("Started watching SLA config file", extra={"path": str(self._path)})
        except OSError as e:
            # inotify unavailable (some containers)
            logger.warning("File watching not available, using static config", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching configuration file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def config(self) -> SLAConfig:
        with self._lock:
            if self._config is None:
                raise RuntimeError("SLA configuration not loaded")
            return self._config


_config_manager: Optional[SLAConfigManager] = None


def get_config_manager() -> SLAConfigManager:
    """Process-wide config manager, loaded lazily from settings.sla_config_path."""
    global _config_manager
    if _config_manager is None:
        _config_manager = SLAConfigManager()
        _config_manager.load(settings.sla_config_path)
    return _config_manager


def get_sla_config() -> SLAConfig:
    return get_config_manager().config


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


@dataclass
class BreachNotice:
    """An SLA breach worth telling a human about."""
    aggregate_type: str
    aggregate_id: str
    subject: str
    clock: str
    target: str
    actual: str
    over_by: str
    detected_at: str


class SlackClient:
    """
    Slack webhook client with circuit breaker and retry logic.

    - Circuit breaker to prevent cascade failures
    - Exponential backoff retry
    - Timeout handling
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_base_delay: float = 1.0,
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self._channel = channel or settings.slack_channel
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = http_client
        self._retry_base_delay = retry_base_delay

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=settings.slack_timeout_seconds)
        return self._http_client

    def build_message(self, notice: BreachNotice) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"SLA breached: {notice.subject}", "emoji": True}
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*{notice.aggregate_type}:*\n{notice.aggregate_id}"},
                    {"type": "mrkdwn", "text": f"*Clock:*\n{notice.clock}"},
                    {"type": "mrkdwn", "text": f"*Target:*\n{notice.target}"},
                    {"type": "mrkdwn", "text": f"*Actual:*\n{notice.actual}"},
                    {"type": "mrkdwn", "text": f"*Over by:*\n{notice.over_by}"},
                ]
            },
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Detected: {notice.detected_at}"}]
            }
        ]
        return {"channel": self._channel, "blocks": blocks}

    async def send_breach(self, notice: BreachNotice, max_retries: int = 3) -> bool:
        """
        Send a breach notice to the Slack webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._webhook_url:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"aggregate_id": notice.aggregate_id}
            )
            return False

        message = self.build_message(notice)

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)
                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack notification sent",
                        extra={"aggregate_id": notice.aggregate_id, "clock": notice.clock}
                    )
                    return True
                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Slack notification failed",
                    extra={"error": str(e), "attempt": attempt + 1, "aggregate_id": notice.aggregate_id}
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(self._retry_base_delay * (2 ** attempt))

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


JobFunc = Callable[[], Awaitable[Any]]


class JobScheduler:
    """
    Wrapper around APScheduler's AsyncIOScheduler.

    Each job runs with max_instances=1 so a slow run is never overlapped by
    the next tick.
    """

    def __init__(self):
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._jobs: List[Dict[str, Any]] = []
        self._running = False

    def add_interval_job(self, job_id: str, func: JobFunc, seconds: int, name: Optional[str] = None) -> None:
        self._jobs.append({"id": job_id, "func": func, "seconds": seconds, "name": name or job_id})

    async def start(self) -> None:
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        for job in self._jobs:
            self._scheduler.add_job(
                job["func"],
                "interval",
                seconds=job["seconds"],
                id=job["id"],
                name=job["name"],
                misfire_grace_time=60,
                max_instances=1,
                replace_existing=True
            )

        self._scheduler.start()
        self._running = True
        logger.info("Scheduler started", extra={"jobs": [j["id"] for j in self._jobs]})

    async def stop(self) -> None:
        if not self._running:
            return
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def job_ids(self) -> List[str]:
        return [j["id"] for j in self._jobs]
