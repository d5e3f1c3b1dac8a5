"""PayEngine — central engine client owning all services."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from sbtc_pay.cache.client import CacheClient
    from sbtc_pay.cache.locks import LockManager
    from sbtc_pay.config.settings import AppConfig
    from sbtc_pay.datastore.client import Datastore
    from sbtc_pay.engine.repository.merchants import MerchantRepository
    from sbtc_pay.engine.repository.payments import PaymentRepository
    from sbtc_pay.engine.repository.webhooks import WebhookRepository
    from sbtc_pay.engine.services.endpoints import WebhookAdminService
    from sbtc_pay.engine.services.matcher import TransactionMatcher
    from sbtc_pay.engine.services.receiver import ChainEventReceiver
    from sbtc_pay.engine.services.transition import PaymentTransitionService
    from sbtc_pay.metrics.collector import EngineMetrics
    from sbtc_pay.notifications.dispatcher import DeliveryDispatcher
    from sbtc_pay.notifications.fanout import WebhookFanOut
    from sbtc_pay.notifications.webhook import DeliveryWorker
    from sbtc_pay.taskmanager.manager import TaskManager

logger = logging.getLogger(__name__)

_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class PayEngine:
    """Central engine that owns infrastructure, repositories and services.

    Wiring, in dependency order: datastore → cache → locks → repositories →
    dispatcher → delivery worker → fan-out → transition → matcher →
    receiver. The task manager runs the webhook recovery sweep.

    Usage::

        engine = PayEngine(config)
        await engine.initialize()
        result = await engine.receiver.handle(authorization, body)
        await engine.close()
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        metrics: EngineMetrics | None = None,
    ) -> None:
        """Initialize engine with configuration.

        Args:
            config: Application configuration.
            http_client: Client for outbound webhooks; one is created from
                the webhook config when omitted.
            metrics: Metrics to record into (the API app shares its registry);
                created on initialize when omitted and metrics are enabled.
        """
        self._config = config
        self._http_client = http_client
        self._initialized = False

        self._datastore: Datastore | None = None
        self._cache: CacheClient | None = None
        self._locks: LockManager | None = None

        self._payments: PaymentRepository | None = None
        self._merchants: MerchantRepository | None = None
        self._webhooks: WebhookRepository | None = None

        self._dispatcher: DeliveryDispatcher | None = None
        self._worker: DeliveryWorker | None = None
        self._fanout: WebhookFanOut | None = None
        self._transition: PaymentTransitionService | None = None
        self._matcher: TransactionMatcher | None = None
        self._receiver: ChainEventReceiver | None = None
        self._webhook_admin: WebhookAdminService | None = None

        self._task_manager: TaskManager | None = None
        self._metrics: EngineMetrics | None = metrics

    async def initialize(self) -> None:
        """Open the datastore and cache, build services and start cron jobs.

        Raises:
            RuntimeError: If already initialized.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        from sbtc_pay.cache.client import CacheClient
        from sbtc_pay.cache.locks import LockManager
        from sbtc_pay.datastore.client import Datastore
        from sbtc_pay.datastore.migrations import run_auto_migrate

        self._datastore = Datastore(self._config.db)
        await self._datastore.open()
        await run_auto_migrate(self._datastore.engine)

        self._cache = CacheClient(self._config.cache)
        await self._cache.connect()
        self._locks = LockManager(self._cache, ttl_seconds=self._config.cache.lock_ttl_seconds)

        from sbtc_pay.metrics.collector import EngineMetrics

        if self._metrics is None and self._config.metrics.enabled:
            self._metrics = EngineMetrics()

        from sbtc_pay.engine.repository import (
            MerchantRepository,
            PaymentRepository,
            WebhookRepository,
        )

        self._payments = PaymentRepository(self._datastore)
        self._merchants = MerchantRepository(self._datastore)
        self._webhooks = WebhookRepository(self._datastore)

        from sbtc_pay.notifications.dispatcher import DeliveryDispatcher
        from sbtc_pay.notifications.fanout import WebhookFanOut
        from sbtc_pay.notifications.webhook import DeliveryWorker

        self._dispatcher = DeliveryDispatcher()
        self._worker = DeliveryWorker(
            self._config.webhook,
            self._webhooks,
            self._merchants,
            self._locks,
            scheduler=self._dispatcher.schedule,
            metrics=self._metrics,
            client=self._http_client,
        )
        await self._worker.connect()
        self._dispatcher.bind(self._worker.deliver)
        self._fanout = WebhookFanOut(self._webhooks, self._merchants, self._dispatcher)

        from sbtc_pay.engine.services.endpoints import WebhookAdminService
        from sbtc_pay.engine.services.matcher import TransactionMatcher
        from sbtc_pay.engine.services.receiver import ChainEventReceiver
        from sbtc_pay.engine.services.transition import PaymentTransitionService

        self._transition = PaymentTransitionService(
            self._payments, self._locks, self._fanout, metrics=self._metrics
        )
        self._matcher = TransactionMatcher(
            self._payments, self._merchants, self._config.chainhook, metrics=self._metrics
        )
        self._receiver = ChainEventReceiver(
            self._config.chainhook, self._matcher, self._transition, metrics=self._metrics
        )
        self._webhook_admin = WebhookAdminService(self._webhooks, self._fanout, self._worker)

        from sbtc_pay.taskmanager.manager import CronJob, TaskManager
        from sbtc_pay.taskmanager.tasks import (
            CALCULATE_METRICS_JOB,
            REDELIVER_WEBHOOKS_JOB,
            task_calculate_metrics,
            task_redeliver_webhooks,
        )

        if self._config.task.enabled:
            self._task_manager = TaskManager(metrics=self._metrics)
            self._task_manager.register(
                REDELIVER_WEBHOOKS_JOB,
                CronJob(
                    handler=partial(task_redeliver_webhooks, self),
                    period=self._config.task.webhook_sweep_period,
                    run_on_start=True,
                ),
            )
            if self._metrics is not None:
                self._task_manager.register(
                    CALCULATE_METRICS_JOB,
                    CronJob(
                        handler=partial(task_calculate_metrics, self, self._metrics),
                        period=self._config.task.metrics_period,
                    ),
                )
            await self._task_manager.start()

        self._initialized = True
        logger.info("PayEngine initialized (db=%s)", self._config.db.engine)

    async def close(self) -> None:
        """Gracefully shut down all services and connections.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        # Cron jobs first: the sweep feeds the dispatcher
        if self._task_manager is not None:
            await self._task_manager.stop()
            self._task_manager = None

        if self._dispatcher is not None:
            await self._dispatcher.stop()
            self._dispatcher = None

        if self._worker is not None:
            await self._worker.close()
            self._worker = None

        self._receiver = None
        self._matcher = None
        self._transition = None
        self._fanout = None
        self._webhook_admin = None
        self._payments = None
        self._merchants = None
        self._webhooks = None
        self._locks = None

        if self._cache is not None:
            await self._cache.close()
            self._cache = None

        if self._datastore is not None:
            await self._datastore.close()
            self._datastore = None

        self._initialized = False
        logger.info("PayEngine closed")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def datastore(self) -> Datastore:
        """Get the datastore instance.

        Raises:
            RuntimeError: If engine not initialized.
        """
        if self._datastore is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._datastore

    @property
    def cache(self) -> CacheClient:
        if self._cache is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._cache

    @property
    def locks(self) -> LockManager:
        if self._locks is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._locks

    @property
    def payments(self) -> PaymentRepository:
        if self._payments is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._payments

    @property
    def merchants(self) -> MerchantRepository:
        if self._merchants is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._merchants

    @property
    def webhooks(self) -> WebhookRepository:
        if self._webhooks is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._webhooks

    @property
    def dispatcher(self) -> DeliveryDispatcher:
        if self._dispatcher is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._dispatcher

    @property
    def delivery_worker(self) -> DeliveryWorker:
        if self._worker is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._worker

    @property
    def fanout(self) -> WebhookFanOut:
        if self._fanout is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._fanout

    @property
    def transition(self) -> PaymentTransitionService:
        if self._transition is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._transition

    @property
    def matcher(self) -> TransactionMatcher:
        if self._matcher is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._matcher

    @property
    def receiver(self) -> ChainEventReceiver:
        """Get the chain event receiver (chainhook intake)."""
        if self._receiver is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._receiver

    @property
    def webhook_admin(self) -> WebhookAdminService:
        if self._webhook_admin is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._webhook_admin

    @property
    def metrics(self) -> EngineMetrics | None:
        """Get the engine metrics (None if disabled or not initialized)."""
        return self._metrics

    @property
    def task_manager(self) -> TaskManager | None:
        """Get the task manager (None if not enabled)."""
        return self._task_manager

    async def health_check(self) -> dict[str, str]:
        """Check health status of engine components.

        Returns:
            Dictionary with component statuses ('ok', 'error', 'not_initialized').
        """
        status = {
            "engine": "ok" if self._initialized else "not_initialized",
            "datastore": "unknown",
            "cache": "unknown",
            "tasks": "unknown",
        }
        if not self._initialized:
            return status

        status["datastore"] = "ok" if self._datastore and self._datastore.is_open else "error"
        status["cache"] = "ok" if self._cache and self._cache.is_connected else "error"
        if self._task_manager is None:
            status["tasks"] = "disabled"
        else:
            status["tasks"] = "ok" if self._task_manager.is_running else "error"
        return status
