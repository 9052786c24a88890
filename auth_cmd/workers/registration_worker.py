# auth_cmd/workers/registration_worker.py
# =============================================================================
# File: auth_cmd/workers/registration_worker.py
# Description: Registration worker process
# =============================================================================

"""
Registration Worker

Consumes two topics:
- registration intents (events) -> VersionResolver -> version query
- event store responses -> QueryCorrelator -> registered user + outcome

Each topic has one reader task that pulls messages in arrival order and
hands every message to its own task through a bulkhead. When the bulkhead is
full the reader waits, so consumption slows down instead of piling up tasks.

Infrastructure faults (a consumer loop dying, a publish failing) resolve the
worker's fault future and stop the process with a non-zero status. Failed
registrations are outcomes, not faults.
"""

import asyncio
import logging
import os
import signal
import sys
from typing import Callable, List, Optional

from dotenv import load_dotenv

from auth_cmd.common.enums.enums import AggregateKind
from auth_cmd.config.logging_config import (
    log_error_box,
    log_status_update,
    log_worker_banner,
    setup_logging,
)
from auth_cmd.config.reliability_config import BulkheadConfig
from auth_cmd.config.worker_config import WorkerConfig
from auth_cmd.core.startup.bootstrap import Dependencies, bootstrap
from auth_cmd.infra.event_bus.dispatcher import AggregateDispatcher
from auth_cmd.infra.event_bus.messages import Event, KafkaResponse
from auth_cmd.infra.event_bus.transport_adapter import ConsumerIO
from auth_cmd.infra.reliability.bulkhead import Bulkhead
from auth_cmd.user_account.query_correlator import QueryCorrelator
from auth_cmd.user_account.responses import QueryEmitter, ResponseEmitter
from auth_cmd.user_account.version_resolver import VersionResolver

log = logging.getLogger("authcmd.worker.registration")


class WorkerFault(Exception):
    """Raised when a runtime infrastructure fault stops the worker"""
    pass


# =============================================================================
# TOPIC READER
# =============================================================================

class TopicReader:
    """Drains one consumer in order and runs every message in its own bulkhead slot."""

    def __init__(
            self,
            consumer: ConsumerIO,
            dispatcher: AggregateDispatcher,
            bulkhead: Bulkhead,
            on_fault: Callable[[BaseException], None],
    ):
        self.consumer = consumer
        self.dispatcher = dispatcher
        self.bulkhead = bulkhead
        self._on_fault = on_fault
        self.messages_read = 0

    @property
    def topic(self) -> str:
        return self.consumer.topic

    async def run(self) -> None:
        async for msg in self.consumer.messages():
            self.messages_read += 1
            task = await self.bulkhead.submit(
                self.dispatcher.dispatch,
                msg,
                name=f"{msg.topic}[{msg.partition}]@{msg.offset}",
            )
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._on_fault(error)


# =============================================================================
# WORKER
# =============================================================================

class RegistrationWorker:

    def __init__(self, deps: Dependencies):
        self.deps = deps
        settings = deps.settings

        self.instance_id = settings.worker.get_instance_id()
        self._shutdown_timeout_s = settings.worker.shutdown_timeout_s

        responses = ResponseEmitter(deps.response_producer)
        queries = QueryEmitter(deps.query_producer)

        self.resolver = VersionResolver(
            deps.db,
            deps.event_consumer,
            queries,
            responses,
            year_bucket=settings.event_store.resolve_year_bucket(),
        )
        self.correlator = QueryCorrelator(deps.db, deps.response_consumer, responses)

        event_dispatcher = AggregateDispatcher(Event, deps.event_consumer)
        event_dispatcher.register(AggregateKind.USER, self.resolver.handle)

        response_dispatcher = AggregateDispatcher(KafkaResponse, deps.response_consumer)
        response_dispatcher.register(AggregateKind.USER, self.correlator.handle)

        max_in_flight = settings.worker.max_in_flight
        self.readers: List[TopicReader] = [
            TopicReader(
                deps.event_consumer,
                event_dispatcher,
                Bulkhead(BulkheadConfig(name="events", max_concurrent=max_in_flight)),
                self.report_fault,
            ),
            TopicReader(
                deps.response_consumer,
                response_dispatcher,
                Bulkhead(BulkheadConfig(name="event_query", max_concurrent=max_in_flight)),
                self.report_fault,
            ),
        ]

        self._reader_tasks: List[asyncio.Task] = []
        self._error_tasks: List[asyncio.Task] = []
        self._fault: Optional[asyncio.Future] = None
        self._shutdown_event = asyncio.Event()
        self._signal_count = 0
        self._expedite = False
        self._running = False

    # -------------------------------------------------------------------------
    # Faults
    # -------------------------------------------------------------------------

    def report_fault(self, error: BaseException) -> None:
        """Record the first runtime infrastructure fault; later ones are only logged."""
        log.error(f"Runtime fault: {error!r}")
        if self._fault is not None and not self._fault.done():
            self._fault.set_result(error)

    @property
    def fault(self) -> Optional[BaseException]:
        if self._fault is not None and self._fault.done():
            return self._fault.result()
        return None

    def _on_reader_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.report_fault(error)
        elif self._running:
            self.report_fault(WorkerFault(f"Reader '{task.get_name()}' stopped unexpectedly"))

    async def _drain_errors(self, source: str, errors) -> None:
        async for error in errors:
            log.warning(f"{source} error: {error}")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._fault = loop.create_future()
        self._running = True

        for reader in self.readers:
            task = asyncio.create_task(reader.run(), name=f"reader-{reader.topic}")
            task.add_done_callback(self._on_reader_done)
            self._reader_tasks.append(task)

        sources = [
            (f"consumer '{self.deps.event_consumer.topic}'", self.deps.event_consumer.errors()),
            (f"consumer '{self.deps.response_consumer.topic}'", self.deps.response_consumer.errors()),
            (f"producer '{self.deps.query_producer.topic}'", self.deps.query_producer.errors()),
            (f"producer '{self.deps.response_producer.topic}'", self.deps.response_producer.errors()),
        ]
        for source, errors in sources:
            self._error_tasks.append(asyncio.create_task(self._drain_errors(source, errors)))

        log.info(f"Worker {self.instance_id} consuming {', '.join(r.topic for r in self.readers)}")

    async def run(self) -> int:
        """
        Run until a shutdown signal or a runtime fault.

        Returns:
            Process exit status: 0 after a requested shutdown, 1 after a fault
        """
        if not self._running:
            self.start()

        shutdown_waiter = asyncio.create_task(self._shutdown_event.wait())
        try:
            await asyncio.wait({shutdown_waiter, self._fault}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            shutdown_waiter.cancel()

        fault = self.fault
        if fault is not None:
            log_error_box(log, str(fault), error_type="Fatal Error")
            return 1
        return 0

    def handle_signal(self, sig, frame=None) -> None:
        """
        Handle system signals with multi-level support.

        1st signal: Graceful shutdown
        2nd signal: Expedite shutdown (in-flight messages are cancelled)
        3rd+ signal: Force exit
        """
        self._signal_count += 1
        signal_name = signal.Signals(sig).name

        log.warning(f"Received signal {signal_name} (count: {self._signal_count})")

        if self._signal_count == 1:
            log.warning("Initiating graceful shutdown...")
            self._shutdown_event.set()
        elif self._signal_count == 2:
            log.warning("Second signal received - expediting shutdown")
            self._expedite = True
            self._shutdown_event.set()
        else:
            log.error("Multiple signals received - forcing immediate exit")
            os._exit(1)

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def stop(self) -> None:
        """Stop reading, finish (or cancel) in-flight messages, then close dependencies."""
        if not self._running:
            return
        self._running = False
        log.info(f"Stopping worker {self.instance_id}")

        for task in self._reader_tasks:
            task.cancel()
        await asyncio.gather(*self._reader_tasks, return_exceptions=True)

        for reader in self.readers:
            if self._expedite or self.fault is not None:
                await reader.bulkhead.cancel_all()
            elif not await reader.bulkhead.drain(timeout=self._shutdown_timeout_s):
                await reader.bulkhead.cancel_all()

        # Consumers commit their marked offsets on close
        await self.deps.close()

        for task in self._error_tasks:
            task.cancel()
        await asyncio.gather(*self._error_tasks, return_exceptions=True)

        log_status_update(log, "Worker Stopped", {
            reader.topic: f"{reader.messages_read} read, {reader.dispatcher.dispatched} handled"
            for reader in self.readers
        })


# =============================================================================
# Main Entry Point
# =============================================================================

async def run_worker() -> int:
    """Bootstrap dependencies and run the registration worker until shutdown or fault."""
    log_worker_banner(
        logger=log,
        worker_name="Registration Worker",
        instance_id=WorkerConfig().get_instance_id(),
    )

    report, deps = await bootstrap()
    if deps is None:
        failures = "\n".join(f"{r.name}: {r.error}" for r in report.fatal_failures)
        log_error_box(log, failures, error_type="Startup Failed")
        return 1

    worker = RegistrationWorker(deps)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.handle_signal, sig)

    log_status_update(log, "Worker Ready", report.summary())

    exit_code = 1
    try:
        worker.start()
        exit_code = await worker.run()
    finally:
        try:
            await asyncio.wait_for(worker.stop(), timeout=deps.settings.worker.shutdown_timeout_s + 10)
            log.info("Graceful shutdown completed")
        except asyncio.TimeoutError:
            log.error("Graceful shutdown timed out")
            exit_code = 1
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    log.info("Worker shutdown complete")
    return exit_code


def main():
    """Main entry point"""
    # Variables already set in the environment take precedence over .env
    load_dotenv()

    setup_logging(
        service_name="worker.registration",
        log_file=os.getenv("WORKER_LOG_FILE"),
    )

    try:
        exit_code = asyncio.run(run_worker())
    except KeyboardInterrupt:
        print("\nWorker interrupted")
        exit_code = 0
    except Exception as e:
        print(f"Worker crashed: {e}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()

# =============================================================================
# EOF
# =============================================================================
