"""Application wiring — build_services puts a working queue and engine on app.state."""

from fastapi import FastAPI

from leaveflow.config import Settings
from leaveflow.infrastructure.mail_sender import LoggingSender
from leaveflow.main import build_services
from leaveflow.services.delivery_queue import DeliveryQueue
from leaveflow.services.leave_lifecycle import LeaveLifecycleEngine


async def test_build_services_wires_app_state(db_manager):
    app = FastAPI()
    settings = Settings(
        _env_file=None, smtp_host=None,
        delivery_queue_capacity=7, low_balance_threshold=4,
    )

    queue = build_services(app, settings, db_manager.session)

    assert app.state.delivery_queue is queue
    assert isinstance(queue, DeliveryQueue)
    assert queue.capacity == 7
    assert isinstance(queue._dispatcher._sender, LoggingSender)
    engine = app.state.lifecycle_engine
    assert isinstance(engine, LeaveLifecycleEngine)
    assert engine.low_balance_threshold == 4

    await queue.start(1)
    assert queue.is_running()
    await queue.stop(timeout=5)
