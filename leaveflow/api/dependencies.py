"""Request-scoped accessors for services built in the lifespan."""

from fastapi import Request

from leaveflow.core.errors import QueueNotRunningError
from leaveflow.services.delivery_queue import DeliveryQueue


def get_delivery_queue(request: Request) -> DeliveryQueue:
    queue = getattr(request.app.state, "delivery_queue", None)
    if queue is None:
        raise QueueNotRunningError()
    return queue
