"""Process-wide state of the upkg logging system."""

import queue
import threading
from dataclasses import dataclass, field
from logging.handlers import QueueListener


@dataclass
class LoggerState:
    """Whether ``upkg`` has handlers, and the queue feeding them."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    root_initialized: bool = False
    config_applied: bool = False
    queue_listener: QueueListener | None = None
    log_queue: queue.Queue | None = None


_state = LoggerState()


def get_state() -> LoggerState:
    return _state
