"""
cooprun: cooperative tasks and channels on asyncio.

Components:
- tasks/: TaskRunner scopes, Task handles, cooperative CancellationToken
- channels/: Channel, BroadcastChannel, produce()/merge() helpers
- flow.py: cold asynchronous streams
- core/: error taxonomy and port Protocols
- config.py / logging_setup.py: env-driven settings and logging
"""

from .channels.broadcast import BroadcastChannel
from .channels.builders import merge, produce
from .channels.channel import UNLIMITED, Channel
from .core.errors import (
    CancellationFailure,
    ClosedChannelFailure,
    ClosedReceiveChannelFailure,
    ClosedSendChannelFailure,
    CoopRunError,
    TimeoutFailure,
)
from .flow import Flow, as_flow, flow, flow_of
from .tasks.cancel import CancellationToken
from .tasks.task_models import TaskState
from .tasks.task_runner import Task, TaskRunner, delay, run_blocking

__all__ = [
    "UNLIMITED",
    "BroadcastChannel",
    "CancellationFailure",
    "CancellationToken",
    "Channel",
    "ClosedChannelFailure",
    "ClosedReceiveChannelFailure",
    "ClosedSendChannelFailure",
    "CoopRunError",
    "Flow",
    "Task",
    "TaskRunner",
    "TaskState",
    "TimeoutFailure",
    "as_flow",
    "delay",
    "flow",
    "flow_of",
    "merge",
    "produce",
    "run_blocking",
]
