# src/cooprun/tasks/task_runner.py

"""
Cooperative task runner.

A TaskRunner is a scope on the running asyncio event loop:
- launch()/async_() schedule work and return a Task handle immediately,
- work starts at the caller's next suspension point, never synchronously,
- cancellation is cooperative (token flag + asyncio cancellation delivered at
  the next await),
- leaving `async with TaskRunner()` joins everything launched inside it.

All tasks share one event loop thread, so side effects of two tasks on shared
state can only interleave where one of them awaits.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar, cast

from ..config import get_settings
from ..core.errors import CancellationFailure, CoopRunError, TimeoutFailure
from ..core.ports import Token
from .cancel import CancellationToken
from .task_models import TaskState, can_transition

logger = logging.getLogger(__name__)

T = TypeVar("T")

# A coroutine function taking no arguments or the task token, or a coroutine object.
Work = Callable[..., Awaitable[T]] | Awaitable[T]

_task_ids = itertools.count(1)

# The Task whose work is executing in the current asyncio context.
_current_task: contextvars.ContextVar[Task[Any] | None] = contextvars.ContextVar(
    "cooprun_current_task", default=None
)


def _start_work(work: Work[T], token: CancellationToken) -> Awaitable[T]:
    """
    Turn `work` into an awaitable.

    Accepted shapes:
    - an awaitable (coroutine object) -> awaited as is
    - a callable with no parameters -> work()
    - a callable with one or more parameters -> work(token)
    """
    if inspect.isawaitable(work):
        return work

    try:
        nparams = len(inspect.signature(work).parameters)
    except (TypeError, ValueError):
        nparams = 1

    if nparams >= 1:
        aw = work(token)
    else:
        aw = work()

    if not inspect.isawaitable(aw):
        raise TypeError(f"work must return an awaitable, got {type(aw).__name__}")
    return aw


async def delay(seconds: float, token: Token | None = None) -> None:
    """Suspension point: sleep, checking the token before and after."""
    if token is not None:
        token.ensure_active()
    await asyncio.sleep(max(0.0, float(seconds)))
    if token is not None:
        token.ensure_active()


class Task(Generic[T]):
    """
    Handle to a unit of cooperative work.

    State moves CREATED -> RUNNING -> COMPLETED | CANCELLED | FAILED, and
    reaches a terminal state exactly once. Only deferred tasks (from
    TaskRunner.async_) are meant to be awaited for a value, but any task can
    be joined or cancelled.
    """

    def __init__(self, name: str, token: CancellationToken, *, deferred: bool) -> None:
        self.name = name
        self.token = token
        self.deferred = deferred

        self._state = TaskState.CREATED
        self._result: T | None = None
        self._failure: BaseException | None = None
        self._failure_tb = None
        self._done = asyncio.Event()
        self._aio: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"<Task {self.name} {self._state.value}>"

    def __await__(self):
        return self.await_().__await__()

    # ---- status ----

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def is_active(self) -> bool:
        return not self._state.is_terminal and not self.token.cancelled

    @property
    def is_completed(self) -> bool:
        """True once the task is in any terminal state."""
        return self._state.is_terminal

    @property
    def is_cancelled(self) -> bool:
        return self._state == TaskState.CANCELLED

    def exception(self) -> BaseException | None:
        return self._failure

    # ---- operations ----

    def cancel(self) -> None:
        """Request cooperative cancellation. No-op once terminal."""
        if self._state.is_terminal:
            return
        logger.debug("Cancel requested for %s", self.name)
        self.token.request_cancel()

    async def join(self) -> None:
        """Wait until terminal. Never raises for this task's own outcome."""
        await self._done.wait()

    async def await_(self) -> T:
        await self._done.wait()
        if self._state == TaskState.CANCELLED:
            raise CancellationFailure(f"task {self.name} was cancelled")
        if self._state == TaskState.FAILED:
            if self._failure is None:
                raise CoopRunError(f"task {self.name} failed without an exception")
            # Start from the original traceback so repeated awaits do not grow it.
            raise self._failure.with_traceback(self._failure_tb)
        return cast(T, self._result)

    # ---- runner side ----

    def _transition(self, new: TaskState) -> bool:
        if not can_transition(self._state, new):
            logger.debug("Ignoring %s -> %s for %s", self._state.value, new.value, self.name)
            return False
        self._state = new
        logger.debug("Task %s -> %s", self.name, new.value)
        return True

    def _finish(
            self,
            state: TaskState,
            *,
            result: T | None = None,
            failure: BaseException | None = None,
    ) -> None:
        if not self._transition(state):
            return
        self._result = result
        self._failure = failure
        self._failure_tb = failure.__traceback__ if failure is not None else None
        self._done.set()

    def _interrupt(self) -> None:
        # Delivered by asyncio at the task's next await.
        if self._aio is not None and not self._aio.done():
            self._aio.cancel()


class TaskRunner:
    """
    Scope that launches and tracks cooperative tasks.

    Usage:
        async with TaskRunner() as runner:
            job = runner.launch(work)
            value = await runner.async_(other_work)

    Cancelling the runner (cancel_all) cancels every task launched in it and
    in its child runners. On exit the scope joins all its tasks; if the body
    raised, the tasks are cancelled first.
    """

    def __init__(
            self,
            *,
            name: str = "runner",
            parent: TaskRunner | None = None,
            join_timeout: float | None = None,
    ) -> None:
        self.name = name
        self.token = parent.token.child() if parent is not None else CancellationToken()
        self._parent = parent
        self._active: list[Task[Any]] = []

        if join_timeout is None:
            configured = float(get_settings().join_timeout_seconds)
            join_timeout = configured if configured > 0 else None
        self._join_timeout = join_timeout

    async def __aenter__(self) -> TaskRunner:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            logger.info("Runner %s exiting with %s; cancelling children", self.name, exc_type.__name__)
            self.cancel_all()
        try:
            await self.join_all(timeout=self._join_timeout)
        except BaseException:
            # The task owning this scope was cancelled (or failed) while joining.
            self.cancel_all()
            await self._join_pending()
            raise
        finally:
            if self._parent is not None:
                self._parent.token.release(self.token)
        return False

    # ---- properties ----

    @property
    def is_cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def active_tasks(self) -> list[Task[Any]]:
        return list(self._active)

    # ---- launching ----

    def launch(self, work: Work[Any], *, name: str | None = None) -> Task[None]:
        """Start work that returns nothing useful. Only its status is observable."""
        return cast(Task[None], self._spawn(work, name=name, deferred=False))

    def async_(self, work: Work[T], *, name: str | None = None) -> Task[T]:
        """Start work whose value can be retrieved with await_()."""
        return self._spawn(work, name=name, deferred=True)

    def child(self, *, name: str | None = None) -> TaskRunner:
        """Nested scope cancelled together with this one."""
        return TaskRunner(
            name=name or f"{self.name}/child",
            parent=self,
            join_timeout=self._join_timeout,
        )

    def _spawn(self, work: Work[T], *, name: str | None, deferred: bool) -> Task[T]:
        loop = asyncio.get_running_loop()
        task_name = name or f"{self.name}-task-{next(_task_ids)}"
        task: Task[T] = Task(task_name, self.token.child(), deferred=deferred)

        task._aio = loop.create_task(self._run(task, work), name=task_name)
        task._aio.add_done_callback(lambda aio: self._on_aio_done(aio, task, work))
        self._active.append(task)

        # Registered last: a runner that is already cancelled interrupts the
        # task before its first step.
        task.token.on_cancel(task._interrupt)

        logger.debug("Launched %s (deferred=%s)", task_name, deferred)
        return task

    async def _run(self, task: Task[T], work: Work[T]) -> None:
        task._transition(TaskState.RUNNING)
        _current_task.set(task)
        try:
            task.token.ensure_active()
            value = await _start_work(work, task.token)
        except (asyncio.CancelledError, CancellationFailure):
            if inspect.iscoroutine(work):
                work.close()
            task._finish(TaskState.CANCELLED)
        except Exception as exc:
            logger.exception("Task %s failed", task.name)
            task._finish(TaskState.FAILED, failure=exc)
        else:
            task._finish(TaskState.COMPLETED, result=value)
        finally:
            self._forget(task)

    def _on_aio_done(self, aio: asyncio.Task[None], task: Task[Any], work: Work[Any]) -> None:
        # Covers tasks interrupted before their first step, when _run never ran,
        # and BaseExceptions that escaped _run.
        if not task.is_completed:
            failure = None if aio.cancelled() else aio.exception()
            if failure is not None:
                logger.error("Task %s aborted by %s", task.name, type(failure).__name__)
                task._finish(TaskState.FAILED, failure=failure)
            else:
                task._finish(TaskState.CANCELLED)
                if inspect.iscoroutine(work):
                    work.close()
        self._forget(task)

    def _forget(self, task: Task[Any]) -> None:
        try:
            self._active.remove(task)
        except ValueError:
            pass
        self.token.release(task.token)

    # ---- operations ----

    async def join(self, task: Task[Any]) -> None:
        await task.join()

    def cancel(self, task: Task[Any]) -> None:
        task.cancel()

    async def await_(self, task: Task[T]) -> T:
        return await task.await_()

    async def delay(self, seconds: float) -> None:
        """Sleep, checking the calling task's token (this scope's token outside a task)."""
        current = _current_task.get()
        await delay(seconds, current.token if current is not None else self.token)

    def cancel_all(self) -> None:
        """Cancel this scope and, transitively, everything launched in it."""
        if not self.token.cancelled:
            logger.info("Cancelling runner %s (%d active)", self.name, len(self._active))
        self.token.request_cancel()

    async def join_all(self, *, timeout: float | None = None) -> None:
        """
        Join every task launched so far, including ones launched while joining.

        With a timeout, tasks still running when it expires are cancelled and
        then joined.
        """
        try:
            async with asyncio.timeout(timeout):
                await self._join_pending()
        except TimeoutError:
            logger.warning("Runner %s: join timed out after %ss; cancelling", self.name, timeout)
            self.cancel_all()
            await self._join_pending()

    async def _join_pending(self) -> None:
        while True:
            pending = [t for t in self._active if not t.is_completed]
            if not pending:
                return
            for task in pending:
                await task.join()

    async def with_timeout(self, seconds: float, work: Work[T], *, name: str | None = None) -> T:
        """
        Run work as a child task and wait at most `seconds` for its value.

        On expiry the child is cancelled, joined, and TimeoutFailure is raised.
        """
        task = self.async_(work, name=name)
        try:
            async with asyncio.timeout(max(0.0, float(seconds))):
                await task.join()
        except TimeoutError:
            task.cancel()
            await task.join()
            raise TimeoutFailure(seconds) from None
        except asyncio.CancelledError:
            task.cancel()
            raise
        return await task.await_()

    async def with_timeout_or_none(
            self,
            seconds: float,
            work: Work[T],
            *,
            name: str | None = None,
    ) -> T | None:
        try:
            return await self.with_timeout(seconds, work, name=name)
        except TimeoutFailure:
            return None


def run_blocking(work: Callable[[TaskRunner], Awaitable[T]], *, name: str = "main") -> T:
    """
    Run `work(runner)` on a fresh event loop and wait for it and everything it launched.

    Must not be called from inside a running event loop.
    """

    async def _main() -> T:
        async with TaskRunner(name=name) as runner:
            return await work(runner)

    return asyncio.run(_main())
