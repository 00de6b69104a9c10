"""Progress tracking and terminal rendering."""

import os
import threading
from dataclasses import dataclass, replace
from typing import Dict, Hashable, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn

DETAIL_MAX_LENGTH = 200


@dataclass
class ProgressState:
    """Progress of one transfer."""
    label: str
    total: int
    current: int = 0
    last_detail: str = ""

    @property
    def finished(self) -> bool:
        return self.current >= self.total


class ProgressStore:
    """Thread-safe map of progress id to state.

    Transfers running in parallel each update their own key; the lock only
    guards the map itself.
    """

    def __init__(self):
        self._states: Dict[Hashable, ProgressState] = {}
        self._lock = threading.Lock()

    def start(self, progress_id: Hashable, label: str, total: int) -> ProgressState:
        with self._lock:
            state = ProgressState(label=label, total=total)
            self._states[progress_id] = state
            return replace(state)

    def increment(self, progress_id: Hashable) -> Optional[ProgressState]:
        with self._lock:
            state = self._states.get(progress_id)
            if state is None:
                return None
            state.current += 1
            return replace(state)

    def set_detail(self, progress_id: Hashable, detail: str) -> Optional[ProgressState]:
        with self._lock:
            state = self._states.get(progress_id)
            if state is None:
                return None
            state.last_detail = detail
            return replace(state)

    def get(self, progress_id: Hashable) -> Optional[ProgressState]:
        """Snapshot of a state, or None for an unknown id."""
        with self._lock:
            state = self._states.get(progress_id)
            return replace(state) if state is not None else None

    def is_finished(self, progress_id: Hashable) -> bool:
        state = self.get(progress_id)
        return state is not None and state.finished


def output_enabled() -> bool:
    """Terminal output can be switched off with DISABLE_VAULT_OUTPUT=1."""
    return os.getenv("DISABLE_VAULT_OUTPUT") != "1"


class ProgressReporter:
    """Records progress without drawing anything.

    Subclasses render by overriding the ``_render_*`` hooks, which are only
    called while the reporter is enabled. State is kept either way.
    """

    def __init__(self, store: Optional[ProgressStore] = None, enabled: Optional[bool] = None,
                 detail_max_length: int = DETAIL_MAX_LENGTH):
        self.store = store if store is not None else ProgressStore()
        self._enabled = output_enabled() if enabled is None else enabled
        self.detail_max_length = detail_max_length

    def enabled(self) -> bool:
        return self._enabled

    def start(self, progress_id: Hashable, label: str, total: int):
        if total <= 0:
            return
        self.store.start(progress_id, label, total)
        if self._enabled:
            self._render_start(progress_id, label, total)

    def increment(self, progress_id: Hashable):
        state = self.store.increment(progress_id)
        if state is not None and self._enabled:
            self._render_advance(progress_id, state)

    def set_detail(self, progress_id: Hashable, text):
        detail = str(text)[:self.detail_max_length]
        state = self.store.set_detail(progress_id, detail)
        if state is not None and self._enabled:
            self._render_detail(progress_id, detail)

    def puts(self, text: str, style: Optional[str] = None):
        if self._enabled:
            self._render_text(text, style)

    def _render_start(self, progress_id, label, total):
        pass

    def _render_advance(self, progress_id, state: ProgressState):
        pass

    def _render_detail(self, progress_id, detail: str):
        pass

    def _render_text(self, text: str, style: Optional[str]):
        pass


class ConsoleProgressReporter(ProgressReporter):
    """Draws one rich progress bar per transfer.

    Use as a context manager so the live display is started and stopped::

        with ConsoleProgressReporter() as reporter:
            Synchronizer(reporter=reporter).copy_tree(src, dest, progress_id="docs")
    """

    def __init__(self, console: Optional[Console] = None, **kwargs):
        super().__init__(**kwargs)
        self.console = console or Console()
        self.progress = Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            console=self.console,
            transient=False,
        )
        self._tasks: Dict[Hashable, TaskID] = {}
        self._lock = threading.Lock()

    def __enter__(self):
        if self._enabled:
            self.progress.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.progress.stop()

    def _render_start(self, progress_id, label, total):
        with self._lock:
            task_id = self.progress.add_task(escape(label), total=total, detail="")
            self._tasks[progress_id] = task_id

    def _render_advance(self, progress_id, state: ProgressState):
        task_id = self._tasks.get(progress_id)
        if task_id is None:
            return
        self.progress.update(task_id, completed=state.current)
        if state.finished:
            self.progress.update(task_id, detail="")

    def _render_detail(self, progress_id, detail: str):
        task_id = self._tasks.get(progress_id)
        if task_id is not None:
            self.progress.update(task_id, detail=escape(detail))

    def _render_text(self, text: str, style: Optional[str]):
        self.progress.console.print(text, style=style, markup=False, highlight=False)
