"""Event system for handling time-based callbacks in the slot simulation."""

from typing import Any, Callable, Dict, Optional, Tuple


def update_step_size(
    step_size: Optional[int], new_step: Optional[int]
) -> Optional[int]:
    """Keep the smaller of two optional step sizes."""
    if new_step is not None:
        if step_size is None or new_step < step_size:
            return new_step
    return step_size


class Task:
    """A callback scheduled at a specific simulation time.

    Tasks due at the same time run in scheduling order, so a replay of the
    same actions always fires them identically.
    """

    def __init__(
        self,
        time: int,
        seq: int,
        callback: Callable,
        args: Tuple[Any, ...] = (),
        kwargs: Dict[str, Any] = None,
    ):
        self.time = time
        self.seq = seq
        self.callback = callback
        self.args = args
        self.kwargs = kwargs or {}

    def __lt__(self, other: "Task") -> bool:
        return (self.time, self.seq) < (other.time, other.seq)

    def execute(self):
        """Execute the callback function with the provided args and kwargs."""
        return self.callback(*self.args, **self.kwargs)
