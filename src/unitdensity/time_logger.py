"""Time logging infrastructure for tracking density-evaluation performance."""

import time
from contextlib import contextmanager
from typing import Optional, Any, Iterator
import attrs


_VERBOSITY_LEVELS = {None, 'default', 'verbose', 'debug'}
_CATEGORIES = {'build', 'compile', 'runtime'}


@attrs.define(frozen=True)
class TimingEvent:
    """Record of a single timing event.

    Attributes
    ----------
    name : str
        Identifier for the event (e.g., 'unit_dmeasure.loop')
    event_type : str
        Type of event: 'start', 'stop', or 'progress'
    timestamp : float
        Wall-clock time from time.perf_counter()
    metadata : dict
        Optional metadata (counts, shapes, messages, etc.)
    """
    name: str = attrs.field(validator=attrs.validators.instance_of(str))
    event_type: str = attrs.field(
        validator=attrs.validators.in_({'start', 'stop', 'progress'})
    )
    timestamp: float = attrs.field(
        validator=attrs.validators.instance_of(float)
    )
    metadata: dict = attrs.field(factory=dict)


class TimeLogger:
    """Callback-based timing system for density evaluations.

    Parameters
    ----------
    verbosity : str or None, default='default'
        Output verbosity level. Options:
        - None: no-op, nothing is recorded or printed
        - 'default': Aggregate times only
        - 'verbose': Component-level breakdown
        - 'debug': All events with start/stop/progress

    Attributes
    ----------
    verbosity : str or None
        Current verbosity level
    events : list[TimingEvent]
        Chronological list of all recorded events
    _event_registry : dict[str, dict]
        Registered event names with their category and description
    _active_starts : dict[str, float]
        Map of event names to their start timestamps (for matching)

    Notes
    -----
    Events must be registered with :meth:`_register_event` before they are
    started, stopped or reported on. Registration still happens when the
    verbosity is None so that the level can be raised later.
    """

    def __init__(self, verbosity: Optional[str] = 'default') -> None:
        self.verbosity = None
        self.set_verbosity(verbosity)
        self.events: list[TimingEvent] = []
        self._event_registry: dict[str, dict[str, str]] = {}
        self._active_starts: dict[str, float] = {}

    def set_verbosity(self, verbosity: Optional[str]) -> None:
        """Change the verbosity level.

        Parameters
        ----------
        verbosity : str or None
            New level; the string 'None' is treated as None.
        """
        if verbosity == 'None':
            verbosity = None
        if verbosity not in _VERBOSITY_LEVELS:
            raise ValueError(
                f"verbosity must be None, 'default', 'verbose', or 'debug', "
                f"got '{verbosity}'"
            )
        self.verbosity = verbosity

    def _register_event(
        self, event_name: str, category: str, description: str
    ) -> None:
        """Register an event name so it can be timed.

        Parameters
        ----------
        event_name : str
            Unique identifier for the event
        category : str
            One of 'build', 'compile' or 'runtime'
        description : str
            Human readable description printed in summaries
        """
        if category not in _CATEGORIES:
            raise ValueError(
                f"category must be one of {sorted(_CATEGORIES)}, "
                f"got '{category}'"
            )
        self._event_registry[event_name] = {
            'category': category,
            'description': description,
        }

    def _check_event(self, event_name: str) -> None:
        if not event_name:
            raise ValueError("event_name cannot be empty")
        if event_name not in self._event_registry:
            raise ValueError(f"Event '{event_name}' is not registered")

    def _record(
        self, event_name: str, event_type: str, metadata: dict
    ) -> float:
        timestamp = time.perf_counter()
        metadata = dict(metadata)
        metadata.setdefault(
            'category', self._event_registry[event_name]['category']
        )
        self.events.append(
            TimingEvent(
                name=event_name,
                event_type=event_type,
                timestamp=timestamp,
                metadata=metadata,
            )
        )
        return timestamp

    def start_event(self, event_name: str, **metadata: Any) -> None:
        """Record the start of a timed operation.

        Parameters
        ----------
        event_name : str
            Registered identifier for this event
        **metadata : Any
            Optional metadata to store with event
        """
        self._check_event(event_name)
        if self.verbosity is None:
            return
        if event_name in self._active_starts:
            raise ValueError(
                f"Event '{event_name}' already has an active start"
            )
        timestamp = self._record(event_name, 'start', metadata)
        self._active_starts[event_name] = timestamp

        if self.verbosity == 'debug':
            print(f"[DEBUG] Started: {event_name}")

    def stop_event(self, event_name: str, **metadata: Any) -> None:
        """Record the end of a timed operation.

        Parameters
        ----------
        event_name : str
            Identifier matching a previous start_event call
        **metadata : Any
            Optional metadata to store with event
        """
        self._check_event(event_name)
        if self.verbosity is None:
            return
        if event_name not in self._active_starts:
            raise ValueError(f"Event '{event_name}' has no active start")
        timestamp = self._record(event_name, 'stop', metadata)
        duration = timestamp - self._active_starts.pop(event_name)

        if self.verbosity == 'debug':
            print(f"[DEBUG] Stopped: {event_name} ({duration:.3f}s)")
        elif self.verbosity == 'verbose':
            print(f"{event_name}: {duration:.3f}s")

    @contextmanager
    def timed(self, event_name: str, **metadata: Any) -> Iterator[None]:
        """Time the enclosed block, stopping the event even on error."""
        self.start_event(event_name, **metadata)
        try:
            yield
        finally:
            self.stop_event(event_name)

    def progress(
        self, event_name: str, message: str, **metadata: Any
    ) -> None:
        """Record a progress update within an operation.

        Only printed in debug mode.
        """
        self._check_event(event_name)
        if self.verbosity is None:
            return
        metadata_with_msg = dict(metadata)
        metadata_with_msg['message'] = message
        self._record(event_name, 'progress', metadata_with_msg)

        if self.verbosity == 'debug':
            print(f"[DEBUG] Progress: {event_name} - {message}")

    def print_message(self, message: str) -> None:
        """Print a free-form diagnostic in verbose or debug mode."""
        if self.verbosity == 'debug':
            print(f"[DEBUG] {message}")
        elif self.verbosity == 'verbose':
            print(message)

    def get_event_duration(self, event_name: str) -> Optional[float]:
        """Duration of the most recent completed event, or None."""
        start_time = None
        stop_time = None

        # Search backwards for most recent pair
        for event in reversed(self.events):
            if event.name == event_name:
                if event.event_type == 'stop' and stop_time is None:
                    stop_time = event.timestamp
                elif event.event_type == 'start' and stop_time is not None:
                    start_time = event.timestamp
                    break

        if start_time is not None and stop_time is not None:
            return stop_time - start_time
        return None

    def get_aggregate_durations(
        self, category: Optional[str] = None
    ) -> dict[str, float]:
        """Sum durations of completed events, optionally by category.

        Parameters
        ----------
        category : str, optional
            If provided, only events registered under this category count.

        Returns
        -------
        dict[str, float]
            Mapping of event names to total durations
        """
        durations: dict[str, float] = {}
        event_starts: dict[str, float] = {}

        for event in self.events:
            if category is not None:
                if event.metadata.get('category') != category:
                    continue

            if event.event_type == 'start':
                event_starts[event.name] = event.timestamp
            elif event.event_type == 'stop':
                if event.name in event_starts:
                    duration = (
                        event.timestamp - event_starts.pop(event.name)
                    )
                    durations[event.name] = (
                        durations.get(event.name, 0.0) + duration
                    )

        return durations

    def print_summary(self, category: Optional[str] = None) -> None:
        """Print timing summary based on verbosity level.

        Notes
        -----
        Every recorded event is listed with its aggregated duration.
        Verbose and debug levels have additionally printed each event as
        it happened.
        """
        if self.verbosity is None:
            return
        durations = self.get_aggregate_durations(category)
        if durations:
            print("\nTiming Summary:")
            for name, duration in sorted(durations.items()):
                print(f"  {name}: {duration:.3f}s")
        if self.verbosity == 'debug':
            progress = [
                event for event in self.events
                if event.event_type == 'progress'
            ]
            if progress:
                print(f"  ({len(progress)} progress events)")

    def clear(self) -> None:
        """Forget all recorded events, keeping registrations."""
        self.events.clear()
        self._active_starts.clear()


# Shared no-op logger used unless a caller asks for timing output.
default_timelogger = TimeLogger(verbosity=None)
