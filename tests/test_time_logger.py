"""Tests for the time_logger module."""

import time
import pytest

from unitdensity.time_logger import TimeLogger, TimingEvent


class TestTimingEvent:
    """Test TimingEvent container."""

    def test_timing_event_creation(self):
        """Test that TimingEvent can be created with required fields."""
        event = TimingEvent(
            name="unit_dmeasure.loop",
            event_type="start",
            timestamp=123.456,
        )
        assert event.name == "unit_dmeasure.loop"
        assert event.event_type == "start"
        assert event.timestamp == 123.456
        assert event.metadata == {}

    def test_timing_event_rejects_unknown_type(self):
        with pytest.raises(ValueError):
            TimingEvent(name="x", event_type="pause", timestamp=1.0)


class TestTimeLogger:
    """Test TimeLogger class."""

    def test_initialization_default(self):
        logger = TimeLogger()
        assert logger.verbosity == "default"
        assert logger.events == []

    @pytest.mark.parametrize("level", ["verbose", "debug"])
    def test_initialization_levels(self, level):
        logger = TimeLogger(verbosity=level)
        assert logger.verbosity == level

    @pytest.mark.parametrize("level", [None, "None"])
    def test_initialization_none(self, level):
        logger = TimeLogger(verbosity=level)
        assert logger.verbosity is None

    def test_initialization_invalid_verbosity(self):
        with pytest.raises(ValueError, match="verbosity must be"):
            TimeLogger(verbosity="invalid")

    def test_none_verbosity_no_op(self):
        """Registration works but nothing is recorded at None verbosity."""
        logger = TimeLogger(verbosity=None)
        logger._register_event("test", "build", "Test event")
        logger.start_event("test")
        logger.stop_event("test")
        logger.progress("test", "message")
        assert len(logger.events) == 0

    def test_set_verbosity(self):
        logger = TimeLogger(verbosity='default')
        logger.set_verbosity('verbose')
        assert logger.verbosity == 'verbose'
        logger.set_verbosity(None)
        assert logger.verbosity is None

    def test_start_and_stop_event(self):
        logger = TimeLogger()
        logger._register_event("layout", "build", "Validate shapes")
        logger.start_event("layout")
        time.sleep(0.01)
        logger.stop_event("layout")

        assert [e.event_type for e in logger.events] == ["start", "stop"]
        assert logger.events[1].timestamp > logger.events[0].timestamp
        assert logger.events[0].metadata["category"] == "build"

    def test_progress_event(self):
        logger = TimeLogger()
        logger._register_event("loop", "runtime", "Loop")
        logger.progress("loop", "50% complete")

        assert len(logger.events) == 1
        assert logger.events[0].event_type == "progress"
        assert logger.events[0].metadata["message"] == "50% complete"

    def test_timed_context(self):
        logger = TimeLogger()
        logger._register_event("loop", "runtime", "Loop")
        with logger.timed("loop", nreps=4):
            time.sleep(0.01)
        assert logger.events[0].metadata["nreps"] == 4
        assert logger.get_event_duration("loop") >= 0.01

    def test_timed_context_stops_on_error(self):
        """An exception inside the block must not leave the event open."""
        logger = TimeLogger()
        logger._register_event("loop", "runtime", "Loop")
        with pytest.raises(RuntimeError):
            with logger.timed("loop"):
                raise RuntimeError("callback failed")
        assert logger._active_starts == {}
        with logger.timed("loop"):
            pass
        assert len(logger.events) == 4

    def test_get_event_duration(self):
        logger = TimeLogger()
        logger._register_event("test_operation", "build", "Test operation")
        logger.start_event("test_operation")
        time.sleep(0.02)
        logger.stop_event("test_operation")

        duration = logger.get_event_duration("test_operation")
        assert duration is not None
        assert duration >= 0.02

    def test_get_event_duration_no_stop(self):
        logger = TimeLogger()
        logger._register_event("test_operation", "build", "Test operation")
        logger.start_event("test_operation")
        assert logger.get_event_duration("test_operation") is None

    def test_print_summary_default_verbosity(self, capsys):
        logger = TimeLogger(verbosity="default")
        logger._register_event("kernel", "compile", "Kernel build")
        logger.start_event("kernel")
        logger.stop_event("kernel")

        logger.print_summary()
        captured = capsys.readouterr()
        assert "Timing Summary" in captured.out
        assert "kernel" in captured.out

    def test_verbose_prints_on_stop(self, capsys):
        logger = TimeLogger(verbosity="verbose")
        logger._register_event("unit_dmeasure.layout", "build", "Layout")
        logger.start_event("unit_dmeasure.layout")
        logger.stop_event("unit_dmeasure.layout")
        captured = capsys.readouterr()
        assert "unit_dmeasure.layout" in captured.out

    def test_print_summary_debug(self, capsys):
        logger = TimeLogger(verbosity="debug")
        logger._register_event("test", "build", "Test event")
        logger.start_event("test")
        logger.progress("test", "halfway")
        logger.stop_event("test")

        logger.print_summary()
        captured = capsys.readouterr()
        assert "DEBUG" in captured.out
        assert "progress" in captured.out.lower()

    def test_print_message(self, capsys):
        TimeLogger(verbosity="default").print_message("quiet")
        TimeLogger(verbosity="verbose").print_message("loud")
        captured = capsys.readouterr()
        assert "quiet" not in captured.out
        assert "loud" in captured.out

    def test_get_aggregate_durations(self):
        logger = TimeLogger()
        logger._register_event("operation1", "build", "Operation 1")
        for _ in range(2):
            logger.start_event("operation1")
            time.sleep(0.01)
            logger.stop_event("operation1")

        durations = logger.get_aggregate_durations()
        assert durations["operation1"] >= 0.02

    def test_aggregate_durations_by_category(self):
        logger = TimeLogger()
        logger._register_event("kernel1", "compile", "Kernel 1")
        logger._register_event("build1", "build", "Build 1")
        logger._register_event("runtime1", "runtime", "Runtime 1")
        for name in ("kernel1", "build1", "runtime1"):
            logger.start_event(name)
            logger.stop_event(name)

        compile_durations = logger.get_aggregate_durations(category="compile")
        assert set(compile_durations) == {"kernel1"}
        build_durations = logger.get_aggregate_durations(category="build")
        assert set(build_durations) == {"build1"}

    def test_register_event(self):
        logger = TimeLogger()
        logger._register_event("kernel", "compile", "Build replicate loop")
        assert logger._event_registry["kernel"] == {
            "category": "compile",
            "description": "Build replicate loop",
        }

    def test_register_event_invalid_category(self):
        logger = TimeLogger()
        with pytest.raises(ValueError, match="category must be"):
            logger._register_event("test", "invalid", "description")

    def test_empty_event_name_raises(self):
        logger = TimeLogger()
        with pytest.raises(ValueError, match="event_name cannot be empty"):
            logger.start_event("")
        with pytest.raises(ValueError, match="event_name cannot be empty"):
            logger.progress("", "message")

    def test_unregistered_event_raises(self):
        logger = TimeLogger()
        with pytest.raises(ValueError, match="not registered"):
            logger.start_event("unregistered")
        with pytest.raises(ValueError, match="not registered"):
            logger.stop_event("unregistered")

    def test_double_start_raises(self):
        logger = TimeLogger()
        logger._register_event("test", "build", "Test event")
        logger.start_event("test")
        with pytest.raises(ValueError, match="already has an active start"):
            logger.start_event("test")

    def test_stop_before_start_raises(self):
        logger = TimeLogger()
        logger._register_event("test", "build", "Test event")
        with pytest.raises(ValueError, match="has no active start"):
            logger.stop_event("test")

    def test_clear(self):
        logger = TimeLogger()
        logger._register_event("test", "build", "Test event")
        logger.start_event("test")
        logger.clear()
        assert logger.events == []
        logger.start_event("test")
        assert "test" in logger._event_registry
