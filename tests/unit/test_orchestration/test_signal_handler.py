"""
Unit tests for turning signals into cancellation of active runs.
"""

import signal
from unittest.mock import MagicMock, patch

import pytest

from trimmer.orchestration import SignalHandler
from trimmer.orchestration import signal_handler as signal_handler_module


@pytest.fixture
def handler():
    handler = SignalHandler()
    yield handler
    signal_handler_module._active_distros.clear()


@pytest.mark.unit
class TestSignalHandler:
    """Test cases for SignalHandler."""

    def test_context_manager_restores_handlers(self):
        original_int = signal.getsignal(signal.SIGINT)
        original_term = signal.getsignal(signal.SIGTERM)

        with SignalHandler():
            assert signal.getsignal(signal.SIGINT) == SignalHandler._global_signal_handler
            assert signal.getsignal(signal.SIGTERM) == SignalHandler._global_signal_handler

        assert signal.getsignal(signal.SIGINT) == original_int
        assert signal.getsignal(signal.SIGTERM) == original_term

    def test_setup_outside_main_thread(self, handler):
        with patch("trimmer.orchestration.signal_handler.signal.signal",
                   side_effect=ValueError("signal only works in main thread")):
            handler.setup_signal_handlers()
        assert not handler._signal_handlers_set
        # Nothing to restore
        handler.cleanup_signal_handlers()

    def test_signal_cancels_registered_distros(self, handler):
        distro = MagicMock()
        distro.name = "nightly"
        loop = MagicMock()
        loop.is_closed.return_value = False

        handler.register_distro(distro, loop)
        SignalHandler._global_signal_handler(signal.SIGINT, None)

        loop.call_soon_threadsafe.assert_called_once_with(distro.cancel)

    def test_closed_loops_are_skipped(self, handler):
        distro = MagicMock()
        distro.name = "nightly"
        loop = MagicMock()
        loop.is_closed.return_value = True

        handler.register_distro(distro, loop)
        SignalHandler._global_signal_handler(signal.SIGTERM, None)

        loop.call_soon_threadsafe.assert_not_called()

    def test_unregistered_distros_are_not_cancelled(self, handler):
        distro = MagicMock()
        distro.name = "nightly"
        loop = MagicMock()
        loop.is_closed.return_value = False

        handler.register_distro(distro, loop)
        handler.unregister_distro(distro)
        handler.unregister_distro(distro)
        SignalHandler._global_signal_handler(signal.SIGINT, None)

        loop.call_soon_threadsafe.assert_not_called()
