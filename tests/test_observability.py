import logging

from convolib.observability import MemoryLogHandler


def _logger(handler: MemoryLogHandler, name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    return logger


class TestMemoryLogHandler:

    def test_filters_by_level_and_component(self):
        handler = MemoryLogHandler()
        controller_log = _logger(handler, "convoflow.tests.controller")
        builder_log = _logger(handler, "convoflow.tests.builder")
        try:
            controller_log.debug("drafting prompt")
            controller_log.warning("agent failed")
            builder_log.info("prompt built")

            assert len(handler.get_logs()) == 3
            assert [e["message"] for e in handler.get_logs(level="warning")] == ["agent failed"]
            assert [e["message"] for e in handler.get_logs(component="convoflow.tests.builder")] == ["prompt built"]
            assert handler.get_logs(level="bogus") == handler.get_logs()
        finally:
            controller_log.removeHandler(handler)
            builder_log.removeHandler(handler)

    def test_ring_buffer_drops_oldest(self):
        handler = MemoryLogHandler(max_entries=2)
        log = _logger(handler, "convoflow.tests.ring")
        try:
            for i in range(3):
                log.info(f"entry {i}")
        finally:
            log.removeHandler(handler)

        assert [e["message"] for e in handler.get_logs()] == ["entry 1", "entry 2"]
        assert "INFO [convoflow.tests.ring." in handler.get_logs_as_string()

        handler.clear()
        assert handler.get_logs() == []
