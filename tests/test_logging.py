import logging

from arbor.core.instance import Instance
from arbor.runtime.logging import LOGGER_NAME, BuildLogger, on_log_message


def make_tree():
    root = Instance()
    light = Instance()
    light.state.parent = root
    light.state.not_public = True
    child = Instance()
    child.state.parent = light
    child.state.is_component = True
    child.options.name = "todo"
    return root, light, child


def test_log_context_describes_path():
    root, light, child = make_tree()

    assert on_log_message(None) == ""
    assert on_log_message(root) == "(root)"
    assert on_log_message(child) == "(root > for-item > todo)"


def test_build_logger_appends_context(caplog):
    _, _, child = make_tree()
    log = BuildLogger()

    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        log.warn("Something odd", child)
        log.debug("plain")

    assert [r.levelno for r in caplog.records] == [logging.WARNING, logging.DEBUG]
    assert caplog.records[0].getMessage() == "Something odd (root > for-item > todo)"
    assert caplog.records[1].getMessage() == "plain"


def test_disabled_levels_skip_context():
    calls = []
    logger = logging.getLogger("arbor.test.quiet")
    logger.setLevel(logging.ERROR)
    log = BuildLogger(logger, context=lambda vm: calls.append(vm) or "")

    log.info("hidden", Instance())
    log.error("shown", Instance())
    assert len(calls) == 1


def test_errors_carry_exception_info(caplog):
    log = BuildLogger()
    error = ValueError("boom")

    with caplog.at_level(logging.ERROR, logger=LOGGER_NAME):
        log.error("Hook failed", exc=error)

    assert caplog.records[0].exc_info[1] is error
