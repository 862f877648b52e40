import logging

from lorenztraj.orchestrator.ensemble import RunSpec, run_ensemble
from lorenztraj.core.chaos.lorenz import Parameters
from lorenztraj.utils.logging import LOG_FORMAT, RunContextFilter, resolve_log_level, run_context, set_command_context


def _record(msg="integrating"):
    return logging.LogRecord("lorenztraj.test", logging.INFO, __file__, 1, msg, None, None)


def test_records_carry_command_and_run_label():
    set_command_context("overlay")
    flt = RunContextFilter()
    formatter = logging.Formatter(LOG_FORMAT)

    outside = _record()
    flt.filter(outside)
    assert formatter.format(outside) == "[overlay] INFO: integrating"

    with run_context("run3"):
        inside = _record()
        flt.filter(inside)
    assert formatter.format(inside) == "[overlay:run3] INFO: integrating"

    after = _record()
    flt.filter(after)
    assert after.run == ""


def test_ensemble_debug_logs_are_tagged_per_run():
    seen = []

    class _Collect(logging.Handler):
        def emit(self, record):
            seen.append(record.run)

    handler = _Collect(level=logging.DEBUG)
    handler.addFilter(RunContextFilter())
    logger = logging.getLogger("lorenztraj.core.integrator")
    old_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        specs = [
            RunSpec(params=Parameters.classic(), initial=(0.1, 0.1, 0.1), label="ref"),
            RunSpec(params=Parameters.classic(), initial=(0.2, 0.1, 0.1)),
        ]
        run_ensemble(specs, 0.01, 5)
    finally:
        logger.removeHandler(handler)
        logger.setLevel(old_level)
    assert seen == [":ref", ":run1"]


def test_resolve_log_level():
    assert resolve_log_level(False, False) == "WARNING"
    assert resolve_log_level(True, False) == "INFO"
    assert resolve_log_level(True, True) == "DEBUG"
