"""Pytest plugin adding the wrapped-failure trace to failing test reports."""

from __future__ import annotations

import sys

import pytest

from .failure import WrappedFailure

SECTION_TITLE = "framesnap"


def find_wrapped_failure(exc: BaseException | None) -> WrappedFailure | None:
    """Return the first WrappedFailure in an exception's cause/context chain."""
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, WrappedFailure):
            return exc
        seen.add(id(exc))
        exc = exc.__cause__ or exc.__context__
    return None


def pytest_configure(config):
    """Register the no_framesnap marker."""
    config.addinivalue_line(
        "markers",
        "no_framesnap: do not add the framesnap trace section to this test's report",
    )


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Append the rendered failure trace on test call failures."""
    outcome = yield
    report = outcome.get_result()

    # Only on test call failures (not setup/teardown)
    if report.when != "call" or not report.failed:
        return

    # Respect opt-out marker
    if item.get_closest_marker("no_framesnap"):
        return

    if call.excinfo is None:
        return

    try:
        failure = find_wrapped_failure(call.excinfo.value)
        if failure is None:
            return
        report.sections.append((SECTION_TITLE, failure.render()))
    except Exception:
        if WrappedFailure.config.debug:
            sys.stderr.write(f"framesnap: report section failed for {item.nodeid}\n")
