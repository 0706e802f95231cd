"""
Code-Based Graders -- deterministic evaluation with exact criteria.

Each check is a named predicate over one output (a ConfigurationResult,
a ConfigurationPlan, a CycleReport). A check that raises counts as a
failure rather than aborting the grade, so one report lists every problem.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from workload_arbiter.configuration.models import ChangeStatus, ConfigurationResult

logger = logging.getLogger(__name__)


@dataclass
class CodeGraderResult:
    """Result from code-based grading."""

    eval_name: str
    passed: bool
    checks_passed: int = 0
    checks_total: int = 0
    failures: list[str] = field(default_factory=list)

    def summary(self) -> str:
        lines = [f"{self.eval_name}: {self.checks_passed}/{self.checks_total} checks"]
        lines.extend(self.failures)
        return "\n".join(lines)


class CodeGrader:
    """Deterministic grader that runs a list of check functions.

    Usage:
        grader = CodeGrader("scenario_c_partial_failure")
        grader.add_check("not_successful", lambda r: not r.success)
        grader.add_check("three_outcomes", lambda r: len(r.changes) == 3)
        result = grader.grade(configuration_result)
    """

    def __init__(self, eval_name: str):
        self.eval_name = eval_name
        self._checks: list[tuple[str, Callable[[Any], bool]]] = []

    def add_check(self, name: str, check_fn: Callable[[Any], bool]) -> "CodeGrader":
        """Add a named check function. Returns self for chaining."""
        self._checks.append((name, check_fn))
        return self

    def grade(self, output: Any) -> CodeGraderResult:
        failures = []
        passed_count = 0

        for name, check_fn in self._checks:
            try:
                if check_fn(output):
                    passed_count += 1
                else:
                    failures.append(f"FAIL: {name}")
            except Exception as e:
                failures.append(f"ERROR: {name} -- {e}")

        result = CodeGraderResult(
            eval_name=self.eval_name,
            passed=not failures,
            checks_passed=passed_count,
            checks_total=len(self._checks),
            failures=failures,
        )
        if failures:
            logger.info(f"[CodeGrader] {result.summary()}")
        return result


def configuration_result_grader(eval_name: str, expected_changes: int) -> CodeGrader:
    """
    Checks that hold for every apply or revert outcome: one entry per change,
    failures explained, and the success flag agreeing with the entries.
    """

    def _success_agrees(result: ConfigurationResult) -> bool:
        clean = all(
            o.status is not ChangeStatus.FAILED and o.error_kind is None
            for o in result.changes
        )
        return result.success == clean

    return (
        CodeGrader(eval_name)
        .add_check("one_outcome_per_change", lambda r: len(r.changes) == expected_changes)
        .add_check(
            "failures_carry_reason",
            lambda r: all(o.reason for o in r.changes if o.status is ChangeStatus.FAILED),
        )
        .add_check("success_agrees_with_outcomes", _success_agrees)
        .add_check("has_message", lambda r: bool(r.message))
    )
