"""Declarative retry rules for failed git commands."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Sequence

from .output import is_fast_forward_failure
from .runner import GitCommandResult


@dataclass(frozen=True, slots=True)
class RetryRule:
    """Substitute ``fallback_args`` when ``predicate`` matches a failed result.

    ``operations`` limits the rule to the named operations (``"pull"``,
    ``"clone"``).
    """

    name: str
    operations: frozenset[str]
    predicate: Callable[[GitCommandResult], bool]
    fallback_args: tuple[str, ...]

    def matches(self, operation: str, result: GitCommandResult) -> bool:
        if operation not in self.operations or result.ok:
            return False
        return self.predicate(result)


PLAIN_PULL_ARGS = ("pull", "--no-rebase", "--no-stat", "--quiet")


def _fast_forward_refused(result: GitCommandResult) -> bool:
    return not result.timed_out and is_fast_forward_failure(result.output)


def _any_failure(result: GitCommandResult) -> bool:
    return True


FAST_FORWARD_FALLBACK = RetryRule(
    name="fast-forward-fallback",
    operations=frozenset({"pull"}),
    predicate=_fast_forward_refused,
    fallback_args=PLAIN_PULL_ARGS,
)

# Timeouts and non-zero exits alike; clone is never listed.
COMMAND_FAILURE_FALLBACK = RetryRule(
    name="command-failure-fallback",
    operations=frozenset({"pull"}),
    predicate=_any_failure,
    fallback_args=PLAIN_PULL_ARGS,
)


@dataclass(slots=True)
class RetryPolicy:
    """Ordered retry rules with a cap on total attempts per operation.

    ``max_attempts`` counts the initial command, so the default of two allows
    exactly one substitute command.
    """

    rules: Sequence[RetryRule] = field(default_factory=lambda: (FAST_FORWARD_FALLBACK, COMMAND_FAILURE_FALLBACK))
    max_attempts: int = 2

    def next_command(
        self, operation: str, result: GitCommandResult, attempt: int
    ) -> tuple[RetryRule, tuple[str, ...]] | None:
        """Return the rule and substitute args for the next attempt, if any.

        ``attempt`` is the number of commands already run for this operation.
        """

        if attempt >= self.max_attempts:
            return None
        for rule in self.rules:
            if rule.matches(operation, result):
                return rule, rule.fallback_args
        return None


def default_retry_policy() -> RetryPolicy:
    return RetryPolicy()


__all__ = [
    "COMMAND_FAILURE_FALLBACK",
    "FAST_FORWARD_FALLBACK",
    "PLAIN_PULL_ARGS",
    "RetryPolicy",
    "RetryRule",
    "default_retry_policy",
]
