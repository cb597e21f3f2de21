"""Git runner, executor and output classification exports."""

from .executor import GitOperationExecutor
from .models import ChangeCounts, OperationResult, RemoteCheck, RepositoryState, RepositoryStateError
from .retry import COMMAND_FAILURE_FALLBACK, FAST_FORWARD_FALLBACK, RetryPolicy, RetryRule, default_retry_policy
from .runner import FakeGitRunner, GitCommandResult, GitNotFoundError, GitRunner, GitRunnerError

__all__ = [
    "COMMAND_FAILURE_FALLBACK",
    "ChangeCounts",
    "FAST_FORWARD_FALLBACK",
    "FakeGitRunner",
    "GitCommandResult",
    "GitNotFoundError",
    "GitOperationExecutor",
    "GitRunner",
    "GitRunnerError",
    "OperationResult",
    "RemoteCheck",
    "RepositoryState",
    "RepositoryStateError",
    "RetryPolicy",
    "RetryRule",
    "default_retry_policy",
]
