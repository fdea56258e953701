"""Proposals that the push and pull channels hand to the orchestrator.

Channels never touch the job directly; they emit one of these and the
orchestrator decides whether it applies to the current job.
"""
from dataclasses import dataclass
from typing import Any, Union

from guestmatch.errors import GuestMatchError
from guestmatch.models.common import ChannelSource, PollStatus


@dataclass(frozen=True)
class ProgressUpdate:
    job_id: str
    percent: float
    step: str | None
    source: ChannelSource


@dataclass(frozen=True)
class TerminalResult:
    job_id: str
    payload: Any  # raw backend payload, normalized by the orchestrator
    source: ChannelSource


@dataclass(frozen=True)
class TerminalFailure:
    job_id: str
    error: GuestMatchError
    source: ChannelSource


ChannelMessage = Union[ProgressUpdate, TerminalResult, TerminalFailure]


@dataclass(frozen=True)
class PollResponse:
    status: PollStatus
    payload: dict
    progress: float | None = None
