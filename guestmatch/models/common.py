from enum import Enum


class JobState(str, Enum):
    idle = "idle"
    uploading = "uploading"
    processing = "processing"
    complete = "complete"
    error = "error"


class PollStatus(str, Enum):
    pending = "pending"
    done = "done"
    failed = "failed"


class ChannelSource(str, Enum):
    push = "push"
    poll = "poll"
