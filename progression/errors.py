"""Exceptions raised by the progression core."""


class SequenceProgressionError(Exception):
    """Base class for progression failures a caller is expected to handle."""


class TaskNotFoundError(SequenceProgressionError):
    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class SequenceNotFoundError(SequenceProgressionError):
    def __init__(self, sequence_id: str):
        super().__init__(f"Sequence {sequence_id} not found")
        self.sequence_id = sequence_id


class MalformedSequenceError(SequenceProgressionError):
    """Stored step list does not validate (e.g. a negative delayMinutes)."""

    def __init__(self, sequence_id: str, detail: str):
        super().__init__(f"Malformed sequence {sequence_id}: {detail}")
        self.sequence_id = sequence_id
        self.detail = detail


class ContactNotFoundError(SequenceProgressionError):
    def __init__(self, contact_id: str):
        super().__init__(f"Contact {contact_id} not found")
        self.contact_id = contact_id
