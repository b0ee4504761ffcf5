"""Non-fatal data problems collected alongside partial results."""


class DataIntegrityWarning(UserWarning):
    """
    One malformed record that was left out of a computation.

    Never raised by the aggregation code; instances are collected and returned
    next to the result so a single bad row cannot block a whole summary.
    """

    def __init__(self, kind: str, message: str, record_id=None, course_id=None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.record_id = record_id
        self.course_id = course_id

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "record_id": self.record_id,
            "course_id": self.course_id,
        }

    def __eq__(self, other):
        if not isinstance(other, DataIntegrityWarning):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash((self.kind, self.message, self.record_id, self.course_id))
