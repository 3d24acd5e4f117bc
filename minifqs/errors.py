"""Exception hierarchy shared by the reader, the pipeline stages and the CLI."""


class MiniFqsError(Exception):
    """Base class for every error raised by minifqs."""


class StructuralError(MiniFqsError):
    """
    The input violates a structural precondition (non-Score root, unknown node).

    Raised immediately by the stage that detects it and never caught inside
    the pipeline: the run is aborted.
    """


class FqsSyntaxError(MiniFqsError, ValueError):
    """FQS source text that the reader cannot turn into a Score."""

    def __init__(self, message: str, line_no: int | None = None, text: str = "") -> None:
        self.line_no = line_no
        self.text = text
        location = f"line {line_no}: " if line_no is not None else ""
        detail = f" ({text!r})" if text else ""
        super().__init__(f"{location}{message}{detail}")


class UnknownStageError(MiniFqsError, ValueError):
    """A stage name that the pipeline does not define."""
