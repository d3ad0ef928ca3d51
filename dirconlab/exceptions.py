import logging


logger = logging.getLogger(__name__)


class DirconLabBaseError(Exception):
    """
    Base class for all DirconLab-specific errors.

    Errors raised while configuring or indexing one mode of a hybrid
    transcription carry that mode, so a caller handling a failure can tell
    which mode was at fault without parsing the message.

    Args:
        message: The error message describing what went wrong
        context: Optional stage of the transcription that failed
        mode: Optional index of the mode the error belongs to
    """

    def __init__(self, message: str, context: str | None = None, mode: int | None = None) -> None:
        self.message = message
        self.context = context
        self.mode = mode
        formatted = self._format_message()

        logger.debug("%s: %s", type(self).__name__, formatted)
        super().__init__(formatted)

    def _format_message(self) -> str:
        """Append ``[mode i; context]`` for whichever of the two is known."""
        details = []
        if self.mode is not None:
            details.append(f"mode {self.mode}")
        if self.context:
            details.append(self.context)
        if not details:
            return self.message
        return f"{self.message} [{'; '.join(details)}]"


class ConfigurationError(DirconLabBaseError):
    """
    Raised when a hybrid transcription is configured inconsistently.

    The program is never built from inconsistent input: nothing is truncated
    or padded to make the per-mode arrays fit.

    Examples:
        - Per-mode arrays whose lengths differ from the number of modes
        - A dynamics constraint whose output dimension is not the state dimension
        - Fewer than two samples in a mode
        - Minimum timestep larger than maximum timestep
    """

    pass


class DataIntegrityError(DirconLabBaseError):
    """
    Raised when internal data corruption or inconsistency is detected.

    This typically represents a bug in DirconLab or in a collaborator rather
    than user error.

    Examples:
        - A (mode, sample) pair outside the configured layout
        - NaN or infinite values in guesses or solved values
        - A slice that does not fit inside its variable group
    """

    pass


class SolutionExtractionError(DirconLabBaseError):
    """
    Raised when values cannot be read back from a program result.

    This occurs when a trajectory or variable value is requested from a
    result that does not carry values for the needed variable groups.
    """

    pass


class InterpolationError(DirconLabBaseError):
    """
    Raised when a piecewise trajectory cannot be built or evaluated.

    Typical causes are non-increasing sample times (for example zero
    timesteps in a solved program) or sample arrays with the wrong shape.
    """

    pass
