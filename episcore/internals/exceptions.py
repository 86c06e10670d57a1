from __future__ import annotations

from typing import List, Union


def format_text_as_red(text):
    return f"\033[91m{text}\033[0m"


# base class for any type of custom exception
class EpiscoreException(Exception):
    pass


class InvalidEpiscoreInput(EpiscoreException):
    pass


class EmptyPartitionException(EpiscoreException):
    """Raised when a partition holds no records, so its check weights are
    undefined and any adjusted score computed against them would be
    meaningless."""

    def __init__(self, empty_partitions: list):
        self.empty_partitions = list(empty_partitions)
        partitions = ", ".join(repr(p) for p in self.empty_partitions)
        super().__init__(
            f"No records were found for partition(s) {partitions}, so check "
            "weights cannot be derived for them. Remove the partition(s) from "
            "the input or set `allow_empty_partitions=True` in your settings "
            "to carry them with null weights."
        )


class ErrorLogger:
    """Collate errors into a single list and then raise them together.

    The raised error defaults to `EpiscoreException`, though this can be changed.
    """

    def __init__(self):
        self.error_queue: List[str] = []  # error queue for formatted errors
        # Raw input errors. Used for debugging.
        self.raw_errors: List[Union[str, Exception]] = []

    @property
    def errors(self) -> str:
        """Return concatenated error messages."""

        return "\n\n".join([f"{e}" for e in self.error_queue])

    def log_error(self, error: Union[list, str, Exception]) -> None:
        if isinstance(error, (list, tuple)):
            for e in error:
                self._log_single_error(e)
        else:
            self._log_single_error(error)

    def _log_single_error(self, error: Union[str, Exception]) -> None:
        if error is None:
            return

        self.raw_errors.append(error)
        self.error_queue.append(self._format_error(error))

    def _format_error(self, error: Union[str, Exception]) -> str:
        if isinstance(error, Exception):
            return f"{format_text_as_red(error.__class__.__name__)}: {error}"
        elif isinstance(error, str):
            return f"{error}"
        else:
            raise ValueError("Error must be a string or an Exception instance.")

    def raise_and_log_all_errors(
        self, exception=EpiscoreException, additional_txt=""
    ) -> None:
        """Raise a custom exception with all logged errors.

        Args:
            exception: The type of exception to raise (default is
                EpiscoreException).
            additional_txt: Additional text to append to the error message.
        """
        if self.error_queue:
            error_message = f"\n{self.errors}\n{additional_txt}"
            raise exception(error_message)
