"""Fatal refresh errors. Raising either one means nothing gets published."""

from typing import Iterable, List


class RefreshError(Exception):
    """Base exception for refresh failures."""
    pass


class AcquisitionExhaustedError(RefreshError):
    """Raised when players still fail after the last retry round."""

    def __init__(self, failed_ids: Iterable[str], rounds: int):
        self.failed_ids: List[str] = list(failed_ids)
        self.rounds = rounds
        preview = ", ".join(self.failed_ids[:10])
        super().__init__(
            f"{len(self.failed_ids)} players still failing after {rounds} retry rounds: {preview}"
        )


class DataIntegrityError(RefreshError):
    """Raised when a pre-publish integrity guard rejects a dataset."""

    def __init__(self, guard: str, detail: str):
        self.guard = guard
        self.detail = detail
        super().__init__(f"{guard}: {detail}")
