from __future__ import annotations

from dataclasses import dataclass, field


class NetworkIntelError(Exception):
    """Base class for errors raised by the network intelligence services."""


class NotFoundError(NetworkIntelError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InvalidInputError(NetworkIntelError):
    pass


class UpstreamUnavailableError(NetworkIntelError):
    pass


@dataclass
class BatchResult:
    processed: int = 0
    skipped: int = 0
    failures: list[dict] = field(default_factory=list)
    items: list[dict] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.processed + self.skipped

    def record_failure(self, item_id: str, error: BaseException) -> None:
        self.skipped += 1
        self.failures.append({"id": item_id, "error": f"{type(error).__name__}: {error}"})

    def raise_for_failures(self) -> None:
        if self.skipped:
            raise PartialBatchFailure(self)

    def as_dict(self) -> dict:
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "failures": list(self.failures),
        }


class PartialBatchFailure(NetworkIntelError):
    def __init__(self, result: BatchResult) -> None:
        super().__init__(f"{result.skipped} of {result.total} batch items failed")
        self.result = result
