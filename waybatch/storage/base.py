from __future__ import annotations

from abc import ABC, abstractmethod

from waybatch.storage.results import ResultStore


class ResultSink(ABC):
    # Whether intermediate results are written during the run
    checkpoints: bool = False

    @abstractmethod
    def write(self, store: ResultStore) -> None:
        raise NotImplementedError
