import sys
from typing import TextIO

from waybatch.storage.base import ResultSink
from waybatch.storage.results import ResultStore


class ConsoleResultSink(ResultSink):
    """Prints the final mapping when no output file is configured."""

    checkpoints = False

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream

    def write(self, store: ResultStore) -> None:
        print(store.to_json(), file=self.stream or sys.stdout)
