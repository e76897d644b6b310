import logging
from pathlib import Path

from waybatch.storage.base import ResultSink
from waybatch.storage.results import ResultStore

logger = logging.getLogger(__name__)


class FileResultSink(ResultSink):
    checkpoints = True

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def write(self, store: ResultStore) -> None:
        # Truncate and rewrite; errors propagate and abort the run
        self.path.write_text(store.to_json(), encoding="utf-8")
        logger.debug("Wrote %d results to %s", len(store), self.path)
