"""
JSON serialization of crawl results to a file or a text stream.
"""

import json
import logging
from pathlib import Path
from typing import TextIO, Union

from ..crawler.task import CrawlResult


class ResultWriteError(Exception):
    """Custom exception for result serialization."""
    pass


class CrawlResultWriter:
    """Writes a CrawlResult as a JSON document."""

    def __init__(self, result: CrawlResult):
        if result is None:
            raise ValueError("result cannot be None")
        self.result = result
        self.logger = logging.getLogger(__name__)

    def to_json(self) -> str:
        return json.dumps(self.result.to_dict(), ensure_ascii=False, indent=2)

    def save_to_path(self, output_path: Union[str, Path]):
        """Write the result to ``output_path``, replacing any existing file."""
        output_path = Path(output_path)
        self.logger.debug(f"Saving crawl result to path: {output_path}")

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', encoding='utf-8') as f:
                self.save_to_stream(f)
        except OSError as e:
            self.logger.error(f"Failed to save crawl result to path {output_path}: {e}")
            raise ResultWriteError(f"Failed to save crawl result to path: {output_path}") from e

    def save_to_stream(self, stream: TextIO):
        """Write the result to an open text stream."""
        try:
            stream.write(self.to_json())
            stream.write('\n')
            stream.flush()
        except OSError as e:
            raise ResultWriteError(f"Failed to serialize crawl result: {e}") from e

        self.logger.info("Crawl result successfully serialized")
