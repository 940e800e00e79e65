import logging
from abc import ABC
from abc import abstractmethod
from collections.abc import Generator
from typing import Any
from typing import Optional

from elasticsearch import Elasticsearch
from elasticsearch.helpers import bulk
from elasticsearch.helpers import scan

from index_migrator.constants import DEFAULT_CHUNK_SIZE
from index_migrator.constants import DEFAULT_SCROLL
from index_migrator.exceptions import ContentCopyError

logger = logging.getLogger("index_migrator")


class ContentCopier(ABC):
    """Copies the documents of one index into another."""

    @abstractmethod
    def copy(self, source_index: str, target_index: str) -> Optional[int]:
        """Copy all documents from the source index into the target index.

        Blocks until the copy is finished.

        :param str source_index: Index to read the documents from
        :param str target_index: Index to write the documents to
        :return: Number of documents copied, if known
        """
        pass


class ScrollAndBulkContentCopier(ContentCopier):
    """Reads the source with a scroll and writes the target with bulk requests."""

    def __init__(
        self,
        client: Elasticsearch,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        scroll: str = DEFAULT_SCROLL,
    ) -> None:
        """Initialize with Elasticsearch client and batch configuration.

        :param Elasticsearch client: Elasticsearch client instance
        :param int chunk_size: Documents per scroll page and per bulk request
        :param str scroll: How long the scroll context is kept between pages
        """
        self.client = client
        self.chunk_size = chunk_size
        self.scroll = scroll

    def _actions(
        self, source_index: str, target_index: str
    ) -> Generator[dict[str, Any], None, None]:
        hits = scan(
            self.client,
            index=source_index,
            query={"query": {"match_all": {}}},
            scroll=self.scroll,
            size=self.chunk_size,
        )
        for hit in hits:
            action = {
                "_index": target_index,
                "_id": hit["_id"],
                "_source": hit["_source"],
            }
            if "_routing" in hit:
                action["_routing"] = hit["_routing"]
            yield action

    def copy(self, source_index: str, target_index: str) -> Optional[int]:
        logger.info('Copying documents from "%s" to "%s"', source_index, target_index)
        success, _ = bulk(
            self.client,
            self._actions(source_index, target_index),
            chunk_size=self.chunk_size,
            stats_only=False,
        )
        logger.info("Copied %d documents.", success)
        return success


class ReindexContentCopier(ContentCopier):
    """Delegates the copy to the server side reindex API."""

    def __init__(self, client: Elasticsearch) -> None:
        self.client = client

    def copy(self, source_index: str, target_index: str) -> Optional[int]:
        logger.info('Reindexing "%s" into "%s"', source_index, target_index)
        response = dict(
            self.client.reindex(
                source={"index": source_index},
                dest={"index": target_index},
                wait_for_completion=True,
                refresh=True,
            )
        )
        failures = response.get("failures") or []
        if failures:
            raise ContentCopyError(
                f"Reindexing {source_index} into {target_index} "
                f"failed for {len(failures)} document(s): {failures[0]}"
            )
        return response.get("total")


def copy_content(
    copier: Optional[ContentCopier], source_index: Optional[str], target_index: str
) -> Optional[int]:
    """Run the copier when one is configured and there is an index to copy from.

    :return: What the copier returned, None when nothing was copied
    :raises ContentCopyError: When the copier fails
    """
    if copier is None or source_index is None:
        return None

    try:
        return copier.copy(source_index, target_index)
    except ContentCopyError:
        raise
    except Exception as err:
        raise ContentCopyError(
            f"Unable to copy documents from {source_index} to {target_index}: {err}"
        ) from err
