import copy
import fnmatch
from datetime import datetime
from typing import Any
from typing import Optional

import pytest

from index_migrator.exceptions import IndexAlreadyExistsError
from index_migrator.exceptions import SourceNotFoundError
from index_migrator.gateway import ClusterGateway


class InMemoryGateway(ClusterGateway):
    """Cluster kept in dictionaries, recording the operations it receives."""

    def __init__(self) -> None:
        self.indices: dict[str, dict[str, Any]] = {}
        self.aliases: dict[str, list[str]] = {}
        self.calls: list[tuple[Any, ...]] = []

    def add_index(
        self,
        name: str,
        settings: Optional[dict[str, Any]] = None,
        mappings: Optional[dict[str, Any]] = None,
        aliases: tuple[str, ...] = (),
    ) -> None:
        self.indices[name] = {"settings": settings, "mappings": mappings or {}}
        for alias in aliases:
            self.aliases.setdefault(alias, []).append(name)

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    def alias_exists(self, name):
        self.calls.append(("alias_exists", name))
        return bool(self.aliases.get(name))

    def get_alias_backing_indices(self, alias):
        self.calls.append(("get_alias_backing_indices", alias))
        return list(self.aliases.get(alias, []))

    def get_settings(self, index):
        self.calls.append(("get_settings", index))
        if index not in self.indices:
            raise SourceNotFoundError(f"Index {index} does not exist")
        return copy.deepcopy(self.indices[index]["settings"])

    def get_mappings(self, index):
        self.calls.append(("get_mappings", index))
        if index not in self.indices:
            raise SourceNotFoundError(f"Index {index} does not exist")
        return dict(self.indices[index]["mappings"])

    def create_index(self, index, settings, mappings):
        self.calls.append(("create_index", index, settings, mappings))
        if index in self.indices:
            raise IndexAlreadyExistsError(f"Index {index} already exists")
        self.indices[index] = {"settings": settings, "mappings": mappings}

    def update_aliases(self, adds, removes=()):
        adds = list(adds)
        removes = list(removes)
        self.calls.append(("update_aliases", adds, removes))
        for binding in removes:
            self.aliases[binding.alias] = [
                index
                for index in self.aliases.get(binding.alias, [])
                if not fnmatch.fnmatch(index, binding.index)
            ]
        for binding in adds:
            self.aliases.setdefault(binding.alias, []).append(binding.index)

    def delete_index(self, index):
        self.calls.append(("delete_index", index))
        if index not in self.indices:
            return False
        del self.indices[index]
        for indices in self.aliases.values():
            if index in indices:
                indices.remove(index)
        return True


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def shop_gateway(gateway: InMemoryGateway) -> InMemoryGateway:
    gateway.add_index(
        "shop-20230101000000",
        settings={"index.number_of_shards": "1"},
        mappings={"_doc": {"properties": {"name": {"type": "text"}}}},
        aliases=("shop",),
    )
    gateway.add_index(
        "shop-20230102000000",
        settings={"index.number_of_shards": "2"},
        mappings={"_doc": {"properties": {"name": {"type": "keyword"}}}},
        aliases=("shop",),
    )
    return gateway


@pytest.fixture
def clock():
    return lambda: datetime(2023, 1, 3, 0, 0, 0)
