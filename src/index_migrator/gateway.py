import logging
from abc import ABC
from abc import abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from typing import Optional
from typing import Union

from elasticsearch import ApiError
from elasticsearch import Elasticsearch
from elasticsearch import NotFoundError
from elasticsearch import TransportError

from index_migrator.constants import DEFAULT_TIMEOUT
from index_migrator.constants import DOC_TYPE
from index_migrator.constants import PRIVATE_INDEX_SETTINGS
from index_migrator.exceptions import AliasUpdateError
from index_migrator.exceptions import IndexAlreadyExistsError
from index_migrator.exceptions import IndexCreationError
from index_migrator.exceptions import IndexDeletionError
from index_migrator.exceptions import IndexMigratorError
from index_migrator.exceptions import SourceNotFoundError

logger = logging.getLogger("index_migrator")


_gateway_instance: Optional["ClusterGateway"] = None

# Keys found at the root of a typeless mapping. A mapping response whose root
# holds any of them has no type level.
_MAPPING_ROOT_KEYS = frozenset(
    {
        "properties",
        "dynamic",
        "dynamic_templates",
        "date_detection",
        "numeric_detection",
        "runtime",
        "_source",
        "_meta",
        "_routing",
    }
)


@dataclass(frozen=True)
class AliasBinding:
    """An alias pointing at an index (or at an index pattern)."""

    index: str
    alias: str


class ClusterGateway(ABC):
    """Index and alias administration operations needed by a migration."""

    @abstractmethod
    def alias_exists(self, name: str) -> bool:
        """Check if an alias with the given name exists.

        :param str name: Alias name
        :return: True when ``name`` is an alias
        """
        pass

    @abstractmethod
    def get_alias_backing_indices(self, alias: str) -> list[str]:
        """List the concrete indices the alias points to.

        :param str alias: Alias name
        :return: Index names, empty when the alias does not exist
        """
        pass

    @abstractmethod
    def get_settings(self, index: str) -> dict[str, Any]:
        """Get the settings of an index.

        :param str index: Index name
        :return: Settings that can be used to create another index
        :raises SourceNotFoundError: When the index does not exist
        """
        pass

    @abstractmethod
    def get_mappings(self, index: str) -> dict[str, Any]:
        """Get the mappings of an index keyed by type.

        :param str index: Index name
        :return: Mapping body per type
        :raises SourceNotFoundError: When the index does not exist
        """
        pass

    @abstractmethod
    def create_index(
        self,
        index: str,
        settings: Optional[dict[str, Any]],
        mappings: dict[str, dict[str, Any]],
    ) -> None:
        """Create an index in one request.

        :param str index: Name of the index to create
        :param settings: Index settings, cluster defaults when None
        :param mappings: Mapping body per type
        :raises IndexCreationError: When the cluster rejects the index
        """
        pass

    @abstractmethod
    def update_aliases(
        self, adds: Iterable[AliasBinding], removes: Iterable[AliasBinding] = ()
    ) -> None:
        """Apply alias removals and additions in a single atomic request.

        :param adds: Bindings to add
        :param removes: Bindings to remove, applied before the additions
        :raises AliasUpdateError: When the cluster rejects the actions
        """
        pass

    @abstractmethod
    def delete_index(self, index: str) -> bool:
        """Delete an index, doing nothing when it does not exist.

        :param str index: Name of the index to delete
        :return: True when the index existed and was deleted
        :raises IndexDeletionError: When the cluster fails to delete it
        """
        pass


def _strip_private_settings(settings: dict[str, Any]) -> dict[str, Any]:
    """Remove the flat settings that the cluster generates for every index."""
    private = tuple(f"index.{key}" for key in PRIVATE_INDEX_SETTINGS)
    return {
        key: value
        for key, value in settings.items()
        if not any(key == p or key.startswith(p + ".") for p in private)
    }


class ElasticsearchGateway(ClusterGateway):
    """Elasticsearch implementation of ClusterGateway."""

    def __init__(self, client: Elasticsearch, doc_type: str = DOC_TYPE) -> None:
        """Initialize with Elasticsearch client and configuration.

        :param Elasticsearch client: Elasticsearch client instance
        :param str doc_type: Type used for typeless mappings
        """
        self.client = client
        self.doc_type = doc_type

    def alias_exists(self, name: str) -> bool:
        try:
            return bool(self.client.indices.exists_alias(name=name))
        except (ApiError, TransportError) as err:
            raise IndexMigratorError(f"Unable to check alias {name}: {err}") from err

    def get_alias_backing_indices(self, alias: str) -> list[str]:
        try:
            response = self.client.indices.get_alias(name=alias)
        except NotFoundError:
            logger.info('Alias "%s" does not exist.', alias)
            return []
        except (ApiError, TransportError) as err:
            raise IndexMigratorError(
                f"Unable to get the indices of alias {alias}: {err}"
            ) from err
        return list(dict(response).keys())

    def get_settings(self, index: str) -> dict[str, Any]:
        try:
            response = dict(
                self.client.indices.get_settings(index=index, flat_settings=True)
            )
        except NotFoundError as err:
            raise SourceNotFoundError(f"Index {index} does not exist") from err
        except (ApiError, TransportError) as err:
            raise IndexMigratorError(
                f"Unable to get the settings of {index}: {err}"
            ) from err
        entry = response.get(index)
        if entry is None:
            raise SourceNotFoundError(f"No settings returned for index {index}")
        return _strip_private_settings(entry["settings"])

    def get_mappings(self, index: str) -> dict[str, Any]:
        try:
            response = dict(self.client.indices.get_mapping(index=index))
        except NotFoundError as err:
            raise SourceNotFoundError(f"Index {index} does not exist") from err
        except (ApiError, TransportError) as err:
            raise IndexMigratorError(
                f"Unable to get the mappings of {index}: {err}"
            ) from err
        entry = response.get(index)
        if entry is None:
            raise SourceNotFoundError(f"No mappings returned for index {index}")
        mappings = entry["mappings"]
        if not mappings or _MAPPING_ROOT_KEYS.intersection(mappings):
            return {self.doc_type: mappings}
        return mappings

    def _mappings_body(
        self, mappings: dict[str, dict[str, Any]]
    ) -> Optional[dict[str, Any]]:
        """Build the mappings of a create index request.

        A payload with only the configured type is sent typeless.
        """
        if not mappings:
            return None
        if set(mappings) == {self.doc_type}:
            return mappings[self.doc_type]
        return mappings

    def create_index(
        self,
        index: str,
        settings: Optional[dict[str, Any]],
        mappings: dict[str, dict[str, Any]],
    ) -> None:
        logger.debug(
            'Creating index "%s" with settings %s and mappings %s',
            index,
            settings,
            mappings,
        )
        try:
            self.client.indices.create(
                index=index,
                settings=settings or None,
                mappings=self._mappings_body(mappings),
            )
        except ApiError as err:
            if err.error == "resource_already_exists_exception":
                raise IndexAlreadyExistsError(f"Index {index} already exists") from err
            raise IndexCreationError(f"Unable to create index {index}: {err}") from err
        except TransportError as err:
            raise IndexCreationError(f"Unable to create index {index}: {err}") from err

    def update_aliases(
        self, adds: Iterable[AliasBinding], removes: Iterable[AliasBinding] = ()
    ) -> None:
        actions: list[dict[str, Any]] = [
            {"remove": {"index": binding.index, "alias": binding.alias}}
            for binding in removes
        ]
        actions.extend(
            {"add": {"index": binding.index, "alias": binding.alias}}
            for binding in adds
        )
        if not actions:
            return

        logger.debug("Updating aliases with actions %s", actions)
        try:
            self.client.indices.update_aliases(actions=actions)
        except (ApiError, TransportError) as err:
            raise AliasUpdateError(f"Unable to update aliases: {err}") from err

    def delete_index(self, index: str) -> bool:
        try:
            response = self.client.options(ignore_status=404).indices.delete(
                index=index
            )
        except (ApiError, TransportError) as err:
            raise IndexDeletionError(f"Unable to delete index {index}: {err}") from err
        return response.meta.status != 404


def _create_elasticsearch_client(
    hosts: Union[str, list[str], tuple[str, ...]], timeout: int = DEFAULT_TIMEOUT
) -> Elasticsearch:
    """Create configured Elasticsearch client.

    :param hosts: Elasticsearch hosts (string, list or tuple)
    :param timeout: Request timeout in seconds
    :return: Configured Elasticsearch client
    """
    return Elasticsearch(hosts, request_timeout=timeout)


def setup_gateway(
    hosts: Union[str, list[str], tuple[str, ...]], timeout: int = DEFAULT_TIMEOUT
) -> ClusterGateway:
    """Initialize and return the cluster gateway with an Elasticsearch client.

    :param hosts: Elasticsearch hosts (string, list or tuple)
    :param timeout: Request timeout in seconds
    :return: Configured ClusterGateway instance
    """
    global _gateway_instance

    client = _create_elasticsearch_client(hosts, timeout)
    _gateway_instance = ElasticsearchGateway(client)
    return _gateway_instance


def setup_gateway_from_conf(settings: Any) -> ClusterGateway:
    """Initialize the cluster gateway using Django settings.

    :param settings: Django settings object
    :return: Configured ClusterGateway instance
    """
    return setup_gateway(
        settings.ELASTICSEARCH_SERVER,
        getattr(settings, "ELASTICSEARCH_TIMEOUT", DEFAULT_TIMEOUT),
    )


def get_gateway_instance() -> Optional["ClusterGateway"]:
    """Get the current cluster gateway if initialized.

    :return: ClusterGateway instance or None if not initialized
    """
    return _gateway_instance
