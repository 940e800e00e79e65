import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING
from typing import Any
from typing import Optional
from typing import Union

from index_migrator.exceptions import ConfigurationError

if TYPE_CHECKING:
    from index_migrator.copiers import ContentCopier

logger = logging.getLogger("index_migrator")

Body = Union[str, Mapping[str, Any]]


def _load_body(body: Body, description: str) -> dict[str, Any]:
    """Parse a settings or mapping body given as JSON text or as a mapping.

    :param body: JSON string or mapping
    :param str description: What the body is, used in error messages
    :return: A new dictionary with the body contents
    :raises ConfigurationError: When the JSON cannot be parsed or is not an object
    """
    if isinstance(body, Mapping):
        return dict(body)
    try:
        loaded = json.loads(body)
    except (TypeError, ValueError) as err:
        raise ConfigurationError(f"Invalid JSON for {description}: {err}") from err
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"The {description} must be a JSON object")
    return loaded


@dataclass(frozen=True)
class MigrationConfig:
    """Description of one index migration.

    Build it with :class:`MigrationConfigBuilder`; an instance is never
    modified once a migration starts.
    """

    target_name: str
    exact_name: bool = False
    copy_from: Optional[str] = None
    settings: Optional[Body] = None
    mappings: Mapping[str, Body] = field(default_factory=dict)
    settings_identifier: Optional[str] = None
    mappings_identifier: Optional[str] = None
    remove_old_indices: bool = False
    remove_old_alias: bool = False
    replace_with_alias: bool = False
    content_copier: Optional["ContentCopier"] = None

    def __post_init__(self) -> None:
        # Replace mode copies from the index named like the target and deletes
        # it, so its name is free for the alias.
        if self.replace_with_alias:
            object.__setattr__(self, "copy_from", self.target_name)
            object.__setattr__(self, "remove_old_indices", True)

    def validate(self) -> None:
        """Check the combination of options without contacting the cluster.

        :raises ConfigurationError: When the options cannot be honoured
        """
        if not self.target_name:
            raise ConfigurationError("A target index or alias name is required")
        if self.replace_with_alias and self.content_copier is None:
            raise ConfigurationError("replace-mode requires a content copier")
        # Parse the explicit bodies now so malformed JSON fails before any
        # cluster call.
        self.explicit_settings()
        self.explicit_mappings()

    def explicit_settings(self) -> Optional[dict[str, Any]]:
        if self.settings is None:
            return None
        return _load_body(self.settings, "index settings")

    def explicit_mappings(self) -> dict[str, dict[str, Any]]:
        return {
            doc_type: _load_body(body, f"mapping of type {doc_type}")
            for doc_type, body in self.mappings.items()
        }


class MigrationConfigBuilder:
    """Fluent accumulator for :class:`MigrationConfig`.

    By default a new index named ``<target>-<timestamp>`` is created, its
    settings, mappings and data are taken from the index the ``target`` alias
    points to, and the alias is moved to the new index. No cluster call is made
    by the builder.
    """

    def __init__(self, target_name: str) -> None:
        self._target_name = target_name
        self._exact_name = False
        self._copy_from: Optional[str] = None
        self._settings: Optional[Body] = None
        self._mappings: dict[str, Body] = {}
        self._settings_identifier: Optional[str] = None
        self._mappings_identifier: Optional[str] = None
        self._remove_old_indices = False
        self._remove_old_alias = False
        self._replace_with_alias = False
        self._content_copier: Optional["ContentCopier"] = None

    def settings(self, settings: Body) -> "MigrationConfigBuilder":
        """Use these settings instead of copying them from the source index."""
        self._settings = settings
        return self

    def add_mapping(self, doc_type: str, mapping: Body) -> "MigrationConfigBuilder":
        """Add the mapping for a type.

        Giving any mapping means no mapping is copied from the source index.
        Adding a type twice keeps the last mapping.
        """
        self._mappings[doc_type] = mapping
        return self

    def remove_old_indices(self) -> "MigrationConfigBuilder":
        """Delete the source index, or every index the alias pointed to."""
        self._remove_old_indices = True
        self._remove_old_alias = True
        return self

    def remove_old_alias(self) -> "MigrationConfigBuilder":
        """Only remove the alias from the old indices."""
        self._remove_old_alias = True
        return self

    def copy_old_data(self, copier: "ContentCopier") -> "MigrationConfigBuilder":
        self._content_copier = copier
        return self

    def copy_from(self, index: str) -> "MigrationConfigBuilder":
        """Copy settings, mappings and data from this concrete index."""
        self._copy_from = index
        return self

    def replace_with_alias(self) -> "MigrationConfigBuilder":
        """Replace the existing index named like the target by an alias.

        The data is copied into a timestamped index, the old index is deleted
        and an alias with its name is created.
        """
        self._replace_with_alias = True
        return self

    def use_index_as_exact_name(self) -> "MigrationConfigBuilder":
        """Create an index named exactly like the target, without alias."""
        self._exact_name = True
        return self

    def settings_identifier(self, identifier: str) -> "MigrationConfigBuilder":
        self._settings_identifier = identifier
        return self

    def mappings_identifier(self, identifier: str) -> "MigrationConfigBuilder":
        self._mappings_identifier = identifier
        return self

    def build(self) -> MigrationConfig:
        config = MigrationConfig(
            target_name=self._target_name,
            exact_name=self._exact_name,
            copy_from=self._copy_from,
            settings=self._settings,
            mappings=dict(self._mappings),
            settings_identifier=self._settings_identifier,
            mappings_identifier=self._mappings_identifier,
            remove_old_indices=self._remove_old_indices,
            remove_old_alias=self._remove_old_alias,
            replace_with_alias=self._replace_with_alias,
            content_copier=self._content_copier,
        )
        logger.debug("Migration configuration built: %s", config)
        return config


def config_from_request(
    request: Mapping[str, Any], copier: Optional["ContentCopier"] = None
) -> MigrationConfig:
    """Build a configuration from a copy index request.

    The request is a plain mapping, e.g. decoded from a JSON API call, with the
    keys ``name`` (required), ``copy_from``, ``copy_old_data``,
    ``remove_old_indices``, ``remove_old_alias``, ``mappings``, ``settings``,
    ``settings_identifier``, ``mappings_identifier`` and
    ``use_index_as_exact_name``.

    :param request: Copy index request
    :param copier: Content copier used when ``copy_old_data`` is set
    :return: The migration configuration
    :raises ConfigurationError: When the request is incomplete
    """
    name = request.get("name")
    if not name:
        raise ConfigurationError("The copy index request has no name")

    builder = MigrationConfigBuilder(name)
    if request.get("use_index_as_exact_name"):
        builder.use_index_as_exact_name()
    if request.get("copy_from"):
        builder.copy_from(request["copy_from"])
    if request.get("settings") is not None:
        builder.settings(request["settings"])
    for doc_type, mapping in (request.get("mappings") or {}).items():
        builder.add_mapping(doc_type, mapping)
    if request.get("settings_identifier"):
        builder.settings_identifier(request["settings_identifier"])
    if request.get("mappings_identifier"):
        builder.mappings_identifier(request["mappings_identifier"])
    if request.get("remove_old_indices"):
        builder.remove_old_indices()
    if request.get("remove_old_alias"):
        builder.remove_old_alias()
    if request.get("copy_old_data"):
        if copier is None:
            raise ConfigurationError(
                "The copy index request asks to copy data but no copier is available"
            )
        builder.copy_old_data(copier)

    return builder.build()
