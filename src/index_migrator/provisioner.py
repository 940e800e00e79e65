import json
import logging
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from typing import Any
from typing import Optional

from index_migrator.config import MigrationConfig
from index_migrator.constants import INDEX_NAME_SEPARATOR
from index_migrator.constants import INDEX_TIMESTAMP_FORMAT
from index_migrator.constants import META_MAPPINGS_IDENTIFIER
from index_migrator.constants import META_SETTINGS_IDENTIFIER
from index_migrator.gateway import ClusterGateway
from index_migrator.resolver import ResolvedSource

logger = logging.getLogger("index_migrator")


@dataclass(frozen=True)
class ProvisionedIndex:
    """Name, settings and mappings of the index to create."""

    name: str
    settings: Optional[dict[str, Any]] = None
    mappings: dict[str, dict[str, Any]] = field(default_factory=dict)


def build_index_name(config: MigrationConfig, now: datetime) -> str:
    """Name of the new index.

    The target itself in exact name mode, else the target followed by the
    timestamp, e.g. ``shop-20230103000000``.
    """
    if config.exact_name:
        return config.target_name
    return INDEX_NAME_SEPARATOR.join(
        (config.target_name, now.strftime(INDEX_TIMESTAMP_FORMAT))
    )


def resolve_settings(
    config: MigrationConfig, source: ResolvedSource, gateway: ClusterGateway
) -> Optional[dict[str, Any]]:
    """Settings for the new index.

    Explicit settings get the settings and mappings identifiers added as
    metadata. Settings copied from the source index are used as they are, so
    the identifiers of the source are kept.

    :raises SourceNotFoundError: When the source index does not exist
    """
    settings = config.explicit_settings()
    if settings is not None:
        if config.settings_identifier is not None:
            settings[META_SETTINGS_IDENTIFIER] = config.settings_identifier
        if config.mappings_identifier is not None:
            settings[META_MAPPINGS_IDENTIFIER] = config.mappings_identifier
        return settings

    if source.copy_from is not None:
        logger.info('Copying settings from "%s"', source.copy_from)
        return gateway.get_settings(source.copy_from)

    logger.info("No settings configured, using the cluster defaults.")
    return None


def resolve_mappings(
    config: MigrationConfig, source: ResolvedSource, gateway: ClusterGateway
) -> dict[str, dict[str, Any]]:
    """Mappings for the new index, per type.

    When copying from the source index a type whose mapping cannot be
    serialized is left out and the other types are still used.

    :raises SourceNotFoundError: When the source index does not exist
    """
    mappings = config.explicit_mappings()
    if mappings:
        return mappings

    if source.copy_from is None:
        return {}

    logger.info('Copying mappings from "%s"', source.copy_from)
    copied = {}
    for doc_type, mapping in gateway.get_mappings(source.copy_from).items():
        try:
            copied[doc_type] = json.loads(json.dumps(mapping))
        except (TypeError, ValueError) as err:
            logger.warning(
                'Could not add the mapping for "%s" from the index "%s": %s',
                doc_type,
                source.copy_from,
                err,
            )
    return copied


def create_index(gateway: ClusterGateway, index: ProvisionedIndex) -> None:
    """Create the provisioned index.

    :raises IndexCreationError: When the cluster rejects the index
    """
    logger.info('Creating "%s" index ...', index.name)
    gateway.create_index(index.name, index.settings, index.mappings)
    logger.info("Index created.")
