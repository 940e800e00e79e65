import fnmatch
import logging
from typing import Optional

from index_migrator.config import MigrationConfig
from index_migrator.constants import INDEX_NAME_SEPARATOR
from index_migrator.gateway import AliasBinding
from index_migrator.gateway import ClusterGateway
from index_migrator.resolver import ResolvedSource

logger = logging.getLogger("index_migrator")


def _old_indices_pattern(alias: str) -> str:
    return f"{alias}{INDEX_NAME_SEPARATOR}*"


def move_alias(
    config: MigrationConfig,
    gateway: ClusterGateway,
    index: str,
    source: ResolvedSource = ResolvedSource(),
) -> Optional[str]:
    """Point the target alias at the new index.

    Removing the alias from the old timestamped indices and adding it to the
    new one happen in the same request. The removal is only sent when one of
    the indices behind the alias matches the old indices pattern.

    :return: The index pattern the alias was removed from, if any
    :raises AliasUpdateError: When the cluster rejects the alias actions
    """
    alias = config.target_name
    removes = []
    if config.remove_old_alias:
        pattern = _old_indices_pattern(alias)
        bound = source.candidate_indices or gateway.get_alias_backing_indices(alias)
        if any(fnmatch.fnmatch(name, pattern) for name in bound):
            removes.append(AliasBinding(pattern, alias))
        else:
            logger.info('No index matching "%s" holds alias "%s".', pattern, alias)

    logger.info('Moving alias "%s" to "%s"', alias, index)
    gateway.update_aliases([AliasBinding(index, alias)], removes)
    return removes[0].index if removes else None


def remove_old_indices(
    config: MigrationConfig, source: ResolvedSource, gateway: ClusterGateway
) -> tuple[str, ...]:
    """Delete the indices that were behind the alias, or the explicit source.

    :return: Names of the indices that were deleted
    :raises IndexDeletionError: When the cluster fails to delete an index
    """
    if not config.remove_old_indices:
        return ()

    if source.candidate_indices:
        indices = source.candidate_indices
    elif source.copy_from is not None:
        indices = (source.copy_from,)
    else:
        logger.info("No old indices to remove.")
        return ()

    removed = []
    for index in indices:
        logger.info('Deleting old index "%s"', index)
        if gateway.delete_index(index):
            removed.append(index)
        else:
            logger.warning('Index "%s" does not exist. Skipping.', index)
    return tuple(removed)


def create_alias(config: MigrationConfig, gateway: ClusterGateway, index: str) -> None:
    """Add the target alias to the new index, without removing it elsewhere.

    :raises AliasUpdateError: When the cluster rejects the alias action
    """
    logger.info('Creating alias "%s" for "%s"', config.target_name, index)
    gateway.update_aliases([AliasBinding(index, config.target_name)])
