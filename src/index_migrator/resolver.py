import logging
from dataclasses import dataclass
from typing import Optional

from index_migrator.config import MigrationConfig
from index_migrator.exceptions import SourceIsAliasError
from index_migrator.gateway import ClusterGateway

logger = logging.getLogger("index_migrator")


@dataclass(frozen=True)
class ResolvedSource:
    """The index to copy from and, when found through the alias, its siblings.

    ``candidate_indices`` is only filled when the source was discovered by
    looking up the target alias; those are the indices removed on cleanup.
    """

    copy_from: Optional[str] = None
    candidate_indices: tuple[str, ...] = ()


def resolve_source(config: MigrationConfig, gateway: ClusterGateway) -> ResolvedSource:
    """Decide which existing index settings, mappings and data come from.

    An explicit source must be a concrete index. Otherwise, in the default
    mode, the indices behind the target alias are listed and the most recent
    one is used. Index names end in a fixed width timestamp, so sorting them
    sorts them in creation order.

    :raises SourceIsAliasError: When the explicit source is an alias
    """
    if config.copy_from is not None:
        if gateway.alias_exists(config.copy_from):
            raise SourceIsAliasError(
                f"The index to copy from, {config.copy_from}, is an alias"
            )
        logger.info('Copying from configured index "%s"', config.copy_from)
        return ResolvedSource(copy_from=config.copy_from)

    if config.exact_name or config.replace_with_alias:
        return ResolvedSource()

    candidates = tuple(sorted(gateway.get_alias_backing_indices(config.target_name)))
    if not candidates:
        logger.info(
            'Alias "%s" does not point to any index, nothing to copy from.',
            config.target_name,
        )
        return ResolvedSource()

    if len(candidates) > 1:
        logger.warning(
            'Alias "%s" points to %d indices %s, copying from the last one.',
            config.target_name,
            len(candidates),
            ", ".join(candidates),
        )
    logger.info(
        'Copying from "%s" found through alias "%s"',
        candidates[-1],
        config.target_name,
    )
    return ResolvedSource(copy_from=candidates[-1], candidate_indices=candidates)
