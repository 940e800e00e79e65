import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from index_migrator.aliases import create_alias
from index_migrator.aliases import move_alias
from index_migrator.aliases import remove_old_indices
from index_migrator.config import MigrationConfig
from index_migrator.copiers import copy_content
from index_migrator.exceptions import IndexMigratorError
from index_migrator.gateway import ClusterGateway
from index_migrator.provisioner import ProvisionedIndex
from index_migrator.provisioner import build_index_name
from index_migrator.provisioner import create_index
from index_migrator.provisioner import resolve_mappings
from index_migrator.provisioner import resolve_settings
from index_migrator.resolver import ResolvedSource
from index_migrator.resolver import resolve_source

logger = logging.getLogger("index_migrator")


class MigrationState(enum.Enum):
    PENDING = "pending"
    VALIDATE = "validate"
    RESOLVE_NAMING = "resolve_naming"
    RESOLVE_SOURCE = "resolve_source"
    RESOLVE_SETTINGS = "resolve_settings"
    RESOLVE_MAPPINGS = "resolve_mappings"
    CREATE_INDEX = "create_index"
    COPY_DATA = "copy_data"
    MOVE_ALIAS = "move_alias"
    REMOVE_OLD_INDICES = "remove_old_indices"
    CREATE_ALIAS = "create_alias"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class MigrationResult:
    """Outcome of a successful migration."""

    index: str
    alias: Optional[str] = None
    copied_from: Optional[str] = None
    removed_indices: tuple[str, ...] = ()
    removed_alias: Optional[str] = None
    documents_copied: Optional[int] = None


class IndexMigrator:
    """Runs the migration protocol for one configuration.

    The steps run in a fixed order and none is retried. When a step fails the
    error is raised with its ``state`` set, and whatever the previous steps
    did to the cluster stays in place: a new index may exist without data, or
    with data but without the alias. Migrations targeting the same alias must
    not run concurrently.
    """

    def __init__(
        self,
        gateway: ClusterGateway,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize with the cluster gateway.

        :param ClusterGateway gateway: Cluster administration operations
        :param clock: Returns the time used to name new indices
        """
        self.gateway = gateway
        self.clock = clock
        self.state = MigrationState.PENDING

    def _enter(self, state: MigrationState) -> None:
        logger.debug("Migration state: %s", state.value)
        self.state = state

    def execute(self, config: MigrationConfig) -> MigrationResult:
        """Migrate the target to a new index.

        :param MigrationConfig config: Migration to run
        :return: MigrationResult describing the live index
        :raises IndexMigratorError: When any step fails
        """
        logger.info('Starting migration of "%s"', config.target_name)
        try:
            result = self._run(config)
        except IndexMigratorError as err:
            err.state = self.state
            logger.error(
                'Migration of "%s" failed during %s: %s',
                config.target_name,
                self.state.value,
                err,
            )
            self.state = MigrationState.FAILED
            raise

        self._enter(MigrationState.DONE)
        logger.info(
            'Migration of "%s" finished, "%s" is live.',
            config.target_name,
            result.index,
        )
        return result

    def _run(self, config: MigrationConfig) -> MigrationResult:
        self._enter(MigrationState.VALIDATE)
        config.validate()

        self._enter(MigrationState.RESOLVE_NAMING)
        name = build_index_name(config, self.clock())

        self._enter(MigrationState.RESOLVE_SOURCE)
        source: ResolvedSource = resolve_source(config, self.gateway)

        self._enter(MigrationState.RESOLVE_SETTINGS)
        settings = resolve_settings(config, source, self.gateway)

        self._enter(MigrationState.RESOLVE_MAPPINGS)
        mappings = resolve_mappings(config, source, self.gateway)

        self._enter(MigrationState.CREATE_INDEX)
        index = ProvisionedIndex(name=name, settings=settings, mappings=mappings)
        create_index(self.gateway, index)

        self._enter(MigrationState.COPY_DATA)
        documents_copied = copy_content(
            config.content_copier, source.copy_from, index.name
        )

        alias = None
        removed_alias = None
        if not config.exact_name and not config.replace_with_alias:
            self._enter(MigrationState.MOVE_ALIAS)
            removed_alias = move_alias(config, self.gateway, index.name, source)
            alias = config.target_name

        self._enter(MigrationState.REMOVE_OLD_INDICES)
        removed_indices = remove_old_indices(config, source, self.gateway)

        if config.replace_with_alias:
            self._enter(MigrationState.CREATE_ALIAS)
            create_alias(config, self.gateway, index.name)
            alias = config.target_name

        return MigrationResult(
            index=index.name,
            alias=alias,
            copied_from=source.copy_from,
            removed_indices=removed_indices,
            removed_alias=removed_alias,
            documents_copied=documents_copied,
        )


def execute(
    config: MigrationConfig,
    gateway: ClusterGateway,
    clock: Callable[[], datetime] = datetime.now,
) -> MigrationResult:
    """Run a single migration with a new :class:`IndexMigrator`."""
    return IndexMigrator(gateway, clock=clock).execute(config)
