from index_migrator.config import MigrationConfig
from index_migrator.config import MigrationConfigBuilder
from index_migrator.orchestrator import IndexMigrator
from index_migrator.orchestrator import MigrationResult
from index_migrator.orchestrator import execute

__all__ = [
    "IndexMigrator",
    "MigrationConfig",
    "MigrationConfigBuilder",
    "MigrationResult",
    "execute",
]
