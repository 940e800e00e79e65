"""Migrate an index to a new timestamped index behind an alias.

Creates a new index named after the target followed by a timestamp, with the
settings and mappings given as files or copied from the index the target
alias points to, optionally copies the documents and moves the alias to the
new index.

Execution examples:

./manage.py migrate_index shop --copy-data --remove-old-indices

./manage.py migrate_index shop \
    --settings-file settings.json --mapping _doc=mapping.json \
    --settings-identifier v2 --mappings-identifier v2
"""

from django.conf import settings
from django.core.management.base import CommandError

from index_migrator.config import MigrationConfigBuilder
from index_migrator.constants import DEFAULT_CHUNK_SIZE
from index_migrator.copiers import ScrollAndBulkContentCopier
from index_migrator.exceptions import IndexMigratorError
from index_migrator.gateway import setup_gateway
from index_migrator.gateway import setup_gateway_from_conf
from index_migrator.management.commands import MigratorCommand
from index_migrator.orchestrator import IndexMigrator


def _read_file(path):
    try:
        with open(path) as f:
            return f.read()
    except OSError as err:
        raise CommandError(f"Unable to read {path}: {err}")


class Command(MigratorCommand):
    help = __doc__

    def add_arguments(self, parser):
        """Entry point to add custom arguments."""
        parser.add_argument(
            "target", help="Name of the alias, or of the index with --exact-name."
        )
        parser.add_argument(
            "--exact-name",
            action="store_true",
            help="Create an index named exactly like the target, without alias.",
        )
        parser.add_argument(
            "--copy-from",
            help="Concrete index to copy settings, mappings and data from.",
        )
        parser.add_argument(
            "--settings-file", help="JSON file with the settings of the new index."
        )
        parser.add_argument(
            "--mapping",
            action="append",
            default=[],
            metavar="TYPE=FILE",
            help="JSON file with the mapping of a type. Can be repeated.",
        )
        parser.add_argument(
            "--settings-identifier", help="Identifier stored in the index metadata."
        )
        parser.add_argument(
            "--mappings-identifier", help="Identifier stored in the index metadata."
        )
        parser.add_argument(
            "--remove-old-indices",
            action="store_true",
            help="Delete the indices the alias pointed to, or the --copy-from index.",
        )
        parser.add_argument(
            "--remove-old-alias",
            action="store_true",
            help="Remove the alias from the old indices.",
        )
        parser.add_argument(
            "--replace-with-alias",
            action="store_true",
            help="Replace the index named like the target by an alias. "
            "Requires --copy-data.",
        )
        parser.add_argument(
            "--copy-data",
            action="store_true",
            help="Copy the documents into the new index.",
        )
        parser.add_argument(
            "--chunk-size",
            type=int,
            default=DEFAULT_CHUNK_SIZE,
            help=f"Documents per request when copying. Default: {DEFAULT_CHUNK_SIZE}.",
        )
        parser.add_argument(
            "-t",
            "--timeout",
            type=int,
            default=None,
            help="Request timeout, in seconds. Default: ELASTICSEARCH_TIMEOUT.",
        )

    def handle(self, *args, **options):
        if options["timeout"]:
            gateway = setup_gateway(settings.ELASTICSEARCH_SERVER, options["timeout"])
        else:
            gateway = setup_gateway_from_conf(settings)

        builder = MigrationConfigBuilder(options["target"])
        if options["exact_name"]:
            builder.use_index_as_exact_name()
        if options["copy_from"]:
            builder.copy_from(options["copy_from"])
        if options["settings_file"]:
            builder.settings(_read_file(options["settings_file"]))
        for mapping in options["mapping"]:
            doc_type, sep, path = mapping.partition("=")
            if not sep or not doc_type or not path:
                raise CommandError(f"Invalid mapping {mapping!r}, expected TYPE=FILE.")
            builder.add_mapping(doc_type, _read_file(path))
        if options["settings_identifier"]:
            builder.settings_identifier(options["settings_identifier"])
        if options["mappings_identifier"]:
            builder.mappings_identifier(options["mappings_identifier"])
        if options["remove_old_indices"]:
            builder.remove_old_indices()
        if options["remove_old_alias"]:
            builder.remove_old_alias()
        if options["replace_with_alias"]:
            builder.replace_with_alias()
        if options["copy_data"]:
            builder.copy_old_data(
                ScrollAndBulkContentCopier(
                    gateway.client, chunk_size=options["chunk_size"]
                )
            )

        try:
            result = IndexMigrator(gateway).execute(builder.build())
        except IndexMigratorError as err:
            raise CommandError(f"Migration of {options['target']} failed: {err}")

        if result.copied_from:
            self.info(f"Copied from {result.copied_from}.")
        if result.documents_copied is not None:
            self.info(f"Documents copied: {result.documents_copied}.")
        for index in result.removed_indices:
            self.info(f"Deleted old index {index}.")
        if options["remove_old_indices"] and not result.removed_indices:
            self.warning("No old index was deleted.")
        if result.alias:
            self.success(f"Index {result.index} is live behind alias {result.alias}.")
        else:
            self.success(f"Index {result.index} created.")
