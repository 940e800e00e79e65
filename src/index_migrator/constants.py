DEFAULT_TIMEOUT = 10
# Document type used when talking to typeless (7.x and later) clusters. Mappings
# fetched from such clusters are keyed under it, and a mappings payload that
# only carries this type is sent without the type level.
DOC_TYPE = "_doc"

# Suffix appended to the alias name when a new index is synthesized, e.g.
# `shop-20230103000000`. Second resolution only.
INDEX_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
INDEX_NAME_SEPARATOR = "-"

META_SETTINGS_IDENTIFIER = "_meta.settings_identifier"
META_MAPPINGS_IDENTIFIER = "_meta.mappings_identifier"

# Settings generated by the cluster for every index. They are reported by the
# get settings API but rejected by the create index API.
PRIVATE_INDEX_SETTINGS = (
    "uuid",
    "creation_date",
    "provided_name",
    "version",
    "routing.allocation.initial_recovery",
    "resize",
)

DEFAULT_CHUNK_SIZE = 500
DEFAULT_SCROLL = "5m"
