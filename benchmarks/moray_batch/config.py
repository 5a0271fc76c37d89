"""Default parameters for the Moray sequential-vs-batch update benchmark."""

# Bucket the benchmark creates (if absent) and writes into. Never deleted.
BUCKET_NAME = "rust_batch_test_bucket"

# Index configuration used when the bucket has to be created.
BUCKET_INDEX = {
    "dirname": {"type": "string"},
    "name": {"type": "string"},
    "owner": {"type": "string"},
    "objectId": {"type": "string"},
    "type": {"type": "string"},
}

# Number of objects seeded before the update passes.
DEFAULT_OBJECT_COUNT = 10_000

# Objects per batch request in the batched strategy.
DEFAULT_BATCH_SIZE = 50

# Moray shard and DNS domain handed to the bridge for service discovery.
DEFAULT_SHARD = 1
DEFAULT_DOMAIN = "perf2.scloud.host"

# Length of the random datacenter names written by each mutation.
DATACENTER_NAME_LENGTH = 10

# Storage ids are 16-bit.
MAX_STORAGE_ID = 65535

# Suffix appended to a storage id to form a shark's manta_storage_id.
STORAGE_DOMAIN_SUFFIX = "stor.domain"
