"""Building blocks for a Couchbase DCP consumer: configuration, checkpoints, membership and rollback bookkeeping."""

__version__ = "0.1.0"