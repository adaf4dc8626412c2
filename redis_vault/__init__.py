"""Redis Vault: ship Redis RDB snapshots to object storage and prune old ones."""

__version__ = "0.4.0"
