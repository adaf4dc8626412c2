"""Allow running with ``python -m redis_vault``."""

from redis_vault.cli import app

if __name__ == "__main__":
    app()
