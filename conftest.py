"""Global pytest configuration."""

import os

# Configure the gateway for tests before any imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("SEED_DATABASE", "false")
