import os

# Keep module-level engine creation off the production database during tests.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
