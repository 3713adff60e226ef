"""FastAPI service and PostgreSQL adapter for the reorganization runtime."""
