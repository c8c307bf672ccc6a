"""ORM models for batch run history."""

from chama_batch.models.batch import BatchRunModel

__all__ = ["BatchRunModel"]
