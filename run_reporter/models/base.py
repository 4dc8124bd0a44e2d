"""Frozen pydantic base shared by reporter models."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Immutable base for test-case records and run aggregates."""

    model_config = ConfigDict(frozen=True)
