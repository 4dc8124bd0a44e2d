"""Pydantic models for tracking API responses."""

from pydantic import BaseModel, field_validator


class PipelineRunCreated(BaseModel):
    """Response of POST api/pipeline-runs/."""

    run_id: str

    @field_validator("run_id", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        # The service returns either a numeric primary key or a string slug
        if isinstance(value, int):
            return str(value)
        return value


class TestCaseCreated(BaseModel):
    """Response of POST api/test-cases/."""

    __test__ = False

    test_id: str | None = None

    @field_validator("test_id", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value
