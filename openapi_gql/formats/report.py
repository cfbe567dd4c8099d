"""Pydantic models for the translation diagnostics report."""

from pydantic import BaseModel, Field


class TranslationWarning(BaseModel):
    type: str
    message: str
    mitigation: str


class Report(BaseModel):
    warnings: list[TranslationWarning] = Field(default_factory=list)
    num_ops: int = Field(default=0, alias="numOps")
    num_ops_query: int = Field(default=0, alias="numOpsQuery")
    num_ops_mutation: int = Field(default=0, alias="numOpsMutation")
    num_queries_created: int = Field(default=0, alias="numQueriesCreated")
    num_mutations_created: int = Field(default=0, alias="numMutationsCreated")

    model_config = {"populate_by_name": True}
