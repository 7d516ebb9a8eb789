"""Search-related models."""

from pydantic import BaseModel, Field, model_validator

from knowledge_lifecycle.models.knowledge import Knowledge


class SearchQuery(BaseModel):
    """Parameters for a vector similarity search."""

    project_id: str
    query_text: str | None = None
    query_embedding: list[float] | None = None
    limit: int = Field(default=10, ge=1, le=100)
    threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    category: str | None = None
    include_archived: bool = False
    include_duplicates: bool = False

    @model_validator(mode="after")
    def _require_query(self) -> "SearchQuery":
        if self.query_text is None and self.query_embedding is None:
            raise ValueError("Either query_text or query_embedding is required")
        if self.query_embedding is not None and not self.query_embedding:
            raise ValueError("query_embedding must not be empty")
        return self


class SearchResult(BaseModel):
    """A single ranked match."""

    knowledge_id: str
    similarity: float
    distance: float
    knowledge: Knowledge
