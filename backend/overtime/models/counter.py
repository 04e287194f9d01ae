from __future__ import annotations

from sqlmodel import Field, SQLModel


class IdCounter(SQLModel, table=True):
    """Per-kind, per-year sequence backing human-readable internal IDs."""

    __tablename__ = "id_counter"

    kind: str = Field(max_length=20, primary_key=True)
    year: int = Field(primary_key=True)
    seq: int = Field(default=0)
