from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Column(_Frozen):
    name: str
    type: str
    size: Optional[int] = None
    nullable: bool = True
    default_value: Optional[str] = None
    ordinal_position: int
    remarks: Optional[str] = None


class ForeignKeyEdge(_Frozen):
    name: Optional[str] = None
    column: str
    referenced_table: str
    referenced_column: str
    update_rule: str = "NO ACTION"
    delete_rule: str = "NO ACTION"


class Index(_Frozen):
    name: str
    column: str
    unique: bool = False
    ordinal_position: int = 1


class Table(_Frozen):
    name: str
    columns: List[Column] = Field(default_factory=list)
    primary_keys: List[str] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyEdge] = Field(default_factory=list)
    indexes: List[Index] = Field(default_factory=list)


class SchemaDocument(_Frozen):
    """
    Point-in-time snapshot of a target database's structure.
    Never patched: re-extraction produces a new document.
    """
    database_name: Optional[str] = None
    database_type: str
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    tables: List[Table] = Field(default_factory=list)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, payload: str) -> "SchemaDocument":
        return cls.model_validate_json(payload)

    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    def get_table(self, name: str) -> Optional[Table]:
        lowered = name.lower()
        for table in self.tables:
            if table.name.lower() == lowered:
                return table
        return None

    def to_prompt_text(self) -> str:
        """Compact table/column/key listing used inside generation prompts."""
        lines = [f"Database type: {self.database_type}"]
        for table in self.tables:
            lines.append(f"\nTable: {table.name}")
            for col in table.columns:
                flags = []
                if col.name in table.primary_keys:
                    flags.append("PK")
                if not col.nullable:
                    flags.append("NOT NULL")
                suffix = f" [{', '.join(flags)}]" if flags else ""
                lines.append(f"  - {col.name}: {col.type}{suffix}")
            for fk in table.foreign_keys:
                lines.append(f"  FK: {fk.column} -> {fk.referenced_table}.{fk.referenced_column}")
        return "\n".join(lines)
