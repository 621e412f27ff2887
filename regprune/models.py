import re
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class TagInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    repository: str
    name: str
    digest: str
    created: datetime | None = None


class RepositoryInventory(BaseModel):
    name: str
    tags: list[TagInfo] = []


class ResolutionError(BaseModel):
    repository: str
    tag: str
    reason: str

    def __str__(self) -> str:
        return f"Error resolving {self.repository}:{self.tag}. {self.reason}"


class KeepRecent(BaseModel):
    kind: Literal["keep_recent"] = "keep_recent"
    n: int = Field(ge=0)

    def __str__(self) -> str:
        return f"keep {self.n} most recent"


class OlderThan(BaseModel):
    kind: Literal["older_than"] = "older_than"
    days: int = Field(ge=0)

    def __str__(self) -> str:
        return f"delete older than {self.days} days"


class Pattern(BaseModel):
    kind: Literal["pattern"] = "pattern"
    regex: re.Pattern

    def __str__(self) -> str:
        return f"delete tags matching '{self.regex.pattern}'"


StrategyConfig = Annotated[KeepRecent | OlderThan | Pattern, Field(discriminator="kind")]


class Partition(BaseModel):
    keep: list[TagInfo] = []
    delete: list[TagInfo] = []


class DigestDeletion(BaseModel):
    digest: str
    tags: list[str]
    created: datetime | None = None


class CleanupPlan(BaseModel):
    repository: str
    to_delete: list[DigestDeletion] = []
    to_keep: list[TagInfo] = []

    @property
    def tags_to_delete_count(self) -> int:
        return sum(len(deletion.tags) for deletion in self.to_delete)


class ExecutionState(StrEnum):
    PLANNED = "planned"
    REPORTED = "reported"
    EXECUTING = "executing"
    COMPLETED = "completed"


class OperationResult(BaseModel):
    repository: str
    digest: str
    tags: list[str]
    success: bool
    reason: str | None = None


class ExecutionReport(BaseModel):
    repository: str
    state: ExecutionState = ExecutionState.PLANNED
    results: list[OperationResult] = []

    @property
    def succeeded(self) -> list[OperationResult]:
        return [res for res in self.results if res.success]

    @property
    def failed(self) -> list[OperationResult]:
        return [res for res in self.results if not res.success]


class RunSummary(BaseModel):
    dry_run: bool = False
    repositories: int = 0
    tags_kept: int = 0
    tags_deleted: int = 0
    digests_deleted: int = 0
    failures: int = 0
    errors: list[str] = []

    @property
    def success(self) -> bool:
        return not self.errors

    def record_error(self, error: str) -> None:
        self.failures += 1
        self.errors.append(error)
