from pydantic import BaseModel, Field


class Owner(BaseModel, extra="ignore"):
    login: str


class Repository(BaseModel, extra="ignore"):
    name: str
    owner: Owner


class Commit(BaseModel, extra="ignore"):
    id: str = Field(..., description="Commit SHA")
    added: list[str] = []
    modified: list[str] = []
    removed: list[str] = []


class PushEvent(BaseModel, extra="ignore"):
    ref: str
    after: str
    repository: Repository
    commits: list[Commit] = []


class Head(BaseModel, extra="ignore"):
    sha: str


class PullRequest(BaseModel, extra="ignore"):
    head: Head


class PullRequestEvent(BaseModel, extra="ignore"):
    action: str
    number: int
    repository: Repository
    pull_request: PullRequest
