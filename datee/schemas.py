from datetime import datetime

from pydantic import BaseModel, Field


class ProposalInput(BaseModel):
    proposed_at: datetime
    location: str = Field(min_length=1, max_length=200)


class ProposalResponse(BaseModel):
    index: int
    proposed_by: int
    proposed_at: datetime
    location: str
    agreed: bool


class MatchResponse(BaseModel):
    id: str
    partner_id: str
    created_at: datetime
    active: bool
    proposals: list[ProposalResponse] = Field(default_factory=list)


class CohortResultResponse(BaseModel):
    cohort: str
    selected: int
    invalid: int
    edges: int
    matched: int
    skipped: int
    match_ids: list[str]
    error: str | None = None


class MatchPassResponse(BaseModel):
    ok: bool
    started_at: datetime
    finished_at: datetime | None = None
    expired: int
    expiry_error: str | None = None
    matched: int
    cohorts: list[CohortResultResponse]


class ExpiryResponse(BaseModel):
    expired: int
    match_ids: list[str]


class ActivateResponse(BaseModel):
    user_id: str
    status: str


class SeedResponse(BaseModel):
    created: int
    user_ids: list[str]
