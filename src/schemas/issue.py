"""Issue schema definitions.

This module defines the Issue data model returned by the API, the validated
input models for creating and updating issues, and the admin statistics model.
"""

from typing import Annotated, Dict, List, Literal, get_args

from pydantic import BaseModel, Field, StringConstraints

IssueCategory = Literal[
    "pothole",
    "garbage",
    "streetlight",
    "traffic-signal",
    "parks",
    "sidewalk",
    "other",
]

IssueStatus = Literal["reported", "acknowledged", "in-progress", "resolved"]

ISSUE_CATEGORIES = get_args(IssueCategory)
ISSUE_STATUSES = get_args(IssueStatus)

StatsWindow = Literal["all", "today", "week", "month"]

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class Coordinates(BaseModel):
    lat: float
    lng: float


class Location(BaseModel):
    address: str
    coordinates: Coordinates


class ReporterSummary(BaseModel):
    user_id: str
    name: str
    email: str


class CommentAuthor(BaseModel):
    user_id: str
    name: str


class Comment(BaseModel):
    comment_id: int
    user: CommentAuthor
    text: str
    created_at: str


class Issue(BaseModel):
    """A reported civic issue with its reporter, upvotes and comments."""

    issue_id: int
    title: str
    description: str
    category: IssueCategory
    status: IssueStatus
    location: Location
    images: List[str] = Field(default_factory=list, description="Image URLs in upload order.")
    reporter: ReporterSummary
    upvotes: int = Field(ge=0)
    upvoted_by: List[str] = Field(
        default_factory=list, description="IDs of users who upvoted the issue."
    )
    comments: List[Comment] = Field(default_factory=list)
    created_at: str
    updated_at: str


class IssueCreate(BaseModel):
    """Validated fields for a new issue (images are handled separately)."""

    title: NonEmptyStr
    description: NonEmptyStr
    category: IssueCategory
    address: NonEmptyStr
    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)


class StatusUpdateRequest(BaseModel):
    status: IssueStatus


class CommentCreateRequest(BaseModel):
    text: NonEmptyStr


class CategoryStat(BaseModel):
    category: IssueCategory
    count: int
    percentage: int


class ReporterStat(BaseModel):
    name: str
    count: int


class IssueStats(BaseModel):
    """Aggregate analytics over the issues created within a time window."""

    window: StatsWindow
    total: int
    by_status: Dict[str, int]
    by_category: List[CategoryStat]
    resolution_rate: int = Field(description="Percentage of issues resolved.")
    average_resolution_days: float = Field(
        description="Mean days from creation to last update of resolved issues."
    )
    urgent_issues: int
    top_reporters: List[ReporterStat]
