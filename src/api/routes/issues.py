"""Issue routes.

Reading issues is public; every other operation requires a bearer token.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

import config
from api.routes.auth import get_current_user
from core.dependencies import IssueManagerDep
from schemas.issue import (
    CommentCreateRequest,
    Issue,
    IssueCategory,
    IssueStats,
    IssueStatus,
    StatsWindow,
    StatusUpdateRequest,
)
from schemas.user import User
from utils.asset_host import ImageUpload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/issues", tags=["Issues"])


async def _buffer_image(upload: UploadFile) -> ImageUpload:
    """Read an uploaded file into memory, at most one byte past the size limit.

    Non-images and files whose recorded size is already over the limit are
    not read at all; IssueManager.validate_images rejects them.
    """
    content_type = upload.content_type or ""
    filename = upload.filename or "image"
    if not content_type.startswith("image/"):
        return ImageUpload(filename=filename, content_type=content_type, data=b"", size=0)
    if upload.size is not None and upload.size > config.MAX_IMAGE_SIZE_BYTES:
        return ImageUpload(
            filename=filename, content_type=content_type, data=b"", size=upload.size
        )
    data = await upload.read(config.MAX_IMAGE_SIZE_BYTES + 1)
    return ImageUpload(filename=filename, content_type=content_type, data=data)


@router.get("", response_model=List[Issue], summary="List issues")
def list_issues(
    issue_manager: IssueManagerDep,
    status_filter: Optional[IssueStatus] = Query(default=None, alias="status"),
    category: Optional[IssueCategory] = None,
    search: Optional[str] = None,
) -> List[Issue]:
    """List issues, newest first, optionally filtered."""
    return issue_manager.list_issues(status=status_filter, category=category, search=search)


@router.get("/stats", response_model=IssueStats, summary="Issue statistics (admin)")
def get_issue_stats(
    issue_manager: IssueManagerDep,
    window: StatsWindow = "all",
    current_user: User = Depends(get_current_user),
) -> IssueStats:
    """Aggregate analytics for the admin dashboard.

    Args:
        issue_manager: Injected IssueManager instance.
        window: Only count issues created today, this week, this month or ever.
        current_user: Must be an admin.
    """
    return issue_manager.get_stats(current_user, window)


@router.get("/{issue_id}", response_model=Issue, summary="Get issue")
def get_issue(issue_id: int, issue_manager: IssueManagerDep) -> Issue:
    return issue_manager.get_issue(issue_id)


@router.post(
    "",
    response_model=Issue,
    status_code=status.HTTP_201_CREATED,
    summary="Report an issue",
)
async def create_issue(
    issue_manager: IssueManagerDep,
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    category: Optional[str] = Form(default=None),
    address: Optional[str] = Form(default=None),
    latitude: Optional[str] = Form(default=None),
    longitude: Optional[str] = Form(default=None),
    images: Optional[List[UploadFile]] = File(default=None, description="Up to 5 images"),
    current_user: User = Depends(get_current_user),
) -> Issue:
    """Create an issue from a multipart form.

    Field validation is left to the IssueManager so that all field errors
    are reported together.
    """
    images = images or []
    issue_manager.validate_image_count(len(images))
    uploads = [await _buffer_image(upload) for upload in images]

    fields = {
        "title": title,
        "description": description,
        "category": category,
        "address": address,
        "latitude": latitude,
        "longitude": longitude,
    }
    return await issue_manager.create_issue(current_user, fields, uploads)


@router.post("/{issue_id}/upvote", response_model=Issue, summary="Toggle upvote")
def toggle_upvote(
    issue_id: int,
    issue_manager: IssueManagerDep,
    current_user: User = Depends(get_current_user),
) -> Issue:
    """Upvote an issue, or withdraw the caller's existing upvote."""
    return issue_manager.toggle_upvote(current_user, issue_id)


@router.patch("/{issue_id}/status", response_model=Issue, summary="Update status")
def update_issue_status(
    issue_id: int,
    req: StatusUpdateRequest,
    issue_manager: IssueManagerDep,
    current_user: User = Depends(get_current_user),
) -> Issue:
    return issue_manager.update_status(current_user, issue_id, req.status)


@router.post("/{issue_id}/comments", response_model=Issue, summary="Add comment")
def add_comment(
    issue_id: int,
    req: CommentCreateRequest,
    issue_manager: IssueManagerDep,
    current_user: User = Depends(get_current_user),
) -> Issue:
    return issue_manager.add_comment(current_user, issue_id, req.text)


@router.delete("/{issue_id}", summary="Delete issue (admin)")
async def delete_issue(
    issue_id: int,
    issue_manager: IssueManagerDep,
    current_user: User = Depends(get_current_user),
) -> dict:
    """Delete an issue and its images.

    Raises:
        AuthorizationError: If the caller is not an admin.
    """
    await issue_manager.delete_issue(current_user, issue_id)
    return {"success": True, "message": "Issue deleted successfully"}
