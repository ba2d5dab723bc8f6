"""Issue management utilities.

This module implements issue CRUD on top of SQLAlchemy: listing and filtering,
creation with image uploads, the upvote toggle, status changes, comments,
admin deletion and the admin statistics.
"""

import logging
import threading
from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional, Sequence

import pytz
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

import config
from core.exceptions import (
    AuthorizationError,
    IssueNotFoundError,
    ValidationError,
    format_validation_errors,
)
from models.issue import IssueModel
from models.issue_comment import IssueCommentModel
from models.issue_upvote import IssueUpvoteModel
from schemas.issue import (
    ISSUE_CATEGORIES,
    ISSUE_STATUSES,
    CategoryStat,
    CommentCreateRequest,
    Issue,
    IssueCreate,
    IssueStats,
    ReporterStat,
    StatusUpdateRequest,
)
from schemas.user import User
from utils.asset_host import AssetHost, ImageUpload
from utils.converters import model_to_issue

logger = logging.getLogger(__name__)

SAMPLE_ISSUES = [
    {
        "title": "Large pothole on Main Street",
        "description": "There is a large pothole that needs immediate attention. "
        "It's causing traffic issues and vehicle damage.",
        "category": "pothole",
        "status": "reported",
        "address": "123 Main Street, City Center",
        "latitude": 40.7128,
        "longitude": -74.0060,
    },
    {
        "title": "Broken streetlight near park",
        "description": "Streetlight has been out for 3 days, making the area unsafe "
        "at night for pedestrians.",
        "category": "streetlight",
        "status": "in-progress",
        "address": "456 Park Avenue, Downtown",
        "latitude": 40.7282,
        "longitude": -74.0776,
    },
    {
        "title": "Garbage accumulation in alley",
        "description": "Trash has been piling up for over a week. Creating bad odor "
        "and attracting pests.",
        "category": "garbage",
        "status": "acknowledged",
        "address": "789 Oak Lane, Residential Area",
        "latitude": 40.7505,
        "longitude": -73.9934,
    },
]


def _now() -> datetime:
    return datetime.now(pytz.utc)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class IssueLockRegistry:
    """Per-issue locks shared by every IssueManager in the process.

    Serializes read-modify-write sequences on one issue (the upvote toggle)
    while leaving other issues unaffected.
    """

    def __init__(self):
        self._locks: Dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, issue_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(issue_id, threading.Lock())
        with lock:
            yield

    def discard(self, issue_id: int) -> None:
        with self._guard:
            self._locks.pop(issue_id, None)


class IssueManager:
    """Manages issue operations using SQLAlchemy."""

    def __init__(self, db: Session, asset_host: AssetHost, locks: IssueLockRegistry):
        """Initialize IssueManager.

        Args:
            db: SQLAlchemy Session.
            asset_host: Where issue images are stored.
            locks: Process-wide per-issue locks.
        """
        self.db = db
        self.asset_host = asset_host
        self.locks = locks

    # --- Queries ---

    def _query(self):
        return self.db.query(IssueModel).options(
            joinedload(IssueModel.reporter),
            selectinload(IssueModel.upvote_entries),
            selectinload(IssueModel.comments).joinedload(IssueCommentModel.user),
        )

    def _get_model(self, issue_id: int, for_update: bool = False) -> IssueModel:
        """Helper to get ORM model."""
        if for_update:
            query = self.db.query(IssueModel).with_for_update()
        else:
            query = self._query()
        model = query.filter(IssueModel.id == issue_id).first()
        if not model:
            raise IssueNotFoundError(issue_id)
        return model

    def list_issues(
        self,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        reporter_id: Optional[str] = None,
    ) -> List[Issue]:
        """List issues, newest first.

        Args:
            status: Only issues with this status.
            category: Only issues in this category.
            search: Case-insensitive match on title, description or address.
            reporter_id: Only issues reported by this user.

        Returns:
            List of Issue objects.
        """
        query = self._query()
        if status:
            query = query.filter(IssueModel.status == status)
        if category:
            query = query.filter(IssueModel.category == category)
        if reporter_id:
            query = query.filter(IssueModel.reporter_id == reporter_id)
        if search and search.strip():
            pattern = f"%{_escape_like(search.strip())}%"
            query = query.filter(
                or_(
                    IssueModel.title.ilike(pattern, escape="\\"),
                    IssueModel.description.ilike(pattern, escape="\\"),
                    IssueModel.address.ilike(pattern, escape="\\"),
                )
            )
        models = query.order_by(IssueModel.created_at.desc(), IssueModel.id.desc()).all()
        return [model_to_issue(m) for m in models]

    def get_issue(self, issue_id: int) -> Issue:
        """Get a single issue.

        Raises:
            IssueNotFoundError: If no issue has this ID.
        """
        return model_to_issue(self._get_model(issue_id))

    def count_reported_by(self, user_id: str) -> int:
        return (
            self.db.query(func.count(IssueModel.id))
            .filter(IssueModel.reporter_id == user_id)
            .scalar()
        )

    def count_upvoted_by(self, user_id: str) -> int:
        return (
            self.db.query(func.count(IssueUpvoteModel.id))
            .filter(IssueUpvoteModel.user_id == user_id)
            .scalar()
        )

    # --- Creation ---

    def validate_new_issue(self, fields: Dict[str, Any]) -> IssueCreate:
        """Validate the text fields of a new issue.

        Raises:
            ValidationError: With one entry per invalid field.
        """
        try:
            return IssueCreate.model_validate(fields)
        except PydanticValidationError as exc:
            raise ValidationError(errors=format_validation_errors(exc.errors()))

    def validate_image_count(self, count: int) -> None:
        """Reject more than MAX_IMAGES_PER_ISSUE images.

        Raises:
            ValidationError: If there are too many images.
        """
        if count > config.MAX_IMAGES_PER_ISSUE:
            raise ValidationError.for_field(
                "images",
                f"A maximum of {config.MAX_IMAGES_PER_ISSUE} images is allowed",
            )

    def validate_images(self, images: Sequence[ImageUpload]) -> None:
        """Check image count, MIME type and size.

        Raises:
            ValidationError: With one entry per offending image.
        """
        self.validate_image_count(len(images))
        errors = []
        limit_mb = config.MAX_IMAGE_SIZE_BYTES // (1024 * 1024)
        for index, image in enumerate(images):
            field = f"images.{index}"
            if not (image.content_type or "").startswith("image/"):
                errors.append({"field": field, "message": "Only image files are allowed"})
            elif image.size > config.MAX_IMAGE_SIZE_BYTES:
                errors.append(
                    {"field": field, "message": f"Image exceeds the {limit_mb} MB limit"}
                )
        if errors:
            raise ValidationError(errors=errors)

    async def create_issue(
        self,
        actor: User,
        fields: Dict[str, Any],
        images: Sequence[ImageUpload] = (),
    ) -> Issue:
        """Create an issue reported by ``actor``.

        Everything is validated before any image is uploaded, and the issue
        is only stored once every image has been uploaded.

        Args:
            actor: Authenticated reporter.
            fields: title, description, category, address, latitude, longitude.
            images: Up to MAX_IMAGES_PER_ISSUE images.

        Returns:
            The created Issue.

        Raises:
            ValidationError: If fields or images are invalid.
            UploadError: If any image could not be uploaded.
        """
        payload = self.validate_new_issue(fields)
        self.validate_images(images)

        image_urls = await self.asset_host.upload_many(images)

        now = _now().isoformat()
        model = IssueModel(
            title=payload.title,
            description=payload.description,
            category=payload.category,
            status="reported",
            address=payload.address,
            latitude=payload.latitude,
            longitude=payload.longitude,
            images=image_urls,
            reporter_id=actor.user_id,
            upvotes=0,
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(model)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            await self.asset_host.delete_many(image_urls)
            raise

        logger.info(
            "New issue created: %s (id=%s, reporter=%s, images=%d)",
            model.title,
            model.id,
            actor.user_id,
            len(image_urls),
        )
        return self.get_issue(model.id)

    # --- Mutations ---

    def toggle_upvote(self, actor: User, issue_id: int) -> Issue:
        """Add the actor's upvote, or remove it if already present.

        The membership change and the cached counter are written in one
        transaction while holding the issue's lock.

        Raises:
            IssueNotFoundError: If no issue has this ID.
        """
        with self.locks.hold(issue_id):
            try:
                return self._toggle_upvote(actor.user_id, issue_id)
            except IntegrityError:
                # A concurrent insert from another process won the unique
                # constraint; re-running sees its row and removes it.
                self.db.rollback()
                logger.warning("Upvote race on issue %s, retrying toggle", issue_id)
                return self._toggle_upvote(actor.user_id, issue_id)

    def _toggle_upvote(self, user_id: str, issue_id: int) -> Issue:
        model = self._get_model(issue_id, for_update=True)
        entry = (
            self.db.query(IssueUpvoteModel)
            .filter(
                IssueUpvoteModel.issue_id == issue_id,
                IssueUpvoteModel.user_id == user_id,
            )
            .first()
        )
        now = _now().isoformat()
        if entry:
            self.db.delete(entry)
        else:
            self.db.add(IssueUpvoteModel(issue_id=issue_id, user_id=user_id, created_at=now))
        self.db.flush()

        model.upvotes = (
            self.db.query(func.count(IssueUpvoteModel.id))
            .filter(IssueUpvoteModel.issue_id == issue_id)
            .scalar()
        )
        model.updated_at = now
        self.db.commit()
        logger.debug(
            "Upvote %s on issue %s by %s (now %d)",
            "removed" if entry else "added",
            issue_id,
            user_id,
            model.upvotes,
        )
        return self.get_issue(issue_id)

    def update_status(self, actor: User, issue_id: int, new_status: str) -> Issue:
        """Overwrite an issue's status. Any status may follow any other.

        Raises:
            ValidationError: If new_status is not a known status.
            AuthorizationError: If status changes are restricted to admins
                and the actor is not one.
            IssueNotFoundError: If no issue has this ID.
        """
        try:
            req = StatusUpdateRequest(status=new_status)
        except PydanticValidationError as exc:
            raise ValidationError(errors=format_validation_errors(exc.errors()))

        if config.STATUS_UPDATE_REQUIRES_ADMIN and actor.role != "admin":
            raise AuthorizationError("Only admins can change issue status")

        model = self._get_model(issue_id)
        previous = model.status
        model.status = req.status
        model.updated_at = _now().isoformat()
        self.db.commit()
        logger.info(
            "Issue %s status %s -> %s by %s", issue_id, previous, req.status, actor.user_id
        )
        return self.get_issue(issue_id)

    def add_comment(self, actor: User, issue_id: int, text: str) -> Issue:
        """Append a comment to an issue.

        Raises:
            ValidationError: If the text is blank.
            IssueNotFoundError: If no issue has this ID.
        """
        try:
            req = CommentCreateRequest(text=text)
        except PydanticValidationError as exc:
            raise ValidationError(errors=format_validation_errors(exc.errors()))

        model = self._get_model(issue_id)
        now = _now().isoformat()
        self.db.add(
            IssueCommentModel(
                issue_id=model.id, user_id=actor.user_id, text=req.text, created_at=now
            )
        )
        model.updated_at = now
        self.db.commit()
        return self.get_issue(issue_id)

    async def delete_issue(self, actor: User, issue_id: int) -> None:
        """Delete an issue and, best-effort, its images. Admin only.

        Raises:
            AuthorizationError: If the actor is not an admin.
            IssueNotFoundError: If no issue has this ID.
        """
        if actor.role != "admin":
            raise AuthorizationError()

        model = self._get_model(issue_id)
        if model.images:
            await self.asset_host.delete_many(list(model.images))

        # Upvotes or comments may have landed while the images were deleted;
        # reload under the issue lock so the cascade sees all of them.
        with self.locks.hold(issue_id):
            self.db.expire(model)
            model = self._get_model(issue_id)
            self.db.delete(model)
            self.db.commit()
        self.locks.discard(issue_id)
        logger.info("Issue %s deleted by %s", issue_id, actor.user_id)

    # --- Analytics ---

    def get_stats(self, actor: User, window: str = "all") -> IssueStats:
        """Aggregate statistics over issues created within ``window``.

        Args:
            actor: Must be an admin.
            window: 'all', 'today' (since UTC midnight), 'week' (7 days)
                or 'month' (30 days).

        Raises:
            AuthorizationError: If the actor is not an admin.
            ValidationError: If the window is unknown.
        """
        if actor.role != "admin":
            raise AuthorizationError()

        now = _now()
        cutoffs = {
            "all": None,
            "today": now.replace(hour=0, minute=0, second=0, microsecond=0),
            "week": now - timedelta(days=7),
            "month": now - timedelta(days=30),
        }
        if window not in cutoffs:
            raise ValidationError.for_field(
                "window", "Window must be one of: " + ", ".join(cutoffs)
            )

        query = self.db.query(IssueModel).options(joinedload(IssueModel.reporter))
        if cutoffs[window] is not None:
            query = query.filter(IssueModel.created_at >= cutoffs[window].isoformat())
        issues = query.all()
        total = len(issues)

        by_status = {status: 0 for status in ISSUE_STATUSES}
        by_category = {category: 0 for category in ISSUE_CATEGORIES}
        reporters = Counter()
        reporter_names = {}
        for issue in issues:
            by_status[issue.status] = by_status.get(issue.status, 0) + 1
            by_category[issue.category] = by_category.get(issue.category, 0) + 1
            reporters[issue.reporter_id] += 1
            reporter_names[issue.reporter_id] = issue.reporter.name

        resolved = [issue for issue in issues if issue.status == "resolved"]
        average_days = 0.0
        if resolved:
            seconds = sum(
                (
                    datetime.fromisoformat(issue.updated_at)
                    - datetime.fromisoformat(issue.created_at)
                ).total_seconds()
                for issue in resolved
            )
            average_days = round(seconds / len(resolved) / 86400, 1)

        top = sorted(reporters.items(), key=lambda item: (-item[1], reporter_names[item[0]]))
        return IssueStats(
            window=window,
            total=total,
            by_status=by_status,
            by_category=[
                CategoryStat(
                    category=category,
                    count=count,
                    percentage=round(count * 100 / total) if total else 0,
                )
                for category, count in by_category.items()
            ],
            resolution_rate=round(len(resolved) * 100 / total) if total else 0,
            average_resolution_days=average_days,
            urgent_issues=sum(
                1 for issue in issues if issue.upvotes > config.URGENT_UPVOTE_THRESHOLD
            ),
            top_reporters=[
                ReporterStat(name=reporter_names[user_id], count=count)
                for user_id, count in top[: config.TOP_REPORTERS_LIMIT]
            ],
        )

    # --- Sample data ---

    def seed_sample_issues(self, reporter_id: str) -> int:
        """Insert demo issues if there are none yet.

        Returns:
            Number of issues inserted.
        """
        if self.db.query(func.count(IssueModel.id)).scalar():
            return 0
        now = _now().isoformat()
        for sample in SAMPLE_ISSUES:
            self.db.add(
                IssueModel(
                    **sample,
                    images=[],
                    reporter_id=reporter_id,
                    upvotes=0,
                    created_at=now,
                    updated_at=now,
                )
            )
        self.db.commit()
        logger.info("Sample issues created: %d", len(SAMPLE_ISSUES))
        return len(SAMPLE_ISSUES)
