"""Course catalogue endpoints."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from fastapi import APIRouter, Depends, Path, Query, Request, status
from pydantic import BaseModel, ValidationError
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from learnhub.database.mongo import get_db
from learnhub.dtos.common import ApiResponse, MessageResponse
from learnhub.dtos.course import (
    CourseAnalytics,
    CourseCreateRequest,
    CourseDetail,
    CourseListResponse,
    CourseSummary,
    CourseUpdateRequest,
    ReviewRequest,
)
from learnhub.entities.enums import CourseCategory
from learnhub.middleware.auth import Identity, get_identity_optional
from learnhub.middleware.exception_handlers import validation_details, validation_message
from learnhub.middleware.rbac import require_admin, require_user
from learnhub.services.course_service import CourseService, to_detail
from learnhub.services.exceptions import ValidationFailed
from learnhub.services.upload_service import save_image

router = APIRouter(prefix="/courses", tags=["Courses"])

M = TypeVar("M", bound=BaseModel)

# Multipart forms carry these as JSON-encoded strings
JSON_FORM_FIELDS = {
    "chapters",
    "learningOutcomes",
    "learning_outcomes",
    "prerequisites",
    "tags",
}


async def _read_course_payload(
    request: Request, model: Type[M]
) -> Tuple[M, Optional[UploadFile]]:
    """Parse a course body sent as JSON or as multipart form data with an image."""
    content_type = request.headers.get("content-type", "")
    image: Optional[UploadFile] = None

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        data: Dict[str, Any] = {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == "image":
                    image = value
                continue
            if key in JSON_FORM_FIELDS:
                try:
                    value = json.loads(value)
                except ValueError as e:
                    raise ValidationFailed(
                        f"Validation error: {key}: must be a JSON array",
                        details=[{"field": key, "message": "Must be a JSON array"}],
                    ) from e
            data[key] = value
    else:
        try:
            data = await request.json()
        except ValueError as e:
            raise ValidationFailed("Request body must be valid JSON") from e
        if not isinstance(data, dict):
            raise ValidationFailed("Request body must be a JSON object")

    try:
        payload = model.model_validate(data)
    except ValidationError as e:
        details = validation_details(e.errors())
        raise ValidationFailed(validation_message(details), details=details) from e
    return payload, image


def _store_image(image: Optional[UploadFile]) -> Optional[str]:
    if image is None or not image.filename:
        return None
    return save_image(image.file, image.filename)


@router.get("", response_model=ApiResponse[CourseListResponse])
def list_courses(
    search: Optional[str] = Query(None, description="Match title or description"),
    category: Optional[CourseCategory] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    sort: Optional[str] = Query(None, description="field:asc|desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Database = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity_optional),
):
    """List courses. Anonymous callers and learners only see published ones."""
    result = CourseService(db).list_courses(
        identity,
        search=search,
        category=category,
        min_price=min_price,
        max_price=max_price,
        sort=sort,
        page=page,
        limit=limit,
    )
    return ApiResponse(data=result)


@router.get("/admin/all", response_model=ApiResponse[List[CourseSummary]])
def list_all_courses(
    db: Database = Depends(get_db),
    _admin: Identity = Depends(require_admin),
):
    """All courses, including drafts (Admin only)."""
    return ApiResponse(data=CourseService(db).list_all())


@router.get("/admin/{course_id}/analytics", response_model=ApiResponse[CourseAnalytics])
def course_analytics(
    course_id: str = Path(..., description="Course ID"),
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    return ApiResponse(data=CourseService(db).analytics(course_id, identity))


@router.get("/{course_id}", response_model=ApiResponse[CourseDetail])
def get_course(
    course_id: str = Path(..., description="Course ID"),
    db: Database = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity_optional),
):
    course = CourseService(db).get_course(course_id, identity)
    return ApiResponse(data=to_detail(course))


@router.post(
    "",
    response_model=ApiResponse[CourseDetail],
    status_code=status.HTTP_201_CREATED,
    openapi_extra={"requestBody": {"required": True}},
)
async def create_course(
    request: Request,
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """Create a course from JSON, or multipart with an ``image`` file (Admin only)."""
    payload, image = await _read_course_payload(request, CourseCreateRequest)
    image_link = await run_in_threadpool(_store_image, image)
    course = await run_in_threadpool(
        CourseService(db).create_course, payload, identity, image_link
    )
    return ApiResponse(message="Course created successfully", data=to_detail(course))


@router.put("/{course_id}", response_model=ApiResponse[CourseDetail])
async def update_course(
    request: Request,
    course_id: str = Path(..., description="Course ID"),
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    payload, image = await _read_course_payload(request, CourseUpdateRequest)
    image_link = await run_in_threadpool(_store_image, image)
    course = await run_in_threadpool(
        CourseService(db).update_course, course_id, payload, identity, image_link
    )
    return ApiResponse(message="Course updated successfully", data=to_detail(course))


@router.delete("/{course_id}", response_model=MessageResponse)
def delete_course(
    course_id: str = Path(..., description="Course ID"),
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    CourseService(db).delete_course(course_id, identity)
    return MessageResponse(message="Course deleted successfully")


@router.post("/{course_id}/reviews", response_model=ApiResponse[CourseDetail])
def review_course(
    payload: ReviewRequest,
    course_id: str = Path(..., description="Course ID"),
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_user),
):
    """Add or replace the caller's review of a course they own."""
    course = CourseService(db).add_review(course_id, payload, identity)
    return ApiResponse(message="Review added successfully", data=to_detail(course))
