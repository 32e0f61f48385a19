"""Course, assignment and chapter endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from audiolearn.db import content_repository as content
from audiolearn.db.users_repository import UserRecord
from audiolearn.web.deps import get_current_user, require_admin, validate_id
from audiolearn.web.schemas import (
    AssignmentResponse,
    ChapterResponse,
    CourseCreate,
    CourseResponse,
    CourseUpdate,
)

router = APIRouter(prefix="/api", tags=["courses"])


def _not_found(kind: str, item_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{kind} '{item_id}' not found",
    )


# =============================================================================
# COURSES
# =============================================================================


@router.get("/courses", response_model=list[CourseResponse])
async def list_courses(user: UserRecord = Depends(get_current_user)) -> list[CourseResponse]:
    """List active courses."""
    return [CourseResponse.model_validate(c) for c in content.list_courses()]


@router.get("/courses/{course_id}", response_model=CourseResponse)
async def get_course(
    course_id: str,
    user: UserRecord = Depends(get_current_user),
) -> CourseResponse:
    """Get a specific course by ID."""
    validate_id(course_id, "course id")
    course = content.get_course(course_id)
    if course is None or (not course.is_active and not user.is_admin):
        raise _not_found("Course", course_id)
    return CourseResponse.model_validate(course)


@router.post("/courses", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseCreate,
    admin: UserRecord = Depends(require_admin),
) -> CourseResponse:
    """Create a course."""
    if body.external_id and content.get_course_by_external_id(body.external_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Course with external id '{body.external_id}' already exists",
        )
    course = content.create_course(**body.model_dump())
    return CourseResponse.model_validate(course)


@router.patch("/courses/{course_id}", response_model=CourseResponse)
async def update_course(
    course_id: str,
    body: CourseUpdate,
    admin: UserRecord = Depends(require_admin),
) -> CourseResponse:
    """Update the provided fields of a course."""
    validate_id(course_id, "course id")
    course = content.update_course(course_id, **body.model_dump(exclude_unset=True))
    if course is None:
        raise _not_found("Course", course_id)
    return CourseResponse.model_validate(course)


@router.delete("/courses/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(
    course_id: str,
    admin: UserRecord = Depends(require_admin),
) -> None:
    """Deactivate a course. Its assignments and chapters are kept."""
    validate_id(course_id, "course id")
    if not content.delete_course(course_id):
        raise _not_found("Course", course_id)


# =============================================================================
# ASSIGNMENTS
# =============================================================================


@router.get("/courses/{course_id}/assignments", response_model=list[AssignmentResponse])
async def list_assignments(
    course_id: str,
    user: UserRecord = Depends(get_current_user),
) -> list[AssignmentResponse]:
    """List the assignments of a course in order."""
    validate_id(course_id, "course id")
    if content.get_course(course_id) is None:
        raise _not_found("Course", course_id)
    return [AssignmentResponse.model_validate(a) for a in content.list_assignments(course_id)]


@router.get("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: str,
    user: UserRecord = Depends(get_current_user),
) -> AssignmentResponse:
    """Get a specific assignment by ID."""
    validate_id(assignment_id, "assignment id")
    assignment = content.get_assignment(assignment_id)
    if assignment is None:
        raise _not_found("Assignment", assignment_id)
    return AssignmentResponse.model_validate(assignment)


# =============================================================================
# CHAPTERS
# =============================================================================


@router.get("/assignments/{assignment_id}/chapters", response_model=list[ChapterResponse])
async def list_chapters(
    assignment_id: str,
    user: UserRecord = Depends(get_current_user),
) -> list[ChapterResponse]:
    """List the chapters of an assignment in order."""
    validate_id(assignment_id, "assignment id")
    if content.get_assignment(assignment_id) is None:
        raise _not_found("Assignment", assignment_id)
    return [ChapterResponse.model_validate(c) for c in content.list_chapters(assignment_id)]


@router.get("/chapters/{chapter_id}", response_model=ChapterResponse)
async def get_chapter(
    chapter_id: str,
    user: UserRecord = Depends(get_current_user),
) -> ChapterResponse:
    """Get a specific chapter by ID."""
    validate_id(chapter_id, "chapter id")
    chapter = content.get_chapter(chapter_id)
    if chapter is None:
        raise _not_found("Chapter", chapter_id)
    return ChapterResponse.model_validate(chapter)
