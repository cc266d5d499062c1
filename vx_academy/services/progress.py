"""
Course progress aggregation.

A course's completion figure is derived from four collections: the units it
contains, the learning blocks of those units, the assessments attached to the
course or its units, and the learner's completion records. The arithmetic is
a pure, memoised function of those collections; ``ProgressService`` fetches
them, recomputes from scratch and stores the result as a ``UserProgress``
snapshot.
"""
import logging
import math
from dataclasses import dataclass, asdict
from datetime import datetime
from functools import lru_cache
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from vx_academy.exceptions import NotFoundError
from vx_academy.models.activity_log import ActivityType
from vx_academy.models.assessment import Assessment, AssessmentPlacement
from vx_academy.models.course import Course, CourseUnit, LearningBlock
from vx_academy.models.user import User
from vx_academy.models.user_progress import (
    BlockCompletion,
    UserAssessmentProgress,
    UserBlockProgress,
    UserProgress,
    UserUnitProgress,
)
from vx_academy.services.activity import log_activity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockRef:
    id: int
    unit_id: int


@dataclass(frozen=True)
class AssessmentRef:
    id: int
    unit_id: Optional[int]
    placement: str = AssessmentPlacement.END.value

    @property
    def is_final(self) -> bool:
        return is_final_assessment(self)


@dataclass(frozen=True)
class CompletionRecord:
    entity_id: int
    is_completed: bool = True


@dataclass(frozen=True)
class CourseProgressData:
    percent_complete: int
    completed: bool
    total_items: int
    completed_items: int
    total_blocks: int
    completed_blocks: int
    total_assessments: int
    completed_assessments: int

    def to_dict(self) -> dict:
        return asdict(self)


def is_final_assessment(assessment) -> bool:
    """A placement="end" assessment without a unit is the course-final one.

    Final assessments gate certificates but never count toward progress.
    """
    return assessment.placement == AssessmentPlacement.END.value and assessment.unit_id is None


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (1/8 -> 13)"""
    return int(math.floor(value + 0.5))


def _block_ref(block) -> BlockRef:
    if isinstance(block, BlockRef):
        return block
    return BlockRef(id=block.id, unit_id=block.unit_id)


def _assessment_ref(assessment) -> AssessmentRef:
    if isinstance(assessment, AssessmentRef):
        return assessment
    return AssessmentRef(id=assessment.id, unit_id=assessment.unit_id, placement=assessment.placement)


def _completion_record(record, id_attr: str) -> CompletionRecord:
    if isinstance(record, CompletionRecord):
        return record
    return CompletionRecord(entity_id=getattr(record, id_attr), is_completed=bool(record.is_completed))


def calculate_course_progress(
    unit_ids: Iterable[int],
    blocks: Iterable,
    assessments: Iterable,
    block_progress: Iterable = (),
    assessment_progress: Iterable = (),
) -> CourseProgressData:
    """
    Compute the completion figure for one course.

    ``blocks`` and ``assessments`` accept ORM rows or refs; completion records
    accept ``UserBlockProgress``/``UserAssessmentProgress`` rows or
    ``CompletionRecord`` instances. Inputs are normalised to sorted tuples so
    equal collections share one cache entry regardless of order.
    """
    return _calculate(
        tuple(sorted(set(unit_ids))),
        tuple(sorted({_block_ref(b) for b in blocks}, key=lambda b: b.id)),
        tuple(sorted({_assessment_ref(a) for a in assessments}, key=lambda a: a.id)),
        tuple(sorted({_completion_record(r, "block_id") for r in block_progress},
                     key=lambda r: (r.entity_id, r.is_completed))),
        tuple(sorted({_completion_record(r, "assessment_id") for r in assessment_progress},
                     key=lambda r: (r.entity_id, r.is_completed))),
    )


@lru_cache(maxsize=2048)
def _calculate(
    unit_ids: Tuple[int, ...],
    blocks: Tuple[BlockRef, ...],
    assessments: Tuple[AssessmentRef, ...],
    block_records: Tuple[CompletionRecord, ...],
    assessment_records: Tuple[CompletionRecord, ...],
) -> CourseProgressData:
    units = set(unit_ids)

    block_ids = {b.id for b in blocks if b.unit_id in units}
    # Unit assessments count when their unit is in the course, course-level
    # ones count unless they are the final assessment
    assessment_ids = {
        a.id for a in assessments
        if not is_final_assessment(a) and (a.unit_id is None or a.unit_id in units)
    }

    done_blocks = {r.entity_id for r in block_records if r.is_completed} & block_ids
    done_assessments = {r.entity_id for r in assessment_records if r.is_completed} & assessment_ids

    total_items = len(block_ids) + len(assessment_ids)
    completed_items = len(done_blocks) + len(done_assessments)

    if total_items == 0:
        percent = 100
    else:
        percent = round_half_up(completed_items / total_items * 100)

    return CourseProgressData(
        percent_complete=percent,
        completed=completed_items >= total_items,
        total_items=total_items,
        completed_items=completed_items,
        total_blocks=len(block_ids),
        completed_blocks=len(done_blocks),
        total_assessments=len(assessment_ids),
        completed_assessments=len(done_assessments),
    )


class ProgressService:
    """Reads and writes learner progress for courses, units, blocks and assessments"""

    def __init__(self, db: Session):
        self.db = db

    # Queries

    def get_unit_ids(self, course_id: int) -> List[int]:
        links = (
            self.db.query(CourseUnit)
            .filter(CourseUnit.course_id == course_id)
            .order_by(CourseUnit.order)
            .all()
        )
        return [link.unit_id for link in links]

    def get_course_blocks(self, course_id: int, unit_ids: Optional[List[int]] = None) -> List[LearningBlock]:
        if unit_ids is None:
            unit_ids = self.get_unit_ids(course_id)
        if not unit_ids:
            return []
        return (
            self.db.query(LearningBlock)
            .filter(LearningBlock.unit_id.in_(unit_ids))
            .order_by(LearningBlock.unit_id, LearningBlock.order)
            .all()
        )

    def get_course_assessments(self, course_id: int, unit_ids: Optional[List[int]] = None) -> List[Assessment]:
        if unit_ids is None:
            unit_ids = self.get_unit_ids(course_id)
        condition = Assessment.course_id == course_id
        if unit_ids:
            condition = or_(condition, Assessment.unit_id.in_(unit_ids))
        return self.db.query(Assessment).filter(condition).order_by(Assessment.id).all()

    def get_courses_for_unit(self, unit_id: int) -> List[Course]:
        return (
            self.db.query(Course)
            .join(CourseUnit, CourseUnit.course_id == Course.id)
            .filter(CourseUnit.unit_id == unit_id)
            .order_by(Course.id)
            .all()
        )

    def get_course_progress(self, user_id: int, course_id: int) -> CourseProgressData:
        """Recompute a learner's progress for a course from the stored records"""
        unit_ids = self.get_unit_ids(course_id)
        blocks = self.get_course_blocks(course_id, unit_ids)
        assessments = self.get_course_assessments(course_id, unit_ids)
        block_records = self.db.query(UserBlockProgress).filter(
            and_(UserBlockProgress.user_id == user_id, UserBlockProgress.course_id == course_id)
        ).all()
        assessment_records = self.db.query(UserAssessmentProgress).filter(
            and_(UserAssessmentProgress.user_id == user_id, UserAssessmentProgress.course_id == course_id)
        ).all()
        return calculate_course_progress(unit_ids, blocks, assessments, block_records, assessment_records)

    def get_user_progress(self, user_id: int, course_id: int) -> Optional[UserProgress]:
        return self.db.query(UserProgress).filter(
            and_(UserProgress.user_id == user_id, UserProgress.course_id == course_id)
        ).first()

    def list_user_progress(self, user_id: int) -> List[UserProgress]:
        return (
            self.db.query(UserProgress)
            .filter(UserProgress.user_id == user_id)
            .order_by(UserProgress.course_id)
            .all()
        )

    # Mutations. Callers own the transaction and commit.

    def save_progress_snapshot(
        self,
        user_id: int,
        course_id: int,
        percent_complete: Optional[int] = None,
        completed: Optional[bool] = None,
    ) -> UserProgress:
        """Upsert the stored snapshot, keeping existing values for omitted fields"""
        progress = self.get_user_progress(user_id, course_id)
        now = datetime.utcnow()
        if progress is None:
            progress = UserProgress(
                user_id=user_id,
                course_id=course_id,
                percent_complete=percent_complete or 0,
                completed=bool(completed),
                last_accessed=now,
            )
            self.db.add(progress)
        else:
            if percent_complete is not None:
                progress.percent_complete = percent_complete
            if completed is not None:
                progress.completed = completed
            progress.last_accessed = now
        if not progress.completed:
            progress.completed_at = None
        elif progress.completed_at is None:
            progress.completed_at = now
        self.db.flush()
        return progress

    def refresh_course_progress(self, user_id: int, course_id: int) -> Tuple[UserProgress, bool]:
        """
        Recompute and store a learner's course progress.

        Returns the snapshot and whether the course became complete with this
        refresh.
        """
        data = self.get_course_progress(user_id, course_id)
        progress = self.get_user_progress(user_id, course_id)
        was_completed = bool(progress and progress.completed)

        progress = self.save_progress_snapshot(
            user_id,
            course_id,
            percent_complete=data.percent_complete,
            completed=data.completed,
        )
        just_completed = data.completed and not was_completed
        if just_completed:
            log_activity(self.db, user_id, ActivityType.COURSE_COMPLETED, {"course_id": course_id})
            logger.info(f"User {user_id} completed course {course_id}")
        return progress, just_completed

    def enroll(self, user: User, course_id: int) -> Tuple[UserProgress, bool]:
        """Create the 0% progress record for a course. Returns (progress, created)."""
        course = self.db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise NotFoundError("Course not found")
        existing = self.get_user_progress(user.id, course_id)
        if existing:
            return existing, False

        progress = self.save_progress_snapshot(user.id, course_id, percent_complete=0, completed=False)
        log_activity(self.db, user.id, ActivityType.COURSE_ENROLLED, {"course_id": course_id})
        return progress, True

    def mark_block_progress(self, user_id: int, course_id: int, unit_id: int, block_id: int) -> UserBlockProgress:
        record = self.db.query(UserBlockProgress).filter(
            and_(
                UserBlockProgress.user_id == user_id,
                UserBlockProgress.course_id == course_id,
                UserBlockProgress.unit_id == unit_id,
                UserBlockProgress.block_id == block_id,
            )
        ).first()
        if record is None:
            record = UserBlockProgress(user_id=user_id, course_id=course_id, unit_id=unit_id, block_id=block_id)
            self.db.add(record)
        record.mark_completed()
        self.db.flush()
        return record

    def mark_assessment_progress(
        self, user_id: int, course_id: int, unit_id: Optional[int], assessment_id: int
    ) -> UserAssessmentProgress:
        unit_filter = (
            UserAssessmentProgress.unit_id.is_(None) if unit_id is None
            else UserAssessmentProgress.unit_id == unit_id
        )
        record = self.db.query(UserAssessmentProgress).filter(
            and_(
                UserAssessmentProgress.user_id == user_id,
                UserAssessmentProgress.course_id == course_id,
                unit_filter,
                UserAssessmentProgress.assessment_id == assessment_id,
            )
        ).first()
        if record is None:
            record = UserAssessmentProgress(
                user_id=user_id, course_id=course_id, unit_id=unit_id, assessment_id=assessment_id
            )
            self.db.add(record)
        record.mark_completed()
        self.db.flush()
        return record

    def complete_unit(self, user_id: int, course_id: int, unit_id: int) -> UserUnitProgress:
        record = self.db.query(UserUnitProgress).filter(
            and_(
                UserUnitProgress.user_id == user_id,
                UserUnitProgress.course_id == course_id,
                UserUnitProgress.unit_id == unit_id,
            )
        ).first()
        if record is None:
            record = UserUnitProgress(user_id=user_id, course_id=course_id, unit_id=unit_id)
            self.db.add(record)
        record.mark_completed()
        self.db.flush()
        return record

    def complete_block(self, user: User, block_id: int) -> dict:
        """
        Record that a learner finished a block.

        Idempotent: XP is awarded only on the first completion. Progress is
        updated for every course that contains the block's unit.
        """
        block = self.db.query(LearningBlock).filter(LearningBlock.id == block_id).first()
        if not block:
            raise NotFoundError("Learning block not found")

        existing = self.db.query(BlockCompletion).filter(
            and_(BlockCompletion.user_id == user.id, BlockCompletion.block_id == block_id)
        ).first()

        xp_awarded = 0
        if existing is None:
            self.db.add(BlockCompletion(user_id=user.id, block_id=block_id, completed=True))
            xp_awarded = block.xp_points if block.xp_points is not None else 10
            user.add_xp(xp_awarded)
            log_activity(self.db, user.id, ActivityType.BLOCK_COMPLETED, {
                "block_id": block.id,
                "unit_id": block.unit_id,
                "xp_points": xp_awarded,
            })

        completed_courses = []
        course_progress = []
        for course in self.get_courses_for_unit(block.unit_id):
            self.mark_block_progress(user.id, course.id, block.unit_id, block.id)
            progress, just_completed = self.refresh_course_progress(user.id, course.id)
            course_progress.append({
                "course_id": course.id,
                "percent_complete": progress.percent_complete,
                "completed": progress.completed,
            })
            if just_completed:
                completed_courses.append(course)

        return {
            "block": block,
            "already_completed": existing is not None,
            "xp_awarded": xp_awarded,
            "course_progress": course_progress,
            "completed_courses": completed_courses,
        }
