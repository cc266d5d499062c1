import pytest

from vx_academy.models.course import LearningBlock
from vx_academy.models.user_progress import UserProgress
from vx_academy.services.progress import (
    AssessmentRef,
    BlockRef,
    CompletionRecord,
    ProgressService,
    calculate_course_progress,
    round_half_up,
)


def _blocks(count, unit_id=1):
    return [BlockRef(id=i, unit_id=unit_id) for i in range(1, count + 1)]


def _done(*ids):
    return [CompletionRecord(entity_id=i) for i in ids]


class TestCalculateCourseProgress:
    def test_course_without_items_is_complete(self):
        data = calculate_course_progress([1], [], [])
        assert data.percent_complete == 100
        assert data.completed is True
        assert data.total_items == 0

    def test_two_of_three_rounds_to_67(self):
        data = calculate_course_progress([1], _blocks(3), [], _done(1, 2))
        assert data.percent_complete == 67
        assert data.completed is False

    def test_one_of_eight_rounds_half_up(self):
        data = calculate_course_progress([1], _blocks(8), [], _done(1))
        assert data.percent_complete == 13

    def test_final_assessment_does_not_count(self):
        final = AssessmentRef(id=10, unit_id=None, placement="end")
        data = calculate_course_progress([1], _blocks(2), [final], _done(1, 2))
        assert data.total_items == 2
        assert data.percent_complete == 100
        assert data.completed is True

    def test_course_level_beginning_assessment_counts(self):
        pre_test = AssessmentRef(id=10, unit_id=None, placement="beginning")
        data = calculate_course_progress([1], _blocks(1), [pre_test], _done(1))
        assert data.total_items == 2
        assert data.percent_complete == 50

    def test_unit_assessment_counts_once_completed(self):
        quiz = AssessmentRef(id=10, unit_id=1, placement="end")
        data = calculate_course_progress(
            [1], _blocks(1), [quiz], _done(1), [CompletionRecord(entity_id=10)]
        )
        assert data.completed_assessments == 1
        assert data.percent_complete == 100

    def test_blocks_of_other_units_are_ignored(self):
        blocks = _blocks(2) + [BlockRef(id=99, unit_id=2)]
        data = calculate_course_progress([1], blocks, [], _done(1, 99))
        assert data.total_blocks == 2
        assert data.completed_blocks == 1

    def test_incomplete_records_do_not_count(self):
        records = [CompletionRecord(entity_id=1, is_completed=False)]
        data = calculate_course_progress([1], _blocks(2), [], records)
        assert data.percent_complete == 0

    def test_progress_never_decreases_as_blocks_complete(self):
        blocks = _blocks(7)
        previous = 0
        for done in range(len(blocks) + 1):
            percent = calculate_course_progress([1], blocks, [], _done(*range(1, done + 1))).percent_complete
            assert percent >= previous
            previous = percent
        assert previous == 100

    def test_input_order_does_not_matter(self):
        forward = calculate_course_progress([1, 2], _blocks(3), [], _done(1, 3))
        backward = calculate_course_progress([2, 1], list(reversed(_blocks(3))), [], _done(3, 1))
        assert forward == backward


@pytest.mark.parametrize("value, expected", [(12.5, 13), (66.666, 67), (0.4, 0), (99.5, 100)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


class TestProgressService:
    def test_enroll_creates_zero_snapshot_once(self, db, learner, course):
        service = ProgressService(db)
        progress, created = service.enroll(learner, course.id)
        assert created is True
        assert progress.percent_complete == 0

        again, created = service.enroll(learner, course.id)
        assert created is False
        assert again.id == progress.id

    def test_complete_block_awards_xp_once(self, db, learner, course):
        block = db.query(LearningBlock).order_by(LearningBlock.id).first()
        service = ProgressService(db)

        first = service.complete_block(learner, block.id)
        second = service.complete_block(learner, block.id)
        db.commit()

        assert first["xp_awarded"] == 10
        assert second["already_completed"] is True
        assert second["xp_awarded"] == 0
        db.refresh(learner)
        assert learner.xp_points == 10

    def test_completing_every_block_completes_course(self, db, learner, course):
        service = ProgressService(db)
        blocks = db.query(LearningBlock).order_by(LearningBlock.id).all()
        completed = []
        for block in blocks:
            completed += service.complete_block(learner, block.id)["completed_courses"]
        db.commit()

        progress = db.query(UserProgress).filter_by(user_id=learner.id, course_id=course.id).one()
        assert progress.percent_complete == 100
        assert progress.completed is True
        assert progress.completed_at is not None
        assert [c.id for c in completed] == [course.id]


class TestProgressApi:
    def test_complete_block_endpoint_reports_course_progress(self, client, db, learner_headers, course):
        block = db.query(LearningBlock).order_by(LearningBlock.id).first()
        response = client.post(f"/api/blocks/{block.id}/complete", headers=learner_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["xp_awarded"] == 10
        assert body["course_progress"] == [
            {"course_id": course.id, "percent_complete": 33, "completed": False}
        ]

        progress = client.get(f"/api/progress/courses/{course.id}", headers=learner_headers).json()
        assert progress["completed_blocks"] == 1
        assert progress["total_blocks"] == 3

    def test_progress_snapshot_requires_course(self, client, learner_headers):
        response = client.post("/api/progress", json={"percent_complete": 10}, headers=learner_headers)
        assert response.status_code == 400

    def test_block_progress_rejects_unit_outside_course(self, client, db, learner_headers, course):
        block = db.query(LearningBlock).order_by(LearningBlock.id).first()
        response = client.post(
            "/api/progress/block",
            json={"course_id": course.id, "unit_id": 999, "block_id": block.id},
            headers=learner_headers,
        )
        assert response.status_code == 400
