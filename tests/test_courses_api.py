from vx_academy.models.assessment import Assessment
from vx_academy.models.course import CourseUnit, LearningBlock, Unit
from vx_academy.models.user import UserRole

from tests.conftest import auth_headers, make_user


def _course_payload(course, **extra):
    payload = {
        "training_area_id": course.training_area_id,
        "module_id": course.module_id,
        "name": "Upselling",
        "duration": 45,
        "internal_note": "Pilot for Q3",
    }
    payload.update(extra)
    return payload


def test_internal_note_only_for_staff(client, db, learner_headers, admin_headers, course):
    course.internal_note = "Needs new video"
    db.commit()

    learner_view = client.get(f"/api/courses/{course.id}", headers=learner_headers).json()
    admin_view = client.get(f"/api/courses/{course.id}", headers=admin_headers).json()
    assert "internal_note" not in learner_view
    assert admin_view["internal_note"] == "Needs new video"


def test_create_course_checks_permission_and_parents(client, learner_headers, admin_headers, course):
    assert client.post("/api/courses", json=_course_payload(course), headers=learner_headers).status_code == 403

    response = client.post("/api/courses", json=_course_payload(course, module_id=999), headers=admin_headers)
    assert response.status_code == 404

    response = client.post("/api/courses", json=_course_payload(course, level="advanced"), headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["level"] == "advanced"


def test_sub_admin_manages_courses_but_not_areas(client, db, course):
    headers = auth_headers(make_user(db, "manager", role=UserRole.SUB_ADMIN))
    assert client.post("/api/courses", json=_course_payload(course), headers=headers).status_code == 201
    assert client.post("/api/training-areas", json={"name": "Kitchen"}, headers=headers).status_code == 403


def test_training_area_with_courses_cannot_be_deleted(client, admin_headers, course):
    response = client.delete(f"/api/training-areas/{course.training_area_id}", headers=admin_headers)
    assert response.status_code == 400


def test_course_units_follow_course_order(client, db, learner_headers, course):
    links = db.query(CourseUnit).filter_by(course_id=course.id).order_by(CourseUnit.order).all()
    links[0].order, links[1].order = 2, 1
    db.commit()

    body = client.get(f"/api/courses/{course.id}/units", headers=learner_headers).json()
    assert [u["name"] for u in body] == ["Unit 2", "Unit 1"]


def test_course_assessments_filtered_by_placement(client, db, learner_headers, course):
    db.add_all([
        Assessment(course_id=course.id, title="Pre-test", placement="beginning"),
        Assessment(course_id=course.id, title="Final", placement="end"),
    ])
    db.commit()

    body = client.get(f"/api/courses/{course.id}/assessments?placement=beginning", headers=learner_headers).json()
    assert [a["title"] for a in body] == ["Pre-test"]


def test_enroll_twice_returns_same_record(client, learner_headers, course):
    first = client.post(f"/api/courses/{course.id}/enroll", headers=learner_headers).json()
    second = client.post(f"/api/courses/{course.id}/enroll", headers=learner_headers).json()
    assert first["id"] == second["id"]
    assert first["percent_complete"] == 0


def test_enroll_unknown_course(client, learner_headers):
    response = client.post("/api/courses/999/enroll", headers=learner_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Course not found"


def test_new_unit_is_appended_to_course(client, db, admin_headers, course):
    response = client.post(
        "/api/units", json={"name": "Unit 3", "order": 3, "course_ids": [course.id]}, headers=admin_headers
    )
    assert response.status_code == 201
    assert response.json()["course_ids"] == [course.id]

    link = db.query(CourseUnit).filter_by(unit_id=response.json()["id"]).one()
    assert link.order == 3


def test_unit_with_unknown_course(client, admin_headers):
    response = client.post("/api/units", json={"name": "Lost", "course_ids": [999]}, headers=admin_headers)
    assert response.status_code == 404


def test_unit_order_validation(client, db, learner_headers, course):
    unit_id = db.query(CourseUnit).filter_by(course_id=course.id, order=1).one().unit_id

    taken = client.post("/api/validate/unit-order", json={"order": 1, "course_id": course.id}, headers=learner_headers)
    assert taken.json()["is_available"] is False

    own = client.post(
        "/api/validate/unit-order",
        json={"order": 1, "course_id": course.id, "exclude_id": unit_id},
        headers=learner_headers,
    )
    assert own.json()["is_available"] is True

    free = client.post("/api/validate/unit-order", json={"order": 9}, headers=learner_headers)
    assert free.json()["is_available"] is True


def test_learning_block_order_validation(client, db, learner_headers, course):
    block = db.query(LearningBlock).order_by(LearningBlock.id).first()

    missing_unit = client.post("/api/validate/learning-block-order", json={"order": 1}, headers=learner_headers)
    assert missing_unit.status_code == 400

    taken = client.post(
        "/api/validate/learning-block-order",
        json={"order": block.order, "unit_id": block.unit_id},
        headers=learner_headers,
    )
    assert taken.json()["is_available"] is False


def test_learning_block_crud(client, db, admin_headers, learner_headers, course):
    unit = db.query(Unit).order_by(Unit.id).first()
    payload = {"unit_id": unit.id, "type": "video", "title": "Intro", "video_url": "https://cdn/intro.mp4", "order": 5}

    assert client.post("/api/learning-blocks", json=payload, headers=learner_headers).status_code == 403
    created = client.post("/api/learning-blocks", json=payload, headers=admin_headers)
    assert created.status_code == 201
    block_id = created.json()["id"]

    updated = client.patch(f"/api/learning-blocks/{block_id}", json={"title": "Welcome"}, headers=admin_headers)
    assert updated.json()["title"] == "Welcome"

    blocks = client.get(f"/api/learning-blocks?unit_id={unit.id}", headers=learner_headers).json()
    assert [b["order"] for b in blocks] == [1, 2, 5]

    assert client.delete(f"/api/learning-blocks/{block_id}", headers=admin_headers).status_code == 200


def test_unknown_routes_use_error_envelope(client, learner_headers):
    response = client.get("/api/units/999", headers=learner_headers)
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == 404
