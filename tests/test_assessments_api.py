from vx_academy.models.assessment import Assessment, AssessmentAttempt, Question
from vx_academy.models.badge import Badge, UserBadge
from vx_academy.models.certificate import Certificate
from vx_academy.models.notification import Notification
from vx_academy.models.user_progress import UserProgress

from tests.conftest import make_user


def _assessment(db, course, **kwargs):
    assessment = Assessment(
        course_id=course.id,
        title=kwargs.pop("title", "Final exam"),
        placement=kwargs.pop("placement", "end"),
        max_retakes=kwargs.pop("max_retakes", 2),
        xp_points=kwargs.pop("xp_points", 50),
        **kwargs,
    )
    db.add(assessment)
    db.flush()
    db.add_all([
        Question(assessment_id=assessment.id, question_text="2 + 2?", question_type="mcq",
                 options=["3", "4"], correct_answer="4", order=1),
        Question(assessment_id=assessment.id, question_text="The sky is blue", question_type="true_false",
                 options=["True", "False"], correct_answer="True", order=2),
        Question(assessment_id=assessment.id, question_text="Capital of France?", question_type="mcq",
                 options=["Paris", "Rome"], correct_answer="Paris", order=3),
    ])
    db.commit()
    db.refresh(assessment)
    return assessment


def _answers(assessment, *values):
    return {str(q.id): value for q, value in zip(assessment.questions, values)}


def test_submit_scores_on_server(client, db, learner, learner_headers, course):
    assessment = _assessment(db, course, passing_score=60)
    response = client.post(
        f"/api/assessments/{assessment.id}/submit",
        json={"answers": _answers(assessment, "4", "true", "Rome")},
        headers=learner_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["score"] == 67
    assert body["correct_answers"] == 2
    assert body["passed"] is True
    assert body["attempts_remaining"] == 1

    db.refresh(learner)
    assert learner.xp_points == 50


def test_failed_attempt_notifies_with_attempts_left(client, db, learner, learner_headers, course):
    assessment = _assessment(db, course)
    body = client.post(
        f"/api/assessments/{assessment.id}/submit",
        json={"answers": _answers(assessment, "3", "False", "Paris")},
        headers=learner_headers,
    ).json()

    assert body["score"] == 33
    assert body["passed"] is False
    notification = db.query(Notification).filter_by(user_id=learner.id).one()
    assert notification.type == "assessment-failed"
    assert notification.data["attempts_remaining"] == 1


def test_missing_passing_score_defaults_to_70(client, db, learner_headers, course):
    assessment = _assessment(db, course)
    body = client.post(
        f"/api/assessments/{assessment.id}/submit",
        json={"answers": _answers(assessment, "4", "True", "Rome")},
        headers=learner_headers,
    ).json()
    assert body["score"] == 67
    assert body["passed"] is False


def test_zero_passing_score_falls_back_to_70(client, db, learner_headers, course):
    assessment = _assessment(db, course, passing_score=0)
    url = f"/api/assessments/{assessment.id}/submit"

    body = client.post(url, json={"answers": _answers(assessment, "3", "False", "Rome")}, headers=learner_headers).json()
    assert body["score"] == 0
    assert body["passed"] is False

    body = client.post(url, json={"answers": _answers(assessment, "4", "True", "Rome")}, headers=learner_headers).json()
    assert body["score"] == 67
    assert body["passed"] is False


def test_attempts_are_limited(client, db, learner, learner_headers, course):
    assessment = _assessment(db, course, max_retakes=1)
    url = f"/api/assessments/{assessment.id}/submit"
    payload = {"answers": _answers(assessment, "3", "False", "Rome")}

    assert client.post(url, json=payload, headers=learner_headers).status_code == 200
    response = client.post(url, json=payload, headers=learner_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "No attempts remaining"
    assert db.query(AssessmentAttempt).filter_by(user_id=learner.id).count() == 1

    status_body = client.get(f"/api/assessments/{assessment.id}/status", headers=learner_headers).json()
    assert status_body["attempts_remaining"] == 0
    assert status_body["can_start"] is False


def test_passing_certificate_assessment_issues_certificate(client, db, learner, learner_headers, course):
    assessment = _assessment(db, course, has_certificate=True)
    body = client.post(
        f"/api/assessments/{assessment.id}/submit",
        json={"answers": _answers(assessment, "4", "True", "Paris")},
        headers=learner_headers,
    ).json()

    assert body["score"] == 100
    assert body["certificate_generated"] is True
    certificate = db.query(Certificate).filter_by(user_id=learner.id, course_id=course.id).one()
    assert certificate.certificate_number.startswith(f"CERT-{learner.id}-{course.id}-")
    assert certificate.expiry_date is not None

    types = {n.type for n in db.query(Notification).filter_by(user_id=learner.id)}
    assert {"assessment-passed", "certificate-earned"} <= types


def test_certificate_failure_keeps_the_attempt(client, db, learner, learner_headers, course, monkeypatch):
    other = make_user(db, "other")
    db.add(Certificate(user_id=other.id, course_id=course.id, certificate_number="CERT-DUP"))
    db.commit()
    monkeypatch.setattr(
        "vx_academy.services.certificates.build_certificate_number",
        lambda user_id, course_id: "CERT-DUP",
    )
    assessment = _assessment(db, course, has_certificate=True)

    response = client.post(
        f"/api/assessments/{assessment.id}/submit",
        json={"answers": _answers(assessment, "4", "True", "Paris")},
        headers=learner_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["passed"] is True
    assert body["certificate_generated"] is False
    attempt = db.query(AssessmentAttempt).filter_by(user_id=learner.id).one()
    assert attempt.passed is True
    assert db.query(Certificate).filter_by(user_id=learner.id).count() == 0
    types = {n.type for n in db.query(Notification).filter_by(user_id=learner.id)}
    assert "assessment-passed" in types
    db.refresh(learner)
    assert learner.xp_points == 50


def test_final_assessment_does_not_move_progress(client, db, learner, learner_headers, course):
    assessment = _assessment(db, course)
    client.post(f"/api/courses/{course.id}/enroll", headers=learner_headers)
    client.post(
        f"/api/assessments/{assessment.id}/submit",
        json={"answers": _answers(assessment, "4", "True", "Paris")},
        headers=learner_headers,
    )
    progress = db.query(UserProgress).filter_by(user_id=learner.id, course_id=course.id).one()
    assert progress.percent_complete == 0


def test_first_pass_awards_assessment_badges(client, db, learner, learner_headers, course):
    db.add_all([
        Badge(name="First Steps", description="Pass an assessment", type="assessment", xp_points=20),
        Badge(name="Perfectionist", description="Score 100", type="assessment_perfect", xp_points=30),
    ])
    db.commit()
    assessment = _assessment(db, course)

    client.post(
        f"/api/assessments/{assessment.id}/submit",
        json={"answers": _answers(assessment, "4", "True", "Paris")},
        headers=learner_headers,
    )

    assert db.query(UserBadge).filter_by(user_id=learner.id).count() == 2
    db.refresh(learner)
    assert learner.xp_points == 50 + 20 + 30


def test_questions_hide_answers_from_learners(client, db, learner_headers, admin_headers, course):
    assessment = _assessment(db, course)
    url = f"/api/assessments/{assessment.id}/questions"

    learner_view = client.get(url, headers=learner_headers).json()
    admin_view = client.get(url, headers=admin_headers).json()

    assert [q["order"] for q in learner_view] == [1, 2, 3]
    assert "correct_answer" not in learner_view[0]
    assert admin_view[0]["correct_answer"] == "4"


def test_learner_cannot_read_other_attempts(client, db, admin, learner_headers, course):
    assessment = _assessment(db, course)
    response = client.get(f"/api/assessments/{assessment.id}/attempts/{admin.id}", headers=learner_headers)
    assert response.status_code == 403


def test_create_assessment_requires_parent(client, admin_headers):
    response = client.post("/api/assessments", json={"title": "Orphan"}, headers=admin_headers)
    assert response.status_code == 400


def test_learner_cannot_create_assessment(client, learner_headers, course):
    response = client.post(
        "/api/assessments", json={"title": "Quiz", "course_id": course.id}, headers=learner_headers
    )
    assert response.status_code == 403
