from datetime import datetime

from vx_academy.models.badge import Badge, UserBadge
from vx_academy.models.certificate import Certificate
from vx_academy.models.course import Course
from vx_academy.models.notification import Notification
from vx_academy.models.user import UserRole
from vx_academy.models.user_progress import UserProgress
from vx_academy.services.badges import BadgeService

from tests.conftest import auth_headers, make_user


def _badge(db, badge_type, xp_points=25):
    badge = Badge(name=badge_type.replace("_", " ").title(), description="", type=badge_type, xp_points=xp_points)
    db.add(badge)
    db.commit()
    return badge


def test_award_badge_is_idempotent(db, learner):
    badge = _badge(db, "explorer")
    service = BadgeService(db)

    assert service.award_badge(learner, badge) is not None
    assert service.award_badge(learner, badge) is None
    db.commit()

    assert db.query(UserBadge).filter_by(user_id=learner.id).count() == 1
    assert learner.xp_points == 25
    notification = db.query(Notification).filter_by(user_id=learner.id).one()
    assert notification.type == "badge_earned"


def test_failed_attempt_awards_nothing(db, learner):
    _badge(db, "assessment")
    assert BadgeService(db).check_assessment_badges(learner, 100, False) == []


def test_area_completion_needs_every_course_of_area(db, learner, course):
    _badge(db, "course_completion")
    _badge(db, "area_completion")
    second = Course(
        training_area_id=course.training_area_id,
        module_id=course.module_id,
        name="Complaint Handling",
        duration=30,
    )
    db.add(second)
    db.add(UserProgress(user_id=learner.id, course_id=course.id, completed=True, percent_complete=100))
    db.commit()

    service = BadgeService(db)
    awarded = service.check_course_completion_badges(learner, course)
    assert [ub.badge.type for ub in awarded] == ["course_completion"]

    db.add(UserProgress(user_id=learner.id, course_id=second.id, completed=True, percent_complete=100))
    db.commit()
    awarded = service.check_course_completion_badges(learner, second)
    assert [ub.badge.type for ub in awarded] == ["area_completion"]


def test_check_all_badges_counts_certificates(db, learner, course):
    _badge(db, "certificates")
    for i in range(5):
        db.add(Certificate(
            user_id=learner.id,
            course_id=course.id,
            certificate_number=f"CERT-{learner.id}-{course.id}-{i}",
            issue_date=datetime.utcnow(),
        ))
    db.commit()

    awarded = BadgeService(db).check_all_badges(learner)
    assert [ub.badge.type for ub in awarded] == ["certificates"]


def test_badge_admin_routes_need_permission(client, learner_headers, admin_headers):
    payload = {"name": "Explorer", "description": "Start five courses", "type": "explorer", "xp_points": 40}

    assert client.post("/api/admin/badges", json=payload, headers=learner_headers).status_code == 403
    response = client.post("/api/admin/badges", json=payload, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["type"] == "explorer"

    badges = client.get("/api/badges", headers=learner_headers).json()
    assert [b["name"] for b in badges] == ["Explorer"]


def test_my_badges(client, db, learner, learner_headers):
    badge = _badge(db, "explorer")
    BadgeService(db).award_badge(learner, badge)
    db.commit()

    body = client.get("/api/user/badges", headers=learner_headers).json()
    assert len(body) == 1
    assert body[0]["badge"]["name"] == badge.name


def test_leaderboard_ranks_learners_by_xp(client, db, admin, learner_headers):
    make_user(db, "alice", xp_points=300)
    make_user(db, "bob", xp_points=900)
    make_user(db, "carol", xp_points=0, is_active=False)
    admin.xp_points = 5000
    db.commit()

    body = client.get("/api/leaderboard", headers=learner_headers).json()
    assert [(e["username"], e["rank"]) for e in body] == [("bob", 1), ("alice", 2), ("learner", 3)]
    assert "email" not in body[0]


def test_leaderboard_limit(client, db, learner_headers):
    for i in range(5):
        make_user(db, f"user{i}", xp_points=i * 10)
    body = client.get("/api/leaderboard?limit=2", headers=learner_headers).json()
    assert [e["username"] for e in body] == ["user4", "user3"]


def test_sub_admin_cannot_recheck_badges(client, db, learner):
    sub_admin = make_user(db, "manager", role=UserRole.SUB_ADMIN)
    response = client.post(f"/api/admin/badges/check/{learner.id}", headers=auth_headers(sub_admin))
    assert response.status_code == 403
