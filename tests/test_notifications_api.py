from vx_academy.services.notifications import NotificationService

from tests.conftest import auth_headers, make_user


def _notify(db, user, count):
    service = NotificationService(db)
    for i in range(count):
        service.create(user.id, "achievement", f"Title {i}", f"Message {i}")
    db.commit()


def test_list_and_count(client, db, learner, learner_headers):
    _notify(db, learner, 3)

    body = client.get("/api/notifications", headers=learner_headers).json()
    assert len(body) == 3
    assert body[0]["title"] == "Title 2"

    count = client.get("/api/notifications/count", headers=learner_headers).json()
    assert count == {"count": 3}


def test_list_limit(client, db, learner, learner_headers):
    _notify(db, learner, 5)
    body = client.get("/api/notifications?limit=2", headers=learner_headers).json()
    assert len(body) == 2


def test_mark_read_and_mark_all(client, db, learner, learner_headers):
    _notify(db, learner, 3)
    first_id = client.get("/api/notifications", headers=learner_headers).json()[0]["id"]

    response = client.patch(f"/api/notifications/{first_id}/read", headers=learner_headers)
    assert response.status_code == 200
    assert response.json()["read"] is True
    assert client.get("/api/notifications/count", headers=learner_headers).json()["count"] == 2

    response = client.patch("/api/notifications/mark-all-read", headers=learner_headers)
    assert response.json()["data"] == {"updated": 2}
    assert client.get("/api/notifications/count", headers=learner_headers).json()["count"] == 0


def test_cannot_touch_other_users_notifications(client, db, learner):
    _notify(db, learner, 1)
    other = make_user(db, "other")
    notification_id = learner.notifications[0].id

    response = client.delete(f"/api/notifications/{notification_id}", headers=auth_headers(other))
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_delete_notification(client, db, learner, learner_headers):
    _notify(db, learner, 1)
    notification_id = learner.notifications[0].id

    assert client.delete(f"/api/notifications/{notification_id}", headers=learner_headers).status_code == 200
    assert client.get("/api/notifications", headers=learner_headers).json() == []


def test_enrollment_notifies_course_assigned(client, learner_headers, course):
    client.post(f"/api/courses/{course.id}/enroll", headers=learner_headers)
    client.post(f"/api/courses/{course.id}/enroll", headers=learner_headers)

    body = client.get("/api/notifications", headers=learner_headers).json()
    assert [n["type"] for n in body] == ["course_assigned"]
    assert body[0]["data"] == {"course_id": course.id}
