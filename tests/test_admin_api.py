import io

import openpyxl

from vx_academy.models.notification import Notification
from vx_academy.models.role import Role
from vx_academy.models.user import User, UserRole
from vx_academy.models.user_progress import UserProgress

from tests.conftest import auth_headers, make_user


def _role(db, name="Receptionist"):
    role = Role(name=name, description="Front desk staff")
    db.add(role)
    db.commit()
    return role


def _new_user_payload(username, **extra):
    payload = {
        "username": username,
        "email": f"{username}@vx-academy.com",
        "name": username.title(),
        "password": "Password123",
    }
    payload.update(extra)
    return payload


class TestUserAdministration:
    def test_learners_cannot_list_users(self, client, learner_headers):
        assert client.get("/api/admin/users", headers=learner_headers).status_code == 403

    def test_admin_lists_all_users_with_progress(self, client, learner, admin_headers):
        body = client.get("/api/admin/users", headers=admin_headers).json()
        assert body["total"] == 2
        row = next(u for u in body["items"] if u["username"] == "learner")
        assert row["badges_collected"] == 0
        assert row["mandatory_progress"] == 0

    def test_sub_admin_sees_only_own_users(self, client, db, learner):
        sub_admin = make_user(db, "manager", role=UserRole.SUB_ADMIN)
        headers = auth_headers(sub_admin)

        created = client.post("/api/admin/users", json=_new_user_payload("trainee"), headers=headers)
        assert created.status_code == 201
        assert created.json()["created_by"] == sub_admin.id

        body = client.get("/api/admin/users", headers=headers).json()
        assert [u["username"] for u in body["items"]] == ["trainee"]
        assert client.get(f"/api/admin/users/{learner.id}", headers=headers).status_code == 403

    def test_sub_admin_cannot_create_staff(self, client, db):
        sub_admin = make_user(db, "manager", role=UserRole.SUB_ADMIN)
        response = client.post(
            "/api/admin/users",
            json=_new_user_payload("boss", role="admin"),
            headers=auth_headers(sub_admin),
        )
        assert response.status_code == 403

    def test_duplicate_username_rejected(self, client, learner, admin_headers):
        response = client.post("/api/admin/users", json=_new_user_payload("learner"), headers=admin_headers)
        assert response.status_code == 400

    def test_new_user_enrolled_in_role_courses(self, client, db, admin_headers, course):
        role = _role(db)
        client.post(f"/api/admin/roles/{role.id}/mandatory-courses", json={"course_id": course.id}, headers=admin_headers)

        response = client.post(
            "/api/admin/users", json=_new_user_payload("newbie", role_id=role.id), headers=admin_headers
        )
        user_id = response.json()["id"]

        assert db.query(UserProgress).filter_by(user_id=user_id, course_id=course.id).count() == 1
        assert db.query(Notification).filter_by(user_id=user_id, type="course_assigned").count() == 1

    def test_update_user_role_enrolls(self, client, db, learner, admin_headers, course):
        role = _role(db)
        client.post(f"/api/admin/roles/{role.id}/mandatory-courses", json={"course_id": course.id}, headers=admin_headers)

        response = client.put(f"/api/admin/users/{learner.id}", json={"role_id": role.id}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["role_id"] == role.id
        assert db.query(UserProgress).filter_by(user_id=learner.id, course_id=course.id).count() == 1

    def test_admin_cannot_delete_self(self, client, admin, admin_headers):
        response = client.delete(f"/api/admin/users/{admin.id}", headers=admin_headers)
        assert response.status_code == 400

    def test_delete_user(self, client, db, learner, admin_headers):
        learner_id = learner.id
        assert client.delete(f"/api/admin/users/{learner_id}", headers=admin_headers).status_code == 200
        assert db.query(User).filter_by(id=learner_id).first() is None


class TestRoles:
    def test_mandatory_course_enrolls_existing_holders(self, client, db, learner, admin_headers, course):
        role = _role(db)
        learner.role_id = role.id
        db.commit()

        response = client.post(
            f"/api/admin/roles/{role.id}/mandatory-courses", json={"course_id": course.id}, headers=admin_headers
        )
        assert response.status_code == 201

        mine = client.get("/api/my-mandatory-courses", headers=auth_headers(learner)).json()
        assert [(c["course"]["id"], c["is_completed"], c["percent_complete"]) for c in mine] == [
            (course.id, False, 0)
        ]

    def test_assign_units_makes_their_courses_mandatory(self, client, db, admin_headers, course):
        role = _role(db)
        unit_id = course.unit_links[0].unit_id

        response = client.post(
            f"/api/admin/roles/{role.id}/units", json={"unit_ids": [unit_id]}, headers=admin_headers
        )
        assert response.status_code == 201
        assert response.json()["data"] == {"assignments": 1}

        links = client.get(f"/api/admin/roles/{role.id}/mandatory-courses", headers=admin_headers).json()
        assert [link["course_id"] for link in links] == [course.id]

    def test_assign_units_rejects_empty_list(self, client, db, admin_headers):
        role = _role(db)
        response = client.post(f"/api/admin/roles/{role.id}/units", json={"unit_ids": []}, headers=admin_headers)
        assert response.status_code == 400

    def test_remove_missing_mandatory_course(self, client, db, admin_headers, course):
        role = _role(db)
        response = client.delete(
            f"/api/admin/roles/{role.id}/mandatory-courses/{course.id}", headers=admin_headers
        )
        assert response.status_code == 404

    def test_role_crud(self, client, admin_headers, learner_headers):
        created = client.post("/api/admin/roles", json={"name": "Chef"}, headers=admin_headers)
        assert created.status_code == 201
        role_id = created.json()["id"]

        assert client.post("/api/admin/roles", json={"name": "Chef"}, headers=admin_headers).status_code == 400
        assert client.post("/api/admin/roles", json={"name": "Cook"}, headers=learner_headers).status_code == 403

        updated = client.patch(f"/api/admin/roles/{role_id}", json={"description": "Kitchen"}, headers=admin_headers)
        assert updated.json()["description"] == "Kitchen"
        assert [r["name"] for r in client.get("/api/roles", headers=learner_headers).json()] == ["Chef"]

        assert client.delete(f"/api/admin/roles/{role_id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/roles/{role_id}", headers=learner_headers).status_code == 404


class TestDashboard:
    def test_stats(self, client, db, learner, admin_headers, course):
        db.add(UserProgress(user_id=learner.id, course_id=course.id, completed=True, percent_complete=100))
        db.commit()

        body = client.get("/api/admin/stats", headers=admin_headers).json()
        assert body["users"]["total"] == 2
        assert body["courses"]["total"] == 1
        assert body["progress"]["totalCompletions"] == 1
        assert body["progress"]["completionRate"] == 100
        assert body["progress"]["topCourses"] == [{"courseName": "Guest Welcome", "completions": 1}]

    def test_analytics_overview(self, client, db, learner, admin_headers, course):
        db.add(UserProgress(user_id=learner.id, course_id=course.id, completed=False, percent_complete=40))
        db.commit()

        body = client.get("/api/admin/analytics?timeRange=week", headers=admin_headers).json()
        assert body["timeRange"]["period"] == "week"
        assert body["summary"]["totalUsers"] == 2
        assert body["enrollments"] == 1
        assert body["courseCompletion"] == [
            {"name": "Guest Welcome", "completionRate": 0, "totalEnrolled": 1, "completedCount": 0}
        ]

    def test_unknown_time_range_falls_back_to_month(self, client, admin_headers):
        body = client.get("/api/admin/analytics?timeRange=decade", headers=admin_headers).json()
        assert body["timeRange"]["period"] == "month"

    def test_time_series_length(self, client, admin_headers):
        body = client.get("/api/admin/analytics/timeseries?timeRange=week", headers=admin_headers).json()
        assert len(body["data"]) == 7
        assert set(body["data"][0]) == {"date", "activeUsers", "newUsers", "enrollments", "completions"}

    def test_analytics_forbidden_for_learners(self, client, learner_headers):
        assert client.get("/api/admin/analytics", headers=learner_headers).status_code == 403

    def test_export_workbook(self, client, learner, admin_headers):
        response = client.get("/api/admin/analytics/export?timeRange=month", headers=admin_headers)
        assert response.status_code == 200
        assert "analytics_month_" in response.headers["content-disposition"]

        workbook = openpyxl.load_workbook(io.BytesIO(response.content))
        assert workbook.sheetnames == ["Summary", "Courses", "Users"]
        users = workbook["Users"]
        assert users["A1"].value == "ID"
        assert users.max_row == 3
