"""HTTP surface: envelope shape, status codes and auth."""
from conftest import auth_headers, task_fields


async def _post_task(client, poster, **overrides):
    response = await client.post("/v1/tasks", json=task_fields(**overrides), headers=auth_headers(poster))
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestEnvelope:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_missing_token(self, client):
        response = await client.get("/v1/tasks")
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Not authenticated"}
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_bad_token(self, client):
        response = await client.get("/v1/tasks", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["message"] == "Could not validate credentials"

    async def test_schema_validation_is_400(self, client, poster):
        response = await client.post("/v1/tasks", json={"title": "No budget"}, headers=auth_headers(poster))
        body = response.json()
        assert response.status_code == 400
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert {e["field"] for e in body["errors"]} >= {"description", "category", "budget"}

    async def test_domain_validation_lists_fields(self, client, poster):
        response = await client.post(
            "/v1/tasks", json=task_fields(budget=10, category="NOPE"), headers=auth_headers(poster)
        )
        assert response.status_code == 400
        assert {e["field"] for e in response.json()["errors"]} == {"budget", "category"}

    async def test_not_found(self, client, poster):
        response = await client.get("/v1/tasks/missing", headers=auth_headers(poster))
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Task not found"}


class TestTaskFlow:
    async def test_post_assign_chat_complete_review(self, client, poster, hustler):
        task = await _post_task(client, poster)
        assert task["status"] == "OPEN"

        listed = await client.get("/v1/tasks", params={"minBudget": 1000}, headers=auth_headers(hustler))
        data = listed.json()["data"]
        assert [t["id"] for t in data["tasks"]] == [task["id"]]
        assert data["pagination"] == {"page": 1, "limit": 20, "total": 1, "pages": 1}

        assigned = await client.put(f"/v1/tasks/{task['id']}/assign", headers=auth_headers(hustler))
        assert assigned.status_code == 200
        chat_id = assigned.json()["data"]["chat_id"]
        assert assigned.json()["data"]["status"] == "ASSIGNED"

        again = await client.put(f"/v1/tasks/{task['id']}/assign", headers=auth_headers(hustler))
        assert again.status_code == 400

        sent = await client.post(
            f"/v1/chats/{chat_id}/messages", json={"content": "Hello!"}, headers=auth_headers(poster)
        )
        assert sent.status_code == 201
        assert sent.json()["data"]["sequence"] == 1

        messages = await client.get(f"/v1/chats/{chat_id}/messages", headers=auth_headers(hustler))
        assert messages.json()["data"]["total"] == 1

        done = await client.put(
            f"/v1/tasks/{task['id']}/status", json={"status": "COMPLETED"}, headers=auth_headers(poster)
        )
        assert done.status_code == 200
        assert done.json()["data"]["status"] == "COMPLETED"

        review = await client.post(
            f"/v1/tasks/{task['id']}/reviews", json={"rating": 5}, headers=auth_headers(poster)
        )
        assert review.status_code == 201
        duplicate = await client.post(
            f"/v1/tasks/{task['id']}/reviews", json={"rating": 4}, headers=auth_headers(poster)
        )
        assert duplicate.status_code == 409

        stats = await client.get("/v1/users/me/stats", headers=auth_headers(hustler))
        assert stats.json()["data"]["total_earnings"] == 5000
        assert stats.json()["data"]["average_rating"] == 5.0

        inbox = await client.get("/v1/notifications", headers=auth_headers(hustler))
        types = [n["type"] for n in inbox.json()["data"]["notifications"]]
        assert set(types) == {"NEW_MESSAGE", "TASK_COMPLETED", "REVIEW_RECEIVED"}
        assert inbox.json()["data"]["unread_count"] == 3

    async def test_hustler_cannot_post(self, client, hustler):
        response = await client.post("/v1/tasks", json=task_fields(), headers=auth_headers(hustler))
        assert response.status_code == 403

    async def test_outsider_cannot_read_chat(self, client, poster, hustler, make_user):
        task = await _post_task(client, poster)
        assigned = await client.put(f"/v1/tasks/{task['id']}/assign", headers=auth_headers(hustler))
        chat_id = assigned.json()["data"]["chat_id"]
        outsider = await make_user("HUSTLER")

        response = await client.get(f"/v1/chats/{chat_id}/messages", headers=auth_headers(outsider))
        assert response.status_code == 403

    async def test_status_by_outsider_is_forbidden(self, client, poster, hustler, make_user):
        task = await _post_task(client, poster)
        await client.put(f"/v1/tasks/{task['id']}/assign", headers=auth_headers(hustler))
        outsider = await make_user("BOTH")
        response = await client.put(
            f"/v1/tasks/{task['id']}/status", json={"status": "CANCELLED"}, headers=auth_headers(outsider)
        )
        assert response.status_code == 403

    async def test_delete(self, client, poster, hustler):
        task = await _post_task(client, poster)
        forbidden = await client.delete(f"/v1/tasks/{task['id']}", headers=auth_headers(hustler))
        assert forbidden.status_code == 403
        deleted = await client.delete(f"/v1/tasks/{task['id']}", headers=auth_headers(poster))
        assert deleted.json() == {"success": True, "message": "Task deleted successfully"}


    async def test_edit_open_task(self, client, poster):
        task = await _post_task(client, poster)
        edited = await client.put(
            f"/v1/tasks/{task['id']}", json={"title": "Pick up groceries by noon"}, headers=auth_headers(poster)
        )
        assert edited.status_code == 200
        assert edited.json()["data"]["title"] == "Pick up groceries by noon"

        budget = await client.put(f"/v1/tasks/{task['id']}", json={"budget": 1}, headers=auth_headers(poster))
        assert budget.status_code == 400
        assert [e["field"] for e in budget.json()["errors"]] == ["budget"]

    async def test_page_limit_out_of_range_is_400(self, client, poster):
        response = await client.get("/v1/tasks", params={"limit": 500}, headers=auth_headers(poster))
        assert response.status_code == 400
        assert response.json()["success"] is False


class TestAuthRoutes:
    async def test_register_verify_login(self, client, code_sender):
        registered = await client.post(
            "/v1/auth/register",
            json={
                "email": "bayo@example.com",
                "phone_number": "+2348011112222",
                "password": "hunter22",
                "first_name": "Bayo",
                "last_name": "Ade",
                "user_type": "HUSTLER",
            },
        )
        assert registered.status_code == 201

        verified = await client.post(
            "/v1/auth/verify",
            json={"identifier": "bayo@example.com", "code": code_sender.last_code("bayo@example.com")},
        )
        assert verified.status_code == 200
        access = verified.json()["data"]["access_token"]

        me = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {access}"})
        assert me.json()["data"]["email"] == "bayo@example.com"

        login = await client.post("/v1/auth/login", json={"identifier": "+2348011112222", "password": "hunter22"})
        assert login.status_code == 200
        assert login.json()["message"] == "Login successful"

    async def test_bad_login(self, client, poster):
        response = await client.post("/v1/auth/login", json={"identifier": poster.email, "password": "wrong"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    async def test_invalid_email_is_400(self, client):
        response = await client.post(
            "/v1/auth/register",
            json={
                "email": "not-an-email",
                "phone_number": "+2348011112222",
                "password": "hunter22",
                "first_name": "Bayo",
                "last_name": "Ade",
            },
        )
        assert response.status_code == 400


class TestUserRoutes:
    async def test_profile_update_and_public_view(self, client, poster, hustler):
        updated = await client.put(
            "/v1/users/me", json={"bio": "Errands on weekends", "city": "Lagos"}, headers=auth_headers(poster)
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["bio"] == "Errands on weekends"

        public = await client.get(f"/v1/users/{poster.id}", headers=auth_headers(hustler))
        data = public.json()["data"]
        assert data["city"] == "Lagos"
        assert "email" not in data

    async def test_delete_account(self, client, make_user):
        user = await make_user("HUSTLER")
        headers = auth_headers(user)
        response = await client.delete("/v1/users/me", headers=headers)
        assert response.json() == {"success": True, "message": "Account deleted successfully"}

        gone = await client.get("/v1/auth/me", headers=headers)
        assert gone.status_code == 401

    async def test_delete_account_with_open_task_is_refused(self, client, poster):
        await _post_task(client, poster)
        response = await client.delete("/v1/users/me", headers=auth_headers(poster))
        assert response.status_code == 400

    async def test_notification_ownership(self, client, poster, hustler):
        task = await _post_task(client, poster)
        await client.put(f"/v1/tasks/{task['id']}/assign", headers=auth_headers(hustler))
        inbox = await client.get("/v1/notifications", headers=auth_headers(poster))
        notification_id = inbox.json()["data"]["notifications"][0]["id"]

        foreign = await client.put(f"/v1/notifications/{notification_id}/read", headers=auth_headers(hustler))
        assert foreign.status_code == 404

        own = await client.put(f"/v1/notifications/{notification_id}/read", headers=auth_headers(poster))
        assert own.status_code == 200
        count = await client.get("/v1/notifications/unread-count", headers=auth_headers(poster))
        assert count.json()["data"] == {"unread_count": 0}
