"""
HTTP tests for the FastAPI app.
"""
from datetime import date

import pytest
from starlette.requests import Request

from backend.auth import (
    ChainIdentityProvider, IdentityProvider, StaticIdentityProvider, TokenIdentityProvider,
    create_auth_token
)
from backend.storage import DatabaseStorage


@pytest.fixture
def users(db_session):
    storage = DatabaseStorage(db_session)
    company = storage.create_company({"name": "Acme", "domain": "acme.test"})
    alice = storage.create_user({
        "username": "alice", "email": "alice@acme.test", "name": "Alice",
        "password": "not-a-hash", "company_id": company.id,
    })
    admin = storage.create_user({
        "username": "boss", "email": "boss@acme.test", "name": "Boss",
        "password": "not-a-hash", "company_id": company.id, "role": "admin",
    })
    return {"alice": alice.id, "admin": admin.id, "company": company.id}


def week_payload(**overrides):
    payload = {
        "week_start": date.today().isoformat(),
        "commute_type": "cycle",
        "days_logged": 3,
        "distance_km": 10,
        "monday": True,
        "tuesday": True,
        "wednesday": True,
    }
    payload.update(overrides)
    return payload


def make_request(headers=None, query=b""):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "query_string": query,
    }
    return Request(scope)


class TestIdentityProviders:
    """Tests for resolving the calling user"""

    def test_token_header_first(self):
        token = create_auth_token(3, "alice")
        request = make_request({"X-Auth-Token": token}, b"userId=9")
        assert TokenIdentityProvider().resolve(request) == 3

    def test_query_param_when_allowed(self):
        request = make_request(query=b"userId=9")
        assert TokenIdentityProvider().resolve(request) == 9
        assert TokenIdentityProvider(allow_query_param=False).resolve(request) is None

    def test_static_fallback_in_chain(self):
        provider = ChainIdentityProvider(TokenIdentityProvider(), StaticIdentityProvider(7))
        assert provider.resolve(make_request()) == 7
        assert provider.resolve(make_request(query=b"userId=2")) == 2

    def test_provider_must_implement_resolve(self):
        class Incomplete(IdentityProvider):
            pass

        with pytest.raises(TypeError):
            IdentityProvider()
        with pytest.raises(TypeError):
            Incomplete()


class TestAuthEndpoints:
    """Tests for register/login and identity"""

    def test_register_then_login_with_token(self, client):
        response = client.post("/api/auth/register", json={
            "username": "dave", "email": "dave@example.com", "name": "Dave", "password": "secret123"
        })
        assert response.status_code == 201
        assert "password" not in response.json()

        response = client.post("/api/auth/login", json={"username": "dave", "password": "secret123"})
        assert response.status_code == 200
        token = response.json()["auth_token"]

        response = client.get("/api/user", headers={"X-Auth-Token": token})
        assert response.status_code == 200
        assert response.json()["username"] == "dave"

    def test_bad_credentials(self, client, users):
        response = client.post("/api/auth/login", json={"username": "alice", "password": "wrong"})
        assert response.status_code == 401

    def test_unauthenticated(self, client):
        response = client.get("/api/user")
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    def test_unknown_user(self, client):
        response = client.get("/api/user", params={"userId": 12345})
        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"

    def test_invalid_token(self, client):
        response = client.get("/api/user", headers={"X-Auth-Token": "garbage"})
        assert response.status_code == 401

    def test_profile_embeds_company(self, client, users):
        response = client.get("/api/user/profile", params={"userId": users["alice"]})
        assert response.status_code == 200
        assert response.json()["company"]["domain"] == "acme.test"


class TestCommuteEndpoints:
    """Tests for logging commutes over HTTP"""

    def test_create_then_merge(self, client, users):
        params = {"userId": users["alice"]}

        response = client.post("/api/commutes", params=params, json=week_payload())
        assert response.status_code == 201
        created = response.json()
        assert created["co2_saved_kg"] == 6

        response = client.post("/api/commutes/log", params=params, json=week_payload(
            commute_type="public_transport", days_logged=2,
            monday=None, tuesday=None, wednesday=None, thursday=True, friday=True,
            distance_km=None
        ))
        assert response.status_code == 200
        merged = response.json()
        assert merged["id"] == created["id"]
        assert merged["days_logged"] == 5
        assert merged["commute_type"] == "public_transport"

        points = client.get("/api/user/points", params=params).json()
        assert [(p["source"], p["points"]) for p in points] == [("cycle commute", 100)]

    def test_days_flag_mismatch_is_400(self, client, users):
        response = client.post(
            "/api/commutes", params={"userId": users["alice"]}, json=week_payload(days_logged=4)
        )
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Invalid data"
        assert body["errors"]

    def test_unknown_commute_type_is_400(self, client, users):
        response = client.post(
            "/api/commutes", params={"userId": users["alice"]}, json=week_payload(commute_type="rocket")
        )
        assert response.status_code == 400

    def test_body_user_must_exist(self, client, users):
        response = client.post(
            "/api/commutes", params={"userId": users["alice"]}, json=week_payload(user_id=999)
        )
        assert response.status_code == 404

    def test_failing_challenge_update_still_logs_commute(self, client, users, db_session, monkeypatch):
        def broken(self, user_id):
            raise RuntimeError("challenge table unavailable")

        monkeypatch.setattr(DatabaseStorage, "get_user_challenges", broken)
        params = {"userId": users["alice"]}

        response = client.post("/api/commutes", params=params, json=week_payload())

        assert response.status_code == 201
        storage = DatabaseStorage(db_session)
        assert len(storage.get_commute_logs_by_user(users["alice"])) == 1
        assert storage.sum_points_transactions(users["alice"]) == 100

    def test_current_breakdown_and_stats(self, client, users):
        params = {"userId": users["alice"]}
        client.post("/api/commutes", params=params, json=week_payload())

        assert len(client.get("/api/commutes/current", params=params).json()) == 1
        assert len(client.get("/api/commutes", params=params).json()) == 1

        breakdown = client.get("/api/commutes/breakdown", params=params).json()
        assert breakdown == {"breakdown": [{"type": "cycle", "days": 3, "percentage": 100}], "totalDays": 3}

        stats = client.get("/api/user/stats", params=params).json()
        assert stats == {"points": 100, "streak": 0, "co2_saved": 6, "completed_challenges": 0}


class TestChallengeEndpoints:
    """Tests for challenges over HTTP"""

    def challenge_body(self, **overrides):
        body = {
            "title": "Cycle Week",
            "description": "Cycle three days",
            "start_date": "2024-01-01",
            "end_date": "2030-12-31",
            "points_reward": 40,
            "goal_type": "days",
            "goal_value": 3,
            "commute_type": "cycle",
        }
        body.update(overrides)
        return body

    def test_regular_user_cannot_create(self, client, users):
        response = client.post(
            "/api/challenges", params={"userId": users["alice"]}, json=self.challenge_body()
        )
        assert response.status_code == 403

    def test_join_and_complete(self, client, users):
        admin = {"userId": users["admin"]}
        alice = {"userId": users["alice"]}
        challenge = client.post("/api/challenges", params=admin, json=self.challenge_body()).json()
        assert challenge["company_id"] == users["company"]

        response = client.post(f"/api/challenges/{challenge['id']}/join", params=alice)
        assert response.status_code == 201
        response = client.post(f"/api/challenges/{challenge['id']}/join", params=alice)
        assert response.status_code == 400

        client.post("/api/commutes", params=alice, json=week_payload())

        joined = client.get("/api/user/challenges", params=alice).json()
        assert joined[0]["participant"]["progress"] == 3
        assert joined[0]["participant"]["completed"] is True
        assert client.get("/api/user", params=alice).json()["points_total"] == 140

    def test_update_and_delete(self, client, users):
        admin = {"userId": users["admin"]}
        challenge = client.post("/api/challenges", params=admin, json=self.challenge_body()).json()

        response = client.put(f"/api/challenges/{challenge['id']}", params=admin, json={"goal_value": 10})
        assert response.status_code == 200
        assert response.json()["goal_value"] == 10

        assert client.delete(f"/api/challenges/{challenge['id']}", params=admin).status_code == 204
        assert client.delete(f"/api/challenges/{challenge['id']}", params=admin).status_code == 404

    def test_end_before_start_is_400(self, client, users):
        response = client.post(
            "/api/challenges", params={"userId": users["admin"]},
            json=self.challenge_body(start_date="2024-05-01", end_date="2024-04-01")
        )
        assert response.status_code == 400

    def test_null_required_field_is_400(self, client, users):
        admin = {"userId": users["admin"]}
        challenge = client.post("/api/challenges", params=admin, json=self.challenge_body()).json()

        response = client.put(f"/api/challenges/{challenge['id']}", params=admin, json={"title": None})

        assert response.status_code == 400
        assert client.get("/api/challenges", params=admin).json()[0]["title"] == "Cycle Week"

    def test_update_cannot_invert_stored_window(self, client, users):
        admin = {"userId": users["admin"]}
        challenge = client.post(
            "/api/challenges", params=admin, json=self.challenge_body(end_date="2024-12-31")
        ).json()

        response = client.put(
            f"/api/challenges/{challenge['id']}", params=admin, json={"start_date": "2025-06-01"}
        )

        assert response.status_code == 400
        assert client.get("/api/challenges", params=admin).json()[0]["start_date"] == "2024-01-01"

    def test_goal_cannot_drop_below_progress(self, client, users):
        admin = {"userId": users["admin"]}
        alice = {"userId": users["alice"]}
        challenge = client.post(
            "/api/challenges", params=admin, json=self.challenge_body(goal_value=10)
        ).json()
        client.post(f"/api/challenges/{challenge['id']}/join", params=alice)
        client.post("/api/commutes", params=alice, json=week_payload())

        response = client.put(f"/api/challenges/{challenge['id']}", params=admin, json={"goal_value": 2})

        assert response.status_code == 400
        joined = client.get("/api/user/challenges", params=alice).json()
        assert joined[0]["participant"]["progress"] == 3
        assert joined[0]["challenge"]["goal_value"] == 10

    def test_cannot_join_other_company_challenge(self, client, users, db_session):
        storage = DatabaseStorage(db_session)
        other = storage.create_company({"name": "Other", "domain": "other.test"})
        challenge = storage.create_challenge({
            **self.challenge_body(start_date=date(2024, 1, 1), end_date=date(2030, 12, 31)),
            "company_id": other.id,
        })

        response = client.post(f"/api/challenges/{challenge.id}/join", params={"userId": users["alice"]})

        assert response.status_code == 403


class TestRewardEndpoints:
    """Tests for rewards, redemptions and leaderboard over HTTP"""

    def test_redeem_flow(self, client, users):
        admin = {"userId": users["admin"]}
        alice = {"userId": users["alice"]}
        reward = client.post("/api/rewards", params=admin, json={
            "title": "Coffee", "description": "Free coffee", "cost_points": 80
        }).json()

        response = client.post(f"/api/rewards/{reward['id']}/redeem", params=alice)
        assert response.status_code == 400
        assert response.json() == {"message": "Not enough points", "pointsNeeded": 80}

        client.post("/api/commutes", params=alice, json=week_payload())
        response = client.post(f"/api/rewards/{reward['id']}/redeem", params=alice)
        assert response.status_code == 201
        assert response.json()["reward"]["title"] == "Coffee"

        assert client.get("/api/user", params=alice).json()["points_total"] == 20
        redemptions = client.get("/api/user/redemptions", params=alice).json()
        assert [r["reward"]["id"] for r in redemptions] == [reward["id"]]

    def test_redeem_unknown_reward(self, client, users):
        response = client.post("/api/rewards/999/redeem", params={"userId": users["alice"]})
        assert response.status_code == 404

    def test_cannot_redeem_other_company_reward(self, client, users, db_session):
        storage = DatabaseStorage(db_session)
        other = storage.create_company({"name": "Other", "domain": "other.test"})
        reward = storage.create_reward({
            "title": "Gym", "description": "Gym pass", "cost_points": 0, "company_id": other.id
        })

        response = client.post(f"/api/rewards/{reward.id}/redeem", params={"userId": users["alice"]})

        assert response.status_code == 403
        assert client.get("/api/user/redemptions", params={"userId": users["alice"]}).json() == []

    def test_leaderboard(self, client, users):
        client.post("/api/commutes", params={"userId": users["alice"]}, json=week_payload())

        board = client.get("/api/leaderboard", params={"userId": users["admin"], "limit": 1}).json()

        assert [u["username"] for u in board] == ["alice"]

    def test_company_domain_conflict(self, client):
        assert client.post("/api/companies", json={"name": "Beta", "domain": "beta.test"}).status_code == 201
        assert client.post("/api/companies", json={"name": "Beta 2", "domain": "beta.test"}).status_code == 400
