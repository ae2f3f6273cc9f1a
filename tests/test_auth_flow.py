def _signup(client, *, email: str, password: str, role: str, name: str = "Test User", **extra):
    body = {"email": email, "password": password, "role": role, "name": name}
    body.update(extra)
    return client.post("/auth/signup", json=body)


def _login(client, *, email: str, password: str, role: str | None):
    body = {"email": email, "password": password}
    if role is not None:
        body["role"] = role
    return client.post("/auth/login", json=body)


def _auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_signup_employer_creates_employer_profile(client):
    r = _signup(
        client,
        email="hr@example.com",
        password="Testpass123!",
        role="employer",
        name="Hiring Manager",
        company_name="Globex",
    )
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["user"]["role"] == "employer"
    assert isinstance(data["user"]["employer_id"], int)
    assert isinstance(data.get("access_token"), str) and len(data["access_token"]) > 10


def test_signup_candidate_creates_candidate_profile(client, db_session):
    from interview_scheduler.models.candidate import Candidate

    r = _signup(client, email="candidate@example.com", password="Testpass123!", role="candidate", name="Cand")
    assert r.status_code == 200, r.text
    candidate_id = r.json()["user"]["candidate_id"]

    candidate = db_session.query(Candidate).filter(Candidate.id == candidate_id).first()
    assert candidate is not None
    assert candidate.full_name == "Cand"
    assert candidate.email == "candidate@example.com"


def test_signup_duplicate_email_rejected(client):
    _signup(client, email="dup@example.com", password="Testpass123!", role="candidate")
    r = _signup(client, email="DUP@example.com", password="Testpass123!", role="candidate")
    assert r.status_code == 400, r.text
    assert r.json()["success"] is False


def test_signup_unknown_role_rejected(client):
    r = _signup(client, email="x@example.com", password="Testpass123!", role="recruiter")
    assert r.status_code == 400, r.text


def test_login_role_mismatch_fails(client):
    _signup(client, email="cand2@example.com", password="Testpass123!", role="candidate", name="Cand2")
    r = _login(client, email="cand2@example.com", password="Testpass123!", role="employer")
    assert r.status_code == 403, r.text


def test_login_invalid_credentials_fails(client):
    _signup(client, email="emp2@example.com", password="Testpass123!", role="employer", name="Emp2")
    r = _login(client, email="emp2@example.com", password="wrong", role="employer")
    assert r.status_code == 401, r.text


def test_me_returns_profile_ids(client):
    signup = _signup(client, email="me@example.com", password="Testpass123!", role="employer", name="Me").json()
    token = _login(client, email="me@example.com", password="Testpass123!", role="employer").json()["access_token"]

    r = client.get("/auth/me", headers=_auth_headers(token))
    assert r.status_code == 200, r.text
    assert r.json()["user"]["employer_id"] == signup["user"]["employer_id"]


def test_me_requires_token(client):
    assert client.get("/auth/me").status_code == 401
    r = client.get("/auth/me", headers=_auth_headers("not-a-jwt"))
    assert r.status_code == 401, r.text
    assert r.json() == {"success": False, "error": "Your session has expired. Please login again."}
