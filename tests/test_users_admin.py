import pytest


@pytest.fixture
def creator(client, create_user, login):
    """Signed-in creator account; returns its id."""
    user_id = create_user("kyle", role="creator")
    assert login("kyle").status_code == 200
    return user_id


# -- profile ---------------------------------------------------------------


def test_me(client, create_user, login):
    user_id = create_user("alice")
    login()
    body = client.get("/users/me").json()
    assert body["id"] == user_id
    assert body["email"] == "alice@x.com"
    assert body["role"] == "user"
    assert body["pendingEmail"] is None
    assert "createdAt" in body
    assert "password_hash" not in body


def test_me_anonymous(client):
    assert client.get("/users/me").status_code == 401


def test_change_username(client, create_user, login):
    create_user("alice")
    create_user("bob")
    login()
    assert client.patch("/users/me", json={"username": "bob"}).status_code == 409

    res = client.patch("/users/me", json={"username": "alicia"})
    assert res.json() == {"ok": True, "requiresVerification": False}
    assert client.get("/users/me").json()["username"] == "alicia"


def test_empty_patch(client, create_user, login):
    create_user("alice")
    login()
    assert client.patch("/users/me", json={}).status_code == 400


def test_change_email_keeps_old_until_verified(client, create_user, login, inbox):
    create_user("alice")
    login()
    res = client.patch("/users/me", json={"email": "new@x.com"})
    assert res.json() == {"ok": True, "requiresVerification": True}

    me = client.get("/users/me").json()
    assert me["email"] == "alice@x.com"
    assert me["pendingEmail"] == "new@x.com"

    # Still a working account under the old address
    client.post("/auth/logout")
    assert login("alice@x.com").status_code == 200

    token = inbox.token("new@x.com")
    res = client.get("/auth/verify", params={"token": token}, follow_redirects=False)
    assert res.headers["location"].endswith("/verify/success")

    me = client.get("/users/me").json()
    assert me["email"] == "new@x.com"
    assert me["pendingEmail"] is None


def test_change_email_taken(client, create_user, login):
    create_user("alice")
    create_user("bob")
    login()
    assert client.patch("/users/me", json={"email": "bob@x.com"}).status_code == 409


def test_cancel_pending_email(client, create_user, login, inbox):
    create_user("alice")
    login()
    client.patch("/users/me", json={"email": "new@x.com"})
    token = inbox.token("new@x.com")

    res = client.patch("/users/me", json={"email": "alice@x.com"})
    assert res.json()["requiresVerification"] is False
    assert client.get("/users/me").json()["pendingEmail"] is None

    res = client.get("/auth/verify", params={"token": token}, follow_redirects=False)
    assert res.headers["location"].endswith("/verify/invalid")


def test_resend_goes_to_pending_email(client, create_user, login, inbox):
    create_user("alice")
    login()
    client.patch("/users/me", json={"email": "new@x.com"})
    assert len(inbox.messages("new@x.com")) == 1

    assert client.post("/auth/resend", json={"emailOrUsername": "alice"}).json() == {"ok": True}
    assert len(inbox.messages("new@x.com")) == 2
    assert inbox.messages("alice@x.com") == []

    res = client.get("/auth/verify", params={"token": inbox.token("new@x.com")}, follow_redirects=False)
    assert res.headers["location"].endswith("/verify/success")
    assert client.get("/users/me").json()["email"] == "new@x.com"


def test_resend_verified_without_pending_email(client, create_user, inbox):
    create_user("alice")
    assert client.post("/auth/resend", json={"emailOrUsername": "alice"}).json() == {"ok": True}
    assert inbox.messages() == []


def test_change_password(client, create_user, login, inbox):
    create_user("alice")
    login()

    res = client.post("/users/password", json={
        "currentPassword": "wrong-password",
        "newPassword": "brand-new-pass",
        "confirmPassword": "brand-new-pass",
    })
    assert res.status_code == 400

    res = client.post("/users/password", json={
        "currentPassword": "password123!",
        "newPassword": "brand-new-pass",
        "confirmPassword": "brand-new-pasz",
    })
    assert res.status_code == 400

    res = client.post("/users/password", json={
        "currentPassword": "password123!",
        "newPassword": "brand-new-pass",
        "confirmPassword": "brand-new-pass",
    })
    assert res.status_code == 200
    assert "changed" in inbox.last("alice@x.com").subject

    client.post("/auth/logout")
    assert login().status_code == 401
    assert login(password="brand-new-pass").status_code == 200


# -- creator-only administration -------------------------------------------


def test_admin_requires_creator(client, create_user, login):
    assert client.get("/admin/users").status_code == 401

    create_user("alice")
    login()
    assert client.get("/admin/users").status_code == 403
    assert client.post("/users/1/role", json={"role": "moderator"}).status_code == 403


def test_list_users(client, create_user, creator):
    create_user("alice")
    body = client.get("/admin/users").json()
    assert body["total"] == 2
    assert body["page"] == 1
    assert body["pageSize"] == 20
    assert [u["username"] for u in body["items"]] == ["kyle", "alice"]

    row = body["items"][1]
    assert set(row) == {
        "id", "email", "username", "role",
        "emailVerifiedAt", "disabledAt", "twoFactorEnabled", "createdAt",
    }
    assert row["twoFactorEnabled"] is False


def test_list_users_pages(client, create_user, creator):
    for name in ("alice", "bob", "carol", "dave"):
        create_user(name)

    body = client.get("/admin/users", params={"page": 2, "pageSize": 2}).json()
    assert body["total"] == 5
    assert [u["username"] for u in body["items"]] == ["bob", "carol"]

    body = client.get("/admin/users", params={"page": 3, "pageSize": 2}).json()
    assert [u["username"] for u in body["items"]] == ["dave"]

    body = client.get("/admin/users", params={"page": 4, "pageSize": 2}).json()
    assert body["items"] == []
    assert body["total"] == 5


def test_list_users_search(client, create_user, creator):
    create_user("alice")
    create_user("bob", email="bob@remix.example")
    create_user("alicia")

    body = client.get("/admin/users", params={"q": "  ali "}).json()
    assert body["total"] == 2
    assert [u["username"] for u in body["items"]] == ["alice", "alicia"]

    body = client.get("/admin/users", params={"q": "remix.example"}).json()
    assert [u["username"] for u in body["items"]] == ["bob"]


def test_list_users_bad_paging(client, creator):
    assert client.get("/admin/users", params={"pageSize": 101}).status_code == 400
    assert client.get("/admin/users", params={"page": 0}).status_code == 400
    assert client.get("/admin/users", params={"q": "x" * 201}).status_code == 400


def test_change_role(client, create_user, creator, load_user):
    alice = create_user("alice")
    res = client.post(f"/users/{alice}/role", json={"role": "moderator"})
    assert res.status_code == 200
    assert load_user(alice).role == "moderator"

    assert client.post(f"/users/{alice}/role", json={"role": "user"}).status_code == 200
    assert load_user(alice).role == "user"


def test_creator_role_cannot_be_granted(client, create_user, creator, load_user):
    alice = create_user("alice")
    assert client.post(f"/users/{alice}/role", json={"role": "creator"}).status_code == 400
    assert load_user(alice).role == "user"


def test_creator_role_cannot_be_removed(client, creator, load_user):
    assert client.post(f"/users/{creator}/role", json={"role": "user"}).status_code == 400
    assert load_user(creator).role == "creator"


def test_change_role_unknown_user(client, creator):
    assert client.post("/users/9999/role", json={"role": "moderator"}).status_code == 404


def test_bulk_role_skips_creator(client, create_user, creator, load_user):
    alice = create_user("alice")
    bob = create_user("bob")
    res = client.post("/users/role-bulk", json={"ids": [creator, alice, bob], "role": "moderator"})
    assert res.json() == {"ok": True, "updated": 2}
    assert load_user(creator).role == "creator"
    assert load_user(alice).role == "moderator"
    assert load_user(bob).role == "moderator"


def test_bulk_role_empty(client, creator):
    assert client.post("/users/role-bulk", json={"ids": [], "role": "user"}).status_code == 400


def test_disable_user(client, create_user, creator, load_user, login):
    alice = create_user("alice")
    assert client.post(f"/users/{alice}/disable").status_code == 200
    assert load_user(alice).disabled_at is not None

    client.post("/auth/logout")
    assert login("alice").status_code == 403


def test_creator_cannot_be_disabled(client, creator, load_user):
    assert client.post(f"/users/{creator}/disable").status_code == 400
    assert load_user(creator).disabled_at is None
