from app.core.roles import UserRole
from app.services.review_service import CustomerFields, ReviewService
from tests.conftest import TEST_PASSWORD, auth_headers, make_tenant, make_user


async def _login(client, email: str, password: str = TEST_PASSWORD):
    return await client.post("/login", data={"username": email, "password": password})


class TestAuth:

    async def test_super_admin_lands_on_master(self, client, db):
        await make_user(db, "root@example.com", UserRole.super_admin)

        response = await _login(client, "ROOT@example.com")

        assert response.status_code == 200
        body = response.json()
        assert body["home_route"] == "/master"
        assert body["user"]["tenant_id"] is None
        assert body["access_token"]

    async def test_tenant_user_lands_on_dashboard(self, client, db, tenant):
        await make_user(db, "staff@example.com", UserRole.user, tenant.id)
        response = await _login(client, "staff@example.com")
        assert response.json()["home_route"] == "/dashboard"

    async def test_wrong_password(self, client, db):
        await make_user(db, "root@example.com", UserRole.super_admin)
        response = await _login(client, "root@example.com", "wrong-password")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Invalid email or password"}

    async def test_me(self, client, db, tenant):
        user = await make_user(db, "owner@example.com", UserRole.tenant_admin, tenant.id)
        response = await client.get("/me", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["home_route"] == "/dashboard"
        assert response.json()["email"] == "owner@example.com"

    async def test_me_requires_token(self, client):
        response = await client.get("/me")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Not authenticated"}
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_me_rejects_garbage_token(self, client):
        response = await client.get("/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Could not validate credentials"}


class TestTenantConsole:

    async def test_super_admin_creates_tenant(self, client, db):
        admin = await make_user(db, "root@example.com", UserRole.super_admin)
        response = await client.post(
            "/admin/tenants",
            json={
                "name": "Blue Bottle",
                "google_review_url": "https://g.page/blue",
                "branding": {"primary_color": "#0000ff"},
            },
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["slug"] == "blue-bottle"
        assert body["status"] == "active"
        assert body["branding"]["primary_color"] == "#0000ff"

        public = await client.get("/public/tenants/blue-bottle")
        assert public.status_code == 200

    async def test_tenant_admin_cannot_create_tenant(self, client, db, tenant):
        owner = await make_user(db, "owner@example.com", UserRole.tenant_admin, tenant.id)
        response = await client.post(
            "/admin/tenants", json={"name": "Sneaky"}, headers=auth_headers(owner)
        )
        assert response.status_code == 403
        assert response.json() == {
            "success": False,
            "error": "Platform administrator privileges required",
        }

    async def test_duplicate_slug_conflicts(self, client, db, tenant):
        admin = await make_user(db, "root@example.com", UserRole.super_admin)
        response = await client.post(
            "/admin/tenants",
            json={"name": "Acme Again", "slug": "acme-cafe"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 409
        assert response.json()["success"] is False

    async def test_slug_cannot_change(self, client, db, tenant):
        admin = await make_user(db, "root@example.com", UserRole.super_admin)
        response = await client.patch(
            f"/admin/tenants/{tenant.id}",
            json={"slug": "renamed"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 422

    async def test_suspending_hides_public_form(self, client, db, tenant):
        admin = await make_user(db, "root@example.com", UserRole.super_admin)
        response = await client.patch(
            f"/admin/tenants/{tenant.id}",
            json={"status": "suspended"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert (await client.get("/public/tenants/acme-cafe")).status_code == 404


class TestUserConsole:

    async def test_tenant_admin_creates_user_in_own_tenant(self, client, db, tenant):
        other = await make_tenant(db, slug="other-shop", name="Other Shop")
        owner = await make_user(db, "owner@example.com", UserRole.tenant_admin, tenant.id)

        response = await client.post(
            "/admin/users",
            json={
                "email": "new@example.com",
                "password": "long-enough-pw",
                "role": "user",
                "tenant_id": other.id,
            },
            headers=auth_headers(owner),
        )

        assert response.status_code == 201
        assert response.json()["tenant_id"] == tenant.id

    async def test_tenant_admin_cannot_create_super_admin(self, client, db, tenant):
        owner = await make_user(db, "owner@example.com", UserRole.tenant_admin, tenant.id)
        response = await client.post(
            "/admin/users",
            json={"email": "evil@example.com", "password": "long-enough-pw", "role": "super_admin"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 422

    async def test_plain_user_cannot_manage_users(self, client, db, tenant):
        staff = await make_user(db, "staff@example.com", UserRole.user, tenant.id)
        response = await client.post(
            "/admin/users",
            json={"email": "x@example.com", "password": "long-enough-pw"},
            headers=auth_headers(staff),
        )
        assert response.status_code == 403

    async def test_duplicate_email(self, client, db, tenant):
        admin = await make_user(db, "root@example.com", UserRole.super_admin)
        response = await client.post(
            "/admin/users",
            json={
                "email": "root@example.com",
                "password": "long-enough-pw",
                "role": "super_admin",
            },
            headers=auth_headers(admin),
        )
        assert response.status_code == 409

    async def test_listing_other_tenant_users_is_forbidden(self, client, db, tenant):
        other = await make_tenant(db, slug="other-shop", name="Other Shop")
        owner = await make_user(db, "owner@example.com", UserRole.tenant_admin, tenant.id)
        response = await client.get(
            f"/admin/tenants/{other.id}/users", headers=auth_headers(owner)
        )
        assert response.status_code == 403

        response = await client.get(
            f"/admin/tenants/{tenant.id}/users", headers=auth_headers(owner)
        )
        assert [u["email"] for u in response.json()] == ["owner@example.com"]


class TestDashboard:

    async def test_reviews_are_scoped_to_tenant(self, client, db, tenant):
        other = await make_tenant(db, slug="other-shop", name="Other Shop")
        await ReviewService.submit(db, tenant, CustomerFields(name="Mine"), 5)
        await ReviewService.submit(db, other, CustomerFields(name="Theirs"), 5)
        await db.commit()
        staff = await make_user(db, "staff@example.com", UserRole.user, tenant.id)

        response = await client.get("/reviews", headers=auth_headers(staff))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["reviewer_name"] == "Mine"

    async def test_super_admin_has_no_dashboard(self, client, db):
        admin = await make_user(db, "root@example.com", UserRole.super_admin)
        response = await client.get("/reviews", headers=auth_headers(admin))
        assert response.status_code == 403

    async def test_send_review_request(self, client, db, tenant, email_sender):
        owner = await make_user(db, "owner@example.com", UserRole.tenant_admin, tenant.id)

        response = await client.post(
            "/review-requests",
            json={"recipient_email": "jane@example.com", "customer_name": "Jane"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "sent"
        assert body["tracking_id"]
        assert len(email_sender.sent) == 1
        assert "/r/acme-cafe/one-tap?" in email_sender.sent[0].text

    async def test_one_tap_link_from_sent_email_records_review(
        self, client, db, tenant, email_sender
    ):
        owner = await make_user(db, "owner@example.com", UserRole.tenant_admin, tenant.id)
        await client.post(
            "/review-requests",
            json={"recipient_email": "jane@example.com", "customer_name": "Jane"},
            headers=auth_headers(owner),
        )

        link = next(
            line.split(": ", 1)[1]
            for line in email_sender.sent[0].text.splitlines()
            if line.startswith("4 stars: ")
        )
        response = await client.get(link.replace("https://reviews.example.com", "/public"))

        body = response.json()
        assert body["status"] == "submitted"
        assert body["branch"] == "external_redirect"
