"""Tests for access control API."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import get_db
from app.core.permissions import Role
from app.models.administration import Administration, AdministrationOrg
from app.models.membership import UserOrg
from app.models.org import Org
from main import app

PREFIX = "/api/v1/access-control"

NOW = "2025-03-01T12:00:00Z"

NODES = [
    {"id": "district_1", "node_type": "district", "path": "district_1"},
    {"id": "district_10", "node_type": "district", "path": "district_10"},
    {"id": "school_A", "node_type": "school", "parent_id": "district_1", "path": "district_1.school_A"},
    {"id": "school_B", "node_type": "school", "parent_id": "district_1", "path": "district_1.school_B"},
    {"id": "class_X", "node_type": "class", "parent_id": "school_A", "path": "district_1.school_A.class_X"},
    {"id": "group_1", "node_type": "group"},
]

ASSIGNMENTS = [
    {"administration_id": "adm-district", "target_id": "district_1"},
    {"administration_id": "adm-district-10", "target_id": "district_10"},
    {"administration_id": "adm-school-a", "target_id": "school_A"},
    {"administration_id": "adm-school-b", "target_id": "school_B"},
    {"administration_id": "adm-class-x", "target_id": "class_X", "target_type": "class"},
    {"administration_id": "adm-group", "target_id": "group_1", "target_type": "group"},
]


def membership(node_id: str, role: str, target_type: str = "org", **extra) -> dict:
    return {
        "user_id": "user-1",
        "node_id": node_id,
        "role": role,
        "enrollment_start": "2024-09-01T00:00:00Z",
        "target_type": target_type,
        **extra,
    }


def scope_request(memberships: list[dict], permission: str = "administrations.list", **extra) -> dict:
    return {
        "user_id": "user-1",
        "permission": permission,
        "now": NOW,
        "memberships": memberships,
        "nodes": NODES,
        "assignments": ASSIGNMENTS,
        **extra,
    }


class TestPermissions:
    """Tests for the permission catalog endpoints."""

    async def test_list_permissions(self, client: AsyncClient):
        """Test the catalog lists wildcards with what they cover."""
        response = await client.get(f"{PREFIX}/permissions")

        assert response.status_code == 200
        data = {item["permission"]: item for item in response.json()}
        assert data["administrations.list"]["is_wildcard"] is False
        assert data["administrations.*"]["is_wildcard"] is True
        assert "administrations.list" in data["administrations.*"]["covers"]

    async def test_roles_for_permission(self, client: AsyncClient):
        response = await client.get(f"{PREFIX}/permissions/testdata.create/roles")

        assert response.status_code == 200
        assert response.json() == {
            "permission": "testdata.create",
            "roles": ["system_administrator", "site_administrator"],
        }

    async def test_roles_for_unknown_permission(self, client: AsyncClient):
        """Test an unmapped permission is a configuration error, not an empty list."""
        response = await client.get(f"{PREFIX}/permissions/unknown.permission/roles")

        assert response.status_code == 500
        data = response.json()
        assert data["error_type"] == "unmapped_permission"
        assert "unknown.permission" in data["detail"]

    async def test_roles_for_uncatalogued_permission_under_wildcard(self, client: AsyncClient):
        """Test a string under a granted wildcard prefix is still unknown."""
        response = await client.get(f"{PREFIX}/permissions/administrations.bogus/roles")

        assert response.status_code == 500
        assert response.json()["error_type"] == "unmapped_permission"


class TestRoles:
    """Tests for the role endpoints."""

    async def test_list_roles(self, client: AsyncClient):
        response = await client.get(f"{PREFIX}/roles")

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 13
        tiers = {item["role"]: item["tier"] for item in data}
        assert tiers["teacher"] == "supervisory"
        assert tiers["student"] == "supervised"

    async def test_get_role(self, client: AsyncClient):
        """Test a single role's permissions."""
        response = await client.get(f"{PREFIX}/roles/guardian")

        assert response.status_code == 200
        data = response.json()
        assert data["tier"] == "supervised"
        assert set(data["permissions"]) == {"administrations.list", "reports.student.read", "profile.read"}

    async def test_get_unknown_role(self, client: AsyncClient):
        response = await client.get(f"{PREFIX}/roles/janitor")

        assert response.status_code == 422


class TestScope:
    """Tests for computing an access scope from a snapshot."""

    async def test_teacher_at_school(self, client: AsyncClient):
        """Test a supervisory role sees up and down the tree."""
        response = await client.post(f"{PREFIX}/scope", json=scope_request([membership("school_A", "teacher")]))

        assert response.status_code == 200
        data = response.json()
        assert data["node_ids"] == ["class_X", "district_1", "school_A"]
        assert data["group_ids"] == []
        assert data["administration_ids"] == ["adm-class-x", "adm-district", "adm-school-a"]

    async def test_student_in_class(self, client: AsyncClient):
        """Test a supervised role only sees its node and ancestors."""
        response = await client.post(
            f"{PREFIX}/scope",
            json=scope_request([membership("class_X", "student", target_type="class")]),
        )

        assert response.status_code == 200
        assert response.json()["administration_ids"] == ["adm-class-x", "adm-district", "adm-school-a"]

    async def test_parent_at_school(self, client: AsyncClient):
        response = await client.post(f"{PREFIX}/scope", json=scope_request([membership("school_A", "parent")]))

        assert response.status_code == 200
        assert response.json()["administration_ids"] == ["adm-district", "adm-school-a"]

    async def test_group_member(self, client: AsyncClient):
        response = await client.post(
            f"{PREFIX}/scope",
            json=scope_request([membership("group_1", "student", target_type="group")]),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["node_ids"] == []
        assert data["group_ids"] == ["group_1"]
        assert data["administration_ids"] == ["adm-group"]

    async def test_empty_scope(self, client: AsyncClient):
        """Test seeing nothing is a normal result."""
        response = await client.post(
            f"{PREFIX}/scope",
            json=scope_request(
                [membership("school_A", "teacher", enrollment_end="2024-12-31T00:00:00Z")]
            ),
        )

        assert response.status_code == 200
        assert response.json() == {
            "node_ids": [],
            "group_ids": [],
            "administration_ids": [],
            "unrestricted": False,
        }

    async def test_super_admin(self, client: AsyncClient):
        """Test a super admin sees every node, group and administration."""
        response = await client.post(f"{PREFIX}/scope", json=scope_request([], is_super_admin=True))

        assert response.status_code == 200
        data = response.json()
        assert data["unrestricted"] is True
        assert data["group_ids"] == ["group_1"]
        assert data["administration_ids"] == sorted(a["administration_id"] for a in ASSIGNMENTS)

    async def test_mismatched_target_type(self, client: AsyncClient):
        response = await client.post(
            f"{PREFIX}/scope",
            json=scope_request([membership("group_1", "student")]),
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_access_input"

    async def test_parentless_node_with_nested_path(self, client: AsyncClient):
        request = scope_request([membership("school_A", "student")])
        request["nodes"] = [
            {"id": "district_1", "node_type": "district", "path": "district_1"},
            {"id": "school_A", "node_type": "school", "path": "district_1.school_A"},
        ]

        response = await client.post(f"{PREFIX}/scope", json=request)

        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_path"

    async def test_empty_user_id(self, client: AsyncClient):
        response = await client.post(
            f"{PREFIX}/scope",
            json=scope_request([membership("school_A", "teacher")], user_id=""),
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_access_filter"

    async def test_unknown_permission(self, client: AsyncClient):
        response = await client.post(
            f"{PREFIX}/scope",
            json=scope_request([membership("school_A", "teacher")], permission="unknown.permission"),
        )

        assert response.status_code == 500
        assert response.json()["error_type"] == "unmapped_permission"

    async def test_naive_now_rejected(self, client: AsyncClient):
        response = await client.post(
            f"{PREFIX}/scope",
            json=scope_request([membership("school_A", "teacher")], now="2025-03-01T12:00:00"),
        )

        assert response.status_code == 422

    async def test_malformed_path_rejected(self, client: AsyncClient):
        request = scope_request([membership("school_A", "teacher")])
        request["nodes"] = [{"id": "bad", "node_type": "school", "path": "district_1..school"}]

        response = await client.post(f"{PREFIX}/scope", json=request)

        assert response.status_code == 422


class TestHealth:
    """Tests for the health endpoint."""

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestUserAccess:
    """Tests for listing what a stored user may see."""

    async def _seed(self, db: AsyncSession) -> dict:
        district = Org.create("District 1", "district")
        school_a = Org.create("School A", "school", parent=district)
        school_b = Org.create("School B", "school", parent=district)
        adm_district = Administration(id=uuid4(), name="District screener")
        adm_school_b = Administration(id=uuid4(), name="School B screener")
        teacher_id = uuid4()
        db.add_all([district, school_a, school_b, adm_district, adm_school_b])
        await db.flush()
        db.add_all(
            [
                AdministrationOrg(administration_id=adm_district.id, org_id=district.id),
                AdministrationOrg(administration_id=adm_school_b.id, org_id=school_b.id),
                UserOrg(
                    user_id=teacher_id,
                    org_id=school_a.id,
                    role=Role.TEACHER,
                    enrollment_start=datetime.now(timezone.utc) - timedelta(days=30),
                ),
            ]
        )
        await db.commit()
        return {
            "teacher_id": teacher_id,
            "orgs": {district.id, school_a.id, school_b.id},
            "district": district,
            "school_a": school_a,
            "adm_district": adm_district.id,
            "adm_school_b": adm_school_b.id,
        }

    async def test_teacher_administrations(self, client: AsyncClient, db: AsyncSession):
        """Test a teacher sees the district's administration but not a sibling school's."""
        seeded = await self._seed(db)

        response = await client.get(
            f"{PREFIX}/users/{seeded['teacher_id']}/administrations",
            params={"permission": "administrations.list"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == str(seeded["teacher_id"])
        assert data["administration_ids"] == [str(seeded["adm_district"])]

    async def test_super_admin_administrations(self, client: AsyncClient, db: AsyncSession):
        seeded = await self._seed(db)

        response = await client.get(
            f"{PREFIX}/users/{uuid4()}/administrations",
            params={"permission": "administrations.list", "is_super_admin": "true"},
        )

        assert response.status_code == 200
        assert set(response.json()["administration_ids"]) == {
            str(seeded["adm_district"]),
            str(seeded["adm_school_b"]),
        }

    async def test_teacher_orgs(self, client: AsyncClient, db: AsyncSession):
        seeded = await self._seed(db)

        response = await client.get(
            f"{PREFIX}/users/{seeded['teacher_id']}/orgs",
            params={"permission": "organizations.list"},
        )

        assert response.status_code == 200
        assert set(response.json()["org_ids"]) == {str(seeded["district"].id), str(seeded["school_a"].id)}

    async def test_super_admin_orgs(self, client: AsyncClient, db: AsyncSession):
        seeded = await self._seed(db)

        response = await client.get(
            f"{PREFIX}/users/{uuid4()}/orgs",
            params={"permission": "organizations.list", "is_super_admin": "true"},
        )

        assert response.status_code == 200
        assert set(response.json()["org_ids"]) == {str(org_id) for org_id in seeded["orgs"]}

    async def test_unknown_user_sees_nothing(self, client: AsyncClient, db: AsyncSession):
        await self._seed(db)

        response = await client.get(
            f"{PREFIX}/users/{uuid4()}/administrations",
            params={"permission": "administrations.list"},
        )

        assert response.status_code == 200
        assert response.json()["administration_ids"] == []

    async def test_invalid_user_id(self, client: AsyncClient):
        response = await client.get(
            f"{PREFIX}/users/not-a-uuid/administrations",
            params={"permission": "administrations.list"},
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_access_filter"

    async def test_uncatalogued_permission(self, client: AsyncClient):
        response = await client.get(
            f"{PREFIX}/users/{uuid4()}/administrations",
            params={"permission": "administrations.bogus"},
        )

        assert response.status_code == 500
        assert response.json()["error_type"] == "unmapped_permission"

    async def test_permission_required(self, client: AsyncClient):
        response = await client.get(f"{PREFIX}/users/{uuid4()}/administrations")

        assert response.status_code == 422

    async def test_uses_application_session(self, client: AsyncClient, db: AsyncSession, test_engine, monkeypatch):
        """Test the route works through get_db's own session maker."""
        seeded = await self._seed(db)
        app.dependency_overrides.pop(get_db, None)
        monkeypatch.setattr(
            "app.core.database.async_session_maker",
            async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False),
        )

        response = await client.get(
            f"{PREFIX}/users/{seeded['teacher_id']}/administrations",
            params={"permission": "administrations.list"},
        )

        assert response.status_code == 200
        assert response.json()["administration_ids"] == [str(seeded["adm_district"])]
