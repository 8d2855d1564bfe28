"""
Shared fixtures for the role comparison tests.
"""
import pytest

from models.role import Permission, Role


def perm(key: str, description: str = None) -> Permission:
    """'resource.action.scope' -> Permission"""
    resource, action, scope = key.split(".")
    return Permission(resource, action, scope, description=description)


def make_role(role_id: str, keys, name: str = None, **kwargs) -> Role:
    return Role(
        id=role_id,
        name=name or role_id.upper(),
        permissions=tuple(perm(k) for k in keys),
        **kwargs,
    )


@pytest.fixture
def scenario_a():
    """Role1 = {user.read.department, user.write.department}, Role2 = {user.read.department}"""
    return [
        make_role("role1", ["user.read.department", "user.write.department"]),
        make_role("role2", ["user.read.department"]),
    ]


FIVE_PERMISSIONS = [
    "user.read.organization",
    "user.write.organization",
    "payroll.read.property",
    "department.read.property",
    "document.read.own",
]


@pytest.fixture
def identical_roles():
    return [make_role(rid, FIVE_PERMISSIONS) for rid in ("r1", "r2", "r3")]


@pytest.fixture
def disjoint_roles():
    return [
        make_role("role_a", ["user.read.own", "user.write.own", "document.read.own"]),
        make_role("role_b", [
            "payroll.read.property",
            "payroll.write.property",
            "vacation.approve.department",
            "training.assign.department",
        ]),
    ]


@pytest.fixture
def hotel_roles():
    """Three overlapping roles across several categories."""
    return [
        make_role(
            "property_manager",
            [
                "user.read.property",
                "user.write.property",
                "department.read.property",
                "payroll.read.property",
                "vacation.approve.property",
            ],
            name="Property Manager",
            is_system_role=True,
            system_role="PROPERTY_MANAGER",
            user_count=4,
        ),
        make_role(
            "department_admin",
            [
                "user.read.department",
                "department.read.property",
                "vacation.approve.department",
            ],
            name="Department Admin",
            is_system_role=True,
            system_role="DEPARTMENT_ADMIN",
            user_count=12,
        ),
        make_role(
            "front_desk",
            [
                "user.read.department",
                "department.read.property",
                "document.read.own",
            ],
            name="Front Desk",
            user_count=30,
        ),
    ]
