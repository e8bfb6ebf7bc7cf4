# Database models

from app.models.org import Org
from app.models.school_class import SchoolClass
from app.models.group import Group
from app.models.membership import UserClass, UserGroup, UserOrg
from app.models.administration import (
    Administration,
    AdministrationClass,
    AdministrationGroup,
    AdministrationOrg,
)

__all__ = [
    "Org",
    "SchoolClass",
    "Group",
    "UserOrg",
    "UserClass",
    "UserGroup",
    "Administration",
    "AdministrationOrg",
    "AdministrationClass",
    "AdministrationGroup",
]
