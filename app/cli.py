"""CLI commands for access control management tasks."""

import sys

from app.core.exceptions import AccessControlConfigError
from app.core.permissions import Role, get_role_permissions, roles_for_permission
from app.core.role_classifications import classify
from app.core.self_check import validate_access_control_config


def check_config() -> int:
    """Run the startup self-check."""
    try:
        validate_access_control_config()
    except AccessControlConfigError as exc:
        print(f"Error: {exc.message}")
        return 1
    print("✓ Access control configuration is valid")
    return 0


def roles_for(permission: str) -> int:
    """Print the roles holding a permission."""
    try:
        roles = roles_for_permission(permission)
    except AccessControlConfigError as exc:
        print(f"Error: {exc.message}")
        return 1
    for role in roles:
        print(role.value)
    return 0


def role_permissions(role_name: str) -> int:
    """Print a role's tier and permissions."""
    try:
        role = Role(role_name)
    except ValueError:
        print(f"Error: Unknown role '{role_name}'")
        return 1
    print(f"{role.value} ({classify(role).value})")
    for permission in sorted(get_role_permissions(role), key=lambda p: p.value):
        print(f"  {permission.value}")
    return 0


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    argv = sys.argv if argv is None else argv
    usage = (
        "Usage: python -m app.cli <command>\n"
        "Commands:\n"
        "  check-config\n"
        "  roles-for <permission>\n"
        "  role-permissions <role>"
    )
    if len(argv) < 2:
        print(usage)
        sys.exit(1)

    command = argv[1]

    if command == "check-config" and len(argv) == 2:
        sys.exit(check_config())
    elif command == "roles-for" and len(argv) == 3:
        sys.exit(roles_for(argv[2]))
    elif command == "role-permissions" and len(argv) == 3:
        sys.exit(role_permissions(argv[2]))
    else:
        print(f"Unknown command: {' '.join(argv[1:])}")
        print(usage)
        sys.exit(1)


if __name__ == "__main__":
    main()
