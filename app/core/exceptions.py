"""Access control error types.

Configuration defects and invalid input are kept apart from the normal
"nothing visible" outcome, which is never an error.
"""


class AccessControlError(Exception):
    """Base exception for access control failures."""

    status_code: int = 500
    error_type: str = "access_control_error"

    def __init__(self, message: str = "Access control failure") -> None:
        self.message = message
        super().__init__(message)


class AccessControlConfigError(AccessControlError):
    """The static role/permission configuration is broken."""

    status_code = 500
    error_type = "access_control_config_error"


class UnmappedPermissionError(AccessControlConfigError):
    """No role is granted the requested permission."""

    error_type = "unmapped_permission"

    def __init__(self, permission: str) -> None:
        self.permission = permission
        super().__init__(f"No role is granted permission '{permission}'")


class RoleClassificationError(AccessControlConfigError):
    """Role tiers are not a total, disjoint partition of all roles."""

    error_type = "role_classification_error"


class InvalidAccessInputError(AccessControlError):
    """Caller passed input that breaks the access control contract."""

    status_code = 400
    error_type = "invalid_access_input"


class InvalidAccessFilterError(InvalidAccessInputError):
    """Access control filter is missing a user id or allowed roles."""

    error_type = "invalid_access_filter"


class InvalidPathError(InvalidAccessInputError):
    """Hierarchical path is malformed or inconsistent with its parent."""

    error_type = "invalid_path"
