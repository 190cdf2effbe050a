"""Exceptions raised by the permission engine.

Integrity errors are raised at the write boundary before anything is
persisted. Read-side failures that cannot be recovered (misconfiguration)
are surfaced as hard errors rather than being turned into allow-all or
deny-all answers.
"""

from typing import Any


class RoleGateError(Exception):
    """Base exception for all engine errors.

    All domain exceptions should inherit from this class.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for clients
        details: Additional error details
    """

    message: str = "An unexpected error occurred"
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(RoleGateError):
    """Raised when a requested entity is not found.

    Example:
        raise NotFoundError("Role not found", resource="role", resource_id=role_id)
    """

    message = "Resource not found"
    error_code = "not_found"

    def __init__(
        self,
        message: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if resource:
            details["resource"] = resource
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message=message, details=details, **kwargs)


class ConflictError(RoleGateError):
    """Raised when a write conflicts with existing data."""

    message = "Resource conflict"
    error_code = "conflict"


class ValidationError(RoleGateError):
    """Raised when input data fails validation.

    Example:
        raise ValidationError(
            "Invalid role",
            errors=[{"field": "permissions", "message": "Unknown permission"}]
        )
    """

    message = "Validation error"
    error_code = "validation_error"

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if errors:
            details["errors"] = errors
        super().__init__(message=message, details=details, **kwargs)


class ForbiddenError(RoleGateError):
    """Raised when an actor lacks the rights for an operation.

    Example:
        raise ForbiddenError(
            "Missing required permission",
            details={"required_permissions": ["project:write"]}
        )
    """

    message = "Access forbidden"
    error_code = "forbidden"


# ============================================================
# Engine errors
# ============================================================


class ActorNotFoundError(NotFoundError):
    """No assignment applies to the actor and no default role is usable."""

    message = "Actor has no usable role assignment"
    error_code = "actor_not_found"

    def __init__(self, actor_id: str, message: str | None = None, **kwargs: Any) -> None:
        self.actor_id = actor_id
        super().__init__(message=message, resource="actor", resource_id=actor_id, **kwargs)


class RoleNotFoundError(NotFoundError):
    """A role id does not exist in the role store."""

    message = "Role not found"
    error_code = "role_not_found"

    def __init__(self, role_id: str, message: str | None = None, **kwargs: Any) -> None:
        self.role_id = role_id
        super().__init__(message=message, resource="role", resource_id=role_id, **kwargs)


class RoleInUseError(ConflictError):
    """A role cannot be deleted while actors are assigned to it."""

    message = "Role is still assigned to actors"
    error_code = "role_in_use"

    def __init__(self, role_id: str, actor_ids: list[str], **kwargs: Any) -> None:
        self.role_id = role_id
        self.actor_ids = actor_ids
        details = kwargs.pop("details", {})
        details.update({"role_id": role_id, "assigned_actors": len(actor_ids)})
        super().__init__(details=details, **kwargs)


class DuplicateRoleLevelError(ConflictError):
    """A second super-role (level 0) was submitted."""

    message = "A super-role already exists"
    error_code = "duplicate_role_level"

    def __init__(self, role_id: str, existing_role_id: str, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details.update({"role_id": role_id, "existing_role_id": existing_role_id})
        super().__init__(details=details, **kwargs)


class DuplicatePermissionError(ConflictError):
    """A permission id is already registered in the catalog."""

    message = "Permission already registered"
    error_code = "duplicate_permission"

    def __init__(self, permission_id: str, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details["permission_id"] = permission_id
        super().__init__(details=details, **kwargs)


class InvalidPermissionReferenceError(ValidationError):
    """A role references permission ids that are not in the catalog."""

    message = "Role references unknown permissions"
    error_code = "invalid_permission_reference"

    def __init__(self, role_id: str, unknown: list[str], **kwargs: Any) -> None:
        self.role_id = role_id
        self.unknown = sorted(unknown)
        errors = [
            {"field": "permissions", "message": f"Unknown permission '{p}'"}
            for p in self.unknown
        ]
        details = kwargs.pop("details", {})
        details["role_id"] = role_id
        super().__init__(errors=errors, details=details, **kwargs)


class InvalidPermissionIdError(ValidationError):
    """A permission id is not of the form resource:action."""

    message = "Malformed permission id"
    error_code = "invalid_permission_id"

    def __init__(self, permission_id: str, **kwargs: Any) -> None:
        self.permission_id = permission_id
        details = kwargs.pop("details", {})
        details["permission_id"] = permission_id
        super().__init__(
            message=f"Malformed permission id '{permission_id}'",
            details=details,
            **kwargs,
        )


class UnknownPermissionError(ValidationError):
    """A well-formed permission id is not registered in the catalog."""

    message = "Unknown permission"
    error_code = "unknown_permission"

    def __init__(self, permission_id: str, **kwargs: Any) -> None:
        self.permission_id = permission_id
        details = kwargs.pop("details", {})
        details["permission_id"] = permission_id
        super().__init__(
            message=f"Permission '{permission_id}' is not registered",
            details=details,
            **kwargs,
        )


class SystemRoleProtectedError(ForbiddenError):
    """System roles cannot be deleted or have their identity changed."""

    message = "System roles cannot be modified this way"
    error_code = "system_role_protected"

    def __init__(self, role_id: str, message: str | None = None, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details["role_id"] = role_id
        super().__init__(message=message, details=details, **kwargs)
