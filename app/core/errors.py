class ClinicError(Exception):
    """Base class for clinic workflow errors"""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ValidationError(ClinicError):
    """Raised when a required field is missing or malformed, before any write"""

    def __init__(self, field: str, message: str) -> None:
        super().__init__("APPT_VALID_001", f"{field}: {message}")
        self.field = field


class TransitionError(ClinicError):
    """Raised when a status change is not permitted for the actor's role"""

    def __init__(self, current: str, requested: str, message: str | None = None) -> None:
        super().__init__(
            "APPT_TRANS_001",
            message
            or f'Não é possível alterar de "{current}" para "{requested}".',
        )
        self.current = current
        self.requested = requested


class AccessDeniedError(ClinicError):
    """Raised when a role may not perform a non-transition action"""

    def __init__(self, role: str, action: str) -> None:
        super().__init__("AUTH_ROLE_001", f"Perfil {role} não pode {action}.")
        self.role = role
        self.action = action


class NotFoundError(ClinicError):
    """Raised when a referenced record id is absent from its collection"""

    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(
            "STORE_NF_001", f"Registro {record_id} não encontrado em {collection}."
        )
        self.collection = collection
        self.record_id = record_id


class StorageFailure(ClinicError):
    """Raised when the storage medium rejects a write"""

    def __init__(self, collection: str, message: str) -> None:
        super().__init__("STORE_WRITE_001", f"{collection}: {message}")
        self.collection = collection
