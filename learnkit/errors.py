"""Domain errors. Services raise these; only app.py turns them into HTTP responses."""


class LearnKitError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(LearnKitError):
    status_code = 404

    @classmethod
    def entity(cls, name: str, entity_id: object) -> "NotFound":
        return cls(f"{name} not found: {entity_id}")


class Conflict(LearnKitError):
    status_code = 409


class IllegalState(LearnKitError):
    status_code = 409


class InvalidConfiguration(LearnKitError):
    status_code = 400


class InvalidRequest(LearnKitError):
    status_code = 400
