"""Scenably core exception hierarchy with stable error taxonomy fields."""


class ScenablyError(Exception):
    """Base error carrying stable taxonomy class/code fields."""

    def __init__(self, message: str, *, error_class: str = "internal", error_code: str = "INTERNAL_ERROR"):
        super().__init__(message)
        self.message = message
        self.error_class = error_class
        self.error_code = error_code


class InvalidUrl(ScenablyError):
    """Target URL is empty or malformed; rejected before any subprocess work."""

    def __init__(self, message: str = "invalid target url"):
        super().__init__(message, error_class="validation", error_code="INVALID_URL")


class InvalidTrigger(ScenablyError):
    """Schedule trigger fields are inconsistent with its frequency."""

    def __init__(self, message: str = "invalid schedule trigger"):
        super().__init__(message, error_class="validation", error_code="INVALID_TRIGGER")


class LaunchFailure(ScenablyError):
    """Recorder subprocess failed to start or to confirm readiness."""

    def __init__(self, message: str = "recorder failed to launch"):
        super().__init__(message, error_class="launch", error_code="LAUNCH_FAILED")


class SessionNotFound(ScenablyError):
    """Operation referenced an unknown recording session id."""

    def __init__(self, session_id: str):
        super().__init__(
            f"recording session not found: {session_id}",
            error_class="not_found",
            error_code="SESSION_NOT_FOUND",
        )
        self.session_id = session_id


class ScenarioNotFound(ScenablyError):
    """Operation referenced an unknown scenario id."""

    def __init__(self, scenario_id: str):
        super().__init__(
            f"scenario not found: {scenario_id}",
            error_class="not_found",
            error_code="SCENARIO_NOT_FOUND",
        )
        self.scenario_id = scenario_id


class ScheduleNotFound(ScenablyError):
    """Operation referenced a scenario that has no schedule trigger."""

    def __init__(self, scenario_id: str):
        super().__init__(
            f"schedule not found for scenario: {scenario_id}",
            error_class="not_found",
            error_code="SCHEDULE_NOT_FOUND",
        )
        self.scenario_id = scenario_id


class ExecutionNotFound(ScenablyError):
    """Operation referenced an unknown execution id."""

    def __init__(self, execution_id: str):
        super().__init__(
            f"execution not found: {execution_id}",
            error_class="not_found",
            error_code="EXECUTION_NOT_FOUND",
        )
        self.execution_id = execution_id


class InvalidSessionState(ScenablyError):
    """Session operation is not allowed from the session's current status."""

    def __init__(self, message: str = "invalid session state"):
        super().__init__(message, error_class="validation", error_code="INVALID_SESSION_STATE")


class ActionFailure(ScenablyError):
    """A replayed action failed; captured into the execution result."""

    def __init__(self, message: str, *, step_id: str = "", operation: str = ""):
        super().__init__(message, error_class="action", error_code="ACTION_FAILED")
        self.step_id = step_id
        self.operation = operation


class InfrastructureError(ScenablyError):
    """Browser or recorder subprocess crashed or became unreachable."""

    def __init__(self, message: str = "infrastructure error"):
        super().__init__(message, error_class="infrastructure", error_code="INFRASTRUCTURE_ERROR")
