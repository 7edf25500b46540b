from typing import List, Optional

class BridgeAdminError(Exception):
    """Base class for everything the session subsystem raises."""

class ConfigurationMissing(BridgeAdminError):
    pass

class CollaboratorUnavailable(BridgeAdminError):
    """The accessory server could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class AuthRequired(CollaboratorUnavailable):
    """The bridge refused the request; it has to run in insecure mode."""

class ProcessExitedEarly(BridgeAdminError):
    def __init__(self, command: List[str], code: int):
        super().__init__(f"{' '.join(command)} exited with code {code}")
        self.command = command
        self.code = code

class CommandTargetNotFound(BridgeAdminError):
    def __init__(self, aid: int, siid: int):
        super().__init__(f"no service with aid={aid} iid={siid}")
        self.aid = aid
        self.siid = siid
