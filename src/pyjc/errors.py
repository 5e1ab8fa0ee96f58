"""Error types raised by the editor and the edit operations."""

from typing import Optional


class JcError(Exception):
    """Base class for failures reported to the user as `error: <message>`."""


class NotAProjectError(JcError):
    def __init__(self, root: Optional[str] = None):
        where = f" ({root})" if root else ""
        super().__init__(
            f"not in an automake project directory{where}; "
            "run this command from a project created with 'jc new'"
        )


class MissingFileError(JcError):
    pass


class MissingDirectoryError(JcError):
    pass


class AlreadyExistsError(JcError):
    pass


class NoTargetError(JcError):
    pass


class NoProgramError(JcError):
    pass


class InvalidNameError(JcError):
    pass


class BuildFileIOError(JcError):
    pass


class ExternalToolError(JcError):
    def __init__(self, tool: str, returncode: int):
        self.tool = tool
        self.returncode = returncode
        super().__init__(f"{tool} failed with exit code {returncode}")
