"""
Standard exit codes and error types for gitcpan commands.

Following Unix/POSIX conventions for command-line tools.
"""
from typing import Optional, Sequence

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NOT_A_REPOSITORY = 64    # Target directory is not a git repository
API_ERROR = 65           # MetaCPAN call failed
GIT_ERROR = 69           # A git command exited non-zero
DATA_ERROR = 70          # Data format or validation error
SOURCE_ERROR = 71        # Could not resolve releases to import
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class APIError(CommandError):
    """Raised when an external API call fails."""
    def __init__(self, message: str):
        super().__init__(message, API_ERROR)


class NotARepositoryError(CommandError):
    """Raised when the target directory is not inside a git repository."""
    def __init__(self, path: str):
        super().__init__(f"{path} is not a git repository", NOT_A_REPOSITORY)
        self.path = path


class GitCommandError(CommandError):
    """Raised when a git command exits with a non-zero status."""
    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        command = ' '.join(['git', *args])
        message = f"'{command}' exited with status {returncode}"
        if stderr and stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message, GIT_ERROR)
        self.git_args = list(args)
        self.returncode = returncode
        self.stderr = stderr


class GitCpanError(CommandError):
    """Base class for errors raised while importing a release."""


class SourceError(GitCpanError):
    """Raised when the releases to import cannot be resolved."""
    def __init__(self, message: str):
        super().__init__(message, SOURCE_ERROR)


class VersionRejected(GitCpanError):
    """
    Raised when a release is not newer than the last imported one.

    This is advisory: the importer turns it into a skip, not a failure.
    """
    def __init__(self, message: str, already_imported: bool = False):
        super().__init__(message, SUCCESS)
        self.already_imported = already_imported


class StagingError(GitCpanError):
    """Raised when the release tree cannot be staged into a tree object."""
    def __init__(self, message: str):
        super().__init__(message, DATA_ERROR)


class IdentityUnresolved(GitCpanError):
    """Raised when no author name/email can be determined for a commit."""
    def __init__(self, message: str = "could not determine the commit author"):
        super().__init__(message, DATA_ERROR)


class TagAlreadyExists(GitCpanError):
    """Raised when the version tag of a release is already taken."""
    def __init__(self, tag: str, commit: Optional[str] = None):
        message = f"tag '{tag}' already exists"
        if commit:
            message += f" (commit {commit} left unreferenced)"
        super().__init__(message, DATA_ERROR)
        self.tag = tag
        self.commit = commit


class InvalidTagName(GitCpanError):
    """Raised when a version does not make a valid git tag name."""
    def __init__(self, tag: str):
        super().__init__(f"'{tag}' is not a valid tag name", DATA_ERROR)
        self.tag = tag


class ProvenanceUnparseable(GitCpanError):
    """
    Raised when the tracking reference's tip has no provenance block
    and no module identity is stored: the repository was not created
    by gitcpan, so its history cannot be trusted.
    """
    def __init__(self, commit: str, message_body: str = ""):
        message = (
            f"couldn't parse the message of {commit} "
            f"(not imported via gitcpan import?)"
        )
        if message_body:
            message += f":\n{message_body}"
        super().__init__(message, DATA_ERROR)
        self.commit = commit
