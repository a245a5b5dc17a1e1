"""Custom exceptions for the application"""


class ConfigError(Exception):
    """Raised when interceptor options are missing, unknown or malformed"""


class ScriptError(Exception):
    """Base class for failures in the script layer"""


class ScriptCompileError(ScriptError):
    """Raised when the embedded script cannot be compiled"""


class EntryPointMissingError(ScriptError):
    """Raised when the script does not define the expected entry point"""

    def __init__(self, entry_point: str):
        self.entry_point = entry_point
        super().__init__(f"{entry_point} function not found in script runtime")


class ScriptRuntimeError(ScriptError):
    """Raised when the script fails while loading or executing"""


class ScriptTimeoutError(ScriptError):
    """Raised when a script invocation runs past its deadline"""

    def __init__(self, timeout_secs: float):
        self.timeout_secs = timeout_secs
        super().__init__(
            f"Script execution exceeded {timeout_secs} seconds"
        )


class BridgeError(Exception):
    """Raised by a bridge function; surfaces inside the sandbox as a Lua error"""
