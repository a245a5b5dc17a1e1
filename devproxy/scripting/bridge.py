"""Host functions exposed to the transformation script.

The script can read a file by exact path, parse YAML text it already holds
and write an informational log line. Nothing else on the host is reachable.
"""

from typing import Any

import yaml

from devproxy.core.exceptions import BridgeError
from devproxy.core.logging import get_logger
from devproxy.scripting.sandbox import ExecutionContext

logger = get_logger()

# Global names the functions are registered under inside the sandbox
READ_FILE = "read_file"
PARSE_YAML = "parse_yaml"
LOG = "log"


class BridgeFunctions:
    """Bridge functions bound to one execution context."""

    def __init__(self, context: ExecutionContext, url: str = "") -> None:
        self._context = context
        self._url = url

    def register(self) -> None:
        """Register every bridge function into the context."""
        self._context.register(READ_FILE, self.read_file)
        self._context.register(PARSE_YAML, self.parse_yaml)
        self._context.register(LOG, self.log)

    def read_file(self, path: str) -> str:
        """Read a UTF-8 text file by exact path."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError, TypeError) as e:
            logger.error(f"Failed to read file: path={path} error={e}")
            raise BridgeError(f"failed to read {path}: {e}") from e

    def parse_yaml(self, text: str) -> Any:
        """Parse a YAML document into nested Lua tables."""
        try:
            document = yaml.safe_load(text)
        except (yaml.YAMLError, TypeError) as e:
            logger.error(f"Failed to parse YAML: {e}")
            raise BridgeError(f"failed to parse YAML: {e}") from e
        return self._context.to_lua(document)

    def log(self, message: Any = None) -> None:
        logger.info(f"Script log: {message} url={self._url}")
