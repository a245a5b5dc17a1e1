"""Script engine host: compile once, execute each request in its own sandbox."""

import time
from importlib import resources
from typing import Any, Optional

from devproxy.core.exceptions import (
    ScriptError,
    ScriptRuntimeError,
    ScriptTimeoutError,
)
from devproxy.core.logging import get_logger
from devproxy.models.config import InterceptorConfig
from devproxy.scripting.bridge import BridgeFunctions
from devproxy.scripting.sandbox import (
    CompiledProgram,
    ExecutionContext,
    compile_program,
)

logger = get_logger()

ENTRY_POINT = "processRequest"
EMBEDDED_SCRIPT = "interceptors.lua"


def load_embedded_source() -> str:
    """Read the transformation script shipped with the package."""
    return (
        resources.files("devproxy.scripting")
        .joinpath(EMBEDDED_SCRIPT)
        .read_text(encoding="utf-8")
    )


class ScriptEngine:
    """Runs the compiled transformation script.

    The compiled program is immutable and shared; every ``invoke`` builds a
    new ExecutionContext, so no script state survives between requests and
    no locking is needed.
    """

    def __init__(
        self,
        program: CompiledProgram,
        timeout_secs: float = 0.0,
        entry_point: str = ENTRY_POINT,
    ) -> None:
        self._program = program
        self._timeout_secs = timeout_secs
        self._entry_point = entry_point

    @classmethod
    def from_source(
        cls, source: str, name: str = "script.lua", **kwargs: Any
    ) -> "ScriptEngine":
        """Compile Lua source into a new engine. Raises ScriptCompileError."""
        return cls(compile_program(source, name), **kwargs)

    @classmethod
    def provision(cls, config: InterceptorConfig) -> "ScriptEngine":
        """Compile the embedded script and check its entry point.

        Called once at startup; any error here must stop the proxy from
        serving requests.
        """
        engine = cls.from_source(
            load_embedded_source(),
            name=EMBEDDED_SCRIPT,
            timeout_secs=config.script_timeout_secs,
        )
        engine.check_entry_point()
        logger.info(
            f"Script engine provisioned: script={EMBEDDED_SCRIPT} "
            f"bytecode_size={len(engine.program.bytecode)} "
            f"timeout={config.script_timeout_secs}s"
        )
        return engine

    @property
    def program(self) -> CompiledProgram:
        return self._program

    @property
    def timeout_secs(self) -> float:
        return self._timeout_secs

    def check_entry_point(self) -> None:
        """Load the program into a throwaway context and resolve the entry point."""
        context = self._new_context()
        try:
            context.load(self._program)
        except ScriptError:
            raise
        except Exception as e:
            raise ScriptRuntimeError(f"Failed to execute {self._program.name}: {e}") from e
        context.entry_point(self._entry_point)

    def invoke(self, url: str, captured_body: str, config_source_path: str) -> str:
        """Call the script entry point with a fresh sandbox.

        Returns:
            The transformed body.

        Raises:
            ScriptError: any failure in the script layer. Raw lupa errors are
                never propagated.
        """
        deadline = self._deadline()
        try:
            context = self._new_context(deadline)
            BridgeFunctions(context, url=url).register()
            context.load(self._program)
            process_request = context.entry_point(self._entry_point)

            logger.debug(
                f"Calling script {self._entry_point}: url={url} "
                f"upstream_body_size={len(captured_body)}"
            )
            result = process_request(url, captured_body, config_source_path)
        except ScriptError:
            raise
        except Exception as e:
            if deadline is not None and time.monotonic() > deadline:
                raise ScriptTimeoutError(self._timeout_secs) from e
            raise ScriptRuntimeError(f"Script {self._entry_point} failed: {e}") from e

        if deadline is not None and time.monotonic() > deadline:
            raise ScriptTimeoutError(self._timeout_secs)

        text = _result_to_text(result)
        logger.debug(
            f"Script {self._entry_point} completed: url={url} result_size={len(text)}"
        )
        return text

    def _deadline(self) -> Optional[float]:
        if self._timeout_secs <= 0:
            return None
        return time.monotonic() + self._timeout_secs

    def _new_context(self, deadline: Optional[float] = None) -> ExecutionContext:
        return ExecutionContext(deadline=deadline, timeout_secs=self._timeout_secs)


def _result_to_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, bytes):
        return result.decode("utf-8")
    if isinstance(result, (int, float)) and not isinstance(result, bool):
        return str(result)
    raise ScriptRuntimeError(
        f"{ENTRY_POINT} must return a string, got {type(result).__name__}"
    )
