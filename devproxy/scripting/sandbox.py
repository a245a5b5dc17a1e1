"""Sandboxed Lua runtimes using lupa.

A script is compiled once into Lua bytecode (``CompiledProgram``) and then
loaded into a fresh ``ExecutionContext`` for every invocation. lupa runtimes
are not safe to share between threads, so contexts are never reused.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Optional

from lupa import LuaRuntime, lua_type  # type: ignore[import-untyped]

from devproxy.core.exceptions import (
    EntryPointMissingError,
    ScriptCompileError,
    ScriptRuntimeError,
    ScriptTimeoutError,
)

MAX_SCRIPT_SIZE = 1024 * 1024  # 1 MB

# Instructions between deadline checks
DEADLINE_CHECK_INTERVAL = 1000

_DANGEROUS_GLOBALS = (
    "io",
    "os",
    "debug",
    "package",
    "require",
    "load",
    "loadstring",
    "loadfile",
    "dofile",
    "collectgarbage",
    "jit",
    "python",
)

# Returns the bytecode of a compiled chunk, or nil and the syntax error
_COMPILER = """
function(source, chunkname)
    local fn, err = load(source, chunkname, "t")
    if not fn then
        return nil, err
    end
    return string.dump(fn)
end
"""

# Binds the real `load` as an upvalue so the global can be removed afterwards
_BINARY_LOADER = """
(function(load)
    return function(bytecode, chunkname)
        return load(bytecode, chunkname, "b")
    end
end)(load)
"""

_DEADLINE_HOOK = """
function(check, count)
    if jit then jit.off() end
    debug.sethook(function() check() end, "", count)
end
"""

# JSON arrays carry a shared metatable so empty arrays encode as [] and
# arrays are never re-keyed as objects. JSON null is an empty table with its
# own metatable; nil would drop object members and punch holes in arrays.
_JSON_HELPERS = """
(function()
    local array_mt = {}
    local null_mt = {}
    local null = setmetatable({}, null_mt)
    local function new_array()
        return setmetatable({}, array_mt)
    end
    local function is_array(t)
        return getmetatable(t) == array_mt
    end
    local function mark_array(t)
        return setmetatable(t, array_mt)
    end
    local function is_null(t)
        return getmetatable(t) == null_mt and next(t) == nil
    end
    return new_array, is_array, mark_array, null, is_null
end)()
"""


@dataclass(frozen=True)
class CompiledProgram:
    """Immutable Lua bytecode for a script, safe to share across threads."""

    name: str
    bytecode: bytes

    @property
    def chunkname(self) -> str:
        return f"={self.name}"


def compile_program(source: str, name: str = "script.lua") -> CompiledProgram:
    """Compile Lua source into bytecode without running it.

    Raises:
        ScriptCompileError: if the source is too large or has a syntax error.
    """
    if len(source) > MAX_SCRIPT_SIZE:
        raise ScriptCompileError(
            f"Script size ({len(source)} bytes) exceeds maximum ({MAX_SCRIPT_SIZE} bytes)"
        )

    # encoding=None keeps Lua strings as bytes, which bytecode requires
    lua = LuaRuntime(encoding=None, unpack_returned_tuples=True, register_eval=False)
    compile_chunk = lua.eval(_COMPILER)
    result = compile_chunk(source.encode("utf-8"), f"={name}".encode("utf-8"))

    if not isinstance(result, bytes):
        err = result[1] if isinstance(result, tuple) and len(result) > 1 else result
        if isinstance(err, bytes):
            err = err.decode("utf-8", errors="replace")
        raise ScriptCompileError(f"Failed to compile {name}: {err}")

    return CompiledProgram(name=name, bytecode=result)


def _deny_attribute_access(obj: Any, attr_name: Any, is_setting: bool) -> Any:
    raise AttributeError(f"access to attribute '{attr_name}' is not allowed")


class ExecutionContext:
    """A single-use Lua sandbox.

    Dangerous globals are removed and attribute access on Python objects is
    denied. Host functions are only reachable through ``register``.
    """

    def __init__(self, deadline: Optional[float] = None, timeout_secs: float = 0.0) -> None:
        self.lua = LuaRuntime(
            unpack_returned_tuples=True,
            register_eval=False,
            attribute_filter=_deny_attribute_access,
        )
        self._load_binary = self.lua.eval(_BINARY_LOADER)
        (
            self._new_array,
            self._is_array,
            self._mark_array,
            self._null,
            self._is_null,
        ) = self.lua.eval(_JSON_HELPERS)

        if deadline is not None:
            self._install_deadline(deadline, timeout_secs)

        g = self.lua.globals()
        for name in _DANGEROUS_GLOBALS:
            g[name] = None

        self.register("json_array", self._new_array)
        self.register("json_null", self._null)
        self.register("json_decode", self.json_decode)
        self.register("json_encode", self.json_encode)

    def _install_deadline(self, deadline: float, timeout_secs: float) -> None:
        def check() -> None:
            if time.monotonic() > deadline:
                raise ScriptTimeoutError(timeout_secs)

        self.lua.eval(_DEADLINE_HOOK)(check, DEADLINE_CHECK_INTERVAL)

    def register(self, name: str, value: Any) -> None:
        """Expose a host function or value to the script under a global name."""
        self.lua.globals()[name] = value

    def load(self, program: CompiledProgram) -> None:
        """Run the program's top level, declaring its functions."""
        chunk = self._load_binary(program.bytecode, program.chunkname)
        if lua_type(chunk) != "function":
            err = chunk[1] if isinstance(chunk, tuple) and len(chunk) > 1 else chunk
            raise ScriptRuntimeError(f"Failed to load {program.name}: {err}")
        chunk()

    def entry_point(self, name: str) -> Any:
        """Resolve a global function by name."""
        func = self.lua.globals()[name]
        if lua_type(func) != "function":
            raise EntryPointMissingError(name)
        return func

    # =========================================================================
    # Value conversion
    # =========================================================================

    def to_lua(self, obj: Any) -> Any:
        """Deeply convert a Python value to nested Lua tables.

        lupa's table_from only converts one level, so every nesting level is
        converted explicitly. Lists are tagged as JSON arrays and None becomes
        the shared ``json_null`` table.
        """
        if obj is None:
            return self._null
        if isinstance(obj, dict):
            return self.lua.table_from({str(k): self.to_lua(v) for k, v in obj.items()})
        if isinstance(obj, (list, tuple)):
            return self._mark_array(self.lua.table_from([self.to_lua(v) for v in obj]))
        if isinstance(obj, (bool, int, float, str)):
            return obj
        # YAML timestamps and similar scalars
        return str(obj)

    def from_lua(self, value: Any) -> Any:
        """Recursively convert Lua values back into JSON-compatible Python values."""
        kind = lua_type(value)
        if kind is None:
            if isinstance(value, float) and value.is_integer():
                return int(value)
            return value
        if kind != "table":
            raise TypeError(f"cannot convert Lua {kind} to JSON")
        if self._is_null(value):
            return None

        keys = list(value.keys())
        numeric = all(isinstance(k, (int, float)) and not isinstance(k, bool) for k in keys)

        if self._is_array(value) and numeric:
            # Holes left by the script are written as null
            length = max((int(k) for k in keys), default=0)
            return [self.from_lua(value[i]) for i in range(1, length + 1)]

        if not keys:
            return {}

        # Untagged tables built in Lua: consecutive integer keys starting from 1
        if numeric:
            int_keys = sorted(int(k) for k in keys)
            if int_keys == list(range(1, len(int_keys) + 1)):
                return [self.from_lua(value[k]) for k in int_keys]

        return {
            k if isinstance(k, str) else str(self.from_lua(k)): self.from_lua(value[k])
            for k in keys
        }

    def json_decode(self, text: str) -> Any:
        return self.to_lua(json.loads(text))

    def json_encode(self, value: Any) -> str:
        # Sorted keys: Lua table iteration order differs between runtimes
        return json.dumps(
            self.from_lua(value),
            separators=(",", ":"),
            ensure_ascii=False,
            sort_keys=True,
        )
