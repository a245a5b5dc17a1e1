"""Lua scripting layer for the FEO interceptor."""

from devproxy.scripting.bridge import BridgeFunctions
from devproxy.scripting.engine import ENTRY_POINT, ScriptEngine
from devproxy.scripting.sandbox import CompiledProgram, ExecutionContext, compile_program

__all__ = [
    "BridgeFunctions",
    "CompiledProgram",
    "ENTRY_POINT",
    "ExecutionContext",
    "ScriptEngine",
    "compile_program",
]
