"""
Toolgate - Remote tool service.

Tools are registered as :class:`ToolDef` records. Each carries a pydantic
model describing its arguments, so arguments are validated at the service
boundary before any handler runs::

    class EchoArgs(BaseModel):
        text: str

    @define_tool(description="Echo the text back.", arguments=EchoArgs)
    def echo(args: EchoArgs) -> str:
        return args.text

    service = RemoteToolService([echo])
    await service.invoke("echo", {"text": "hi"})
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import InvalidArgumentError, UnknownToolError
from .models import ToolSpec

logger = logging.getLogger("toolgate.tools")

DEFAULT_RANDOM_MAX = 100


class ToolArguments(BaseModel):
    """Arguments for a tool that takes none."""

    model_config = ConfigDict(extra="ignore")


@dataclass
class ToolDef:
    """Definition of a tool the service can run.

    ``parameters`` is the JSON schema shown to models and MCP clients,
    ``arguments`` the pydantic model used to validate incoming arguments and
    ``handler`` receives the validated model and returns text (or an
    awaitable of text).
    """

    name: str
    description: str
    handler: Callable[[Any], Any]
    parameters: dict = field(default_factory=lambda: {"type": "object", "properties": {}})
    arguments: type[BaseModel] = ToolArguments

    def to_schema(self) -> dict:
        """Return the MCP tool descriptor."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.parameters,
        }

    def to_spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )


def define_tool(
    name: Optional[str] = None,
    description: str = "",
    parameters: Optional[dict] = None,
    arguments: type[BaseModel] = ToolArguments,
) -> Callable[[Callable[[Any], Any]], ToolDef]:
    """Decorator that turns a function into a :class:`ToolDef`.

    The function's ``__name__`` is used as the tool name unless *name* is
    given. When *parameters* is omitted the schema is derived from the
    arguments model.
    """

    def decorator(func: Callable[[Any], Any]) -> ToolDef:
        tool_name = name or func.__name__
        return ToolDef(
            name=tool_name,
            description=description or func.__doc__ or f"Tool: {tool_name}",
            handler=func,
            parameters=parameters or arguments.model_json_schema(),
            arguments=arguments,
        )

    return decorator


# ---------------------------------------------------------------------------
# randomInt
# ---------------------------------------------------------------------------

RANDOM_INT_DESCRIPTION = (
    "Return a random integer from 0 (inclusive) up to, but not including, `max`. "
    "If `max` is omitted the default upper-bound is 100."
)

RANDOM_INT_PARAMETERS = {
    "type": "object",
    "properties": {
        "max": {
            "type": "integer",
            "minimum": 1,
            "description": "Exclusive upper bound for the random integer",
        },
    },
}


class RandomIntArgs(ToolArguments):
    max: int = Field(default=DEFAULT_RANDOM_MAX, ge=1)

    @field_validator("max", mode="before")
    @classmethod
    def _integral(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_RANDOM_MAX
        # bool is an int subclass and strings would be coerced in lax mode
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("max must be an integer")
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError("max must be an integer")
            return int(value)
        return value


def random_int_tool(randbelow: Callable[[int], int] = secrets.randbelow) -> ToolDef:
    """Build the ``randomInt`` tool around an integer source.

    *randbelow* must return an integer in ``[0, n)``.
    """

    @define_tool(
        name="randomInt",
        description=RANDOM_INT_DESCRIPTION,
        parameters=RANDOM_INT_PARAMETERS,
        arguments=RandomIntArgs,
    )
    def random_int(args: RandomIntArgs) -> str:
        return str(randbelow(args.max))

    return random_int


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class RemoteToolService:
    """Executes named tools against validated arguments.

    Stateless apart from the tool table; one instance is shared by every
    session of a gateway.
    """

    def __init__(self, tools: Optional[Iterable[ToolDef]] = None) -> None:
        self._tools: dict[str, ToolDef] = {}
        for tool in tools if tools is not None else [random_int_tool()]:
            self.register(tool)

    def register(self, tool: ToolDef) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[ToolDef]:
        return self._tools.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def list_tools(self) -> list[dict]:
        """MCP descriptors for every registered tool."""
        return [t.to_schema() for t in self._tools.values()]

    def specs(self) -> list[ToolSpec]:
        return [t.to_spec() for t in self._tools.values()]

    def validate(self, name: str, arguments: Optional[Mapping[str, Any]]) -> BaseModel:
        """Resolve *name* and validate *arguments* without running anything."""
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(f"Unknown tool: {name}", tool_name=name)

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            raise InvalidArgumentError(
                f"Arguments for {name} must be an object", tool_name=name
            )

        try:
            return tool.arguments.model_validate(dict(arguments))
        except ValidationError as e:
            errors = [
                {"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()
            ]
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in errors
            )
            raise InvalidArgumentError(
                f"Invalid arguments for {name}: {details}",
                errors=errors,
                tool_name=name,
            ) from None

    async def invoke(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> str:
        """Run tool *name* and return its text output.

        Raises:
            UnknownToolError: No tool is registered under *name*.
            InvalidArgumentError: The arguments failed validation.
        """
        args = self.validate(name, arguments)
        handler = self._tools[name].handler

        if asyncio.iscoroutinefunction(handler):
            raw = await handler(args)
        else:
            raw = handler(args)

        logger.info("Tool %s completed", name)
        return raw if isinstance(raw, str) else str(raw)
