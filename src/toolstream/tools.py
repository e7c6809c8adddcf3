import inspect
import json
import re
from typing import Callable

from pydantic import BaseModel, Field

# Parameters injected at call time, never advertised to the model.
INJECTED_PARAMS = ("context",)

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    dict: "object",
}
_JSON_TYPES_BY_NAME = {t.__name__: name for t, name in _JSON_TYPES.items()}

_ARGS_HEADER = re.compile(r"^\s*(Args|Arguments|Parameters):\s*$")
_ARG_LINE = re.compile(r"^(\s*)(\w+)(?:\s*\([^)]*\))?:\s*(.*)$")


class ToolOutcome(BaseModel):
    """Result of a single tool call.

    ``summary`` is for people, ``raw`` goes back to the model.
    """

    ok: bool
    summary: str
    raw: str


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Read Google-style ``Args:`` descriptions from a docstring."""
    doc = inspect.getdoc(func)
    if not doc:
        return {}

    descriptions: dict[str, str] = {}
    in_args = False
    arg_indent = None
    current = None
    for line in doc.splitlines():
        if not in_args:
            in_args = bool(_ARGS_HEADER.match(line))
            continue
        if not line.strip():
            current = None
            continue
        indent = len(line) - len(line.lstrip())
        if indent == 0:
            break
        match = _ARG_LINE.match(line)
        if match and (arg_indent is None or len(match.group(1)) == arg_indent):
            arg_indent = len(match.group(1))
            current = match.group(2)
            descriptions[current] = match.group(3).strip()
        elif current is not None:
            descriptions[current] += "\n" + line.strip()
    return descriptions


def _json_type(annotation) -> str:
    # Postponed annotations arrive as strings.
    if isinstance(annotation, str):
        return _JSON_TYPES_BY_NAME.get(annotation, "string")
    return _JSON_TYPES.get(annotation, "string")


def _build_parameters_schema(func: Callable) -> tuple[dict, list[str]]:
    signature = inspect.signature(func)
    descriptions = _parse_param_descriptions(func)
    properties = {}
    required = []
    for name, param in signature.parameters.items():
        if name in INJECTED_PARAMS:
            continue
        properties[name] = {
            "type": _json_type(param.annotation),
            "description": descriptions.get(name, ""),
        }
        if param.default is inspect.Parameter.empty:
            required.append(name)
    schema = {
        "type": "object",
        "properties": properties,
        "required": required,
    }
    return schema, required


def _summary_line(func: Callable) -> str:
    doc = inspect.getdoc(func) or ""
    return doc.split("\n\n", 1)[0].replace("\n", " ").strip()


class Tool(BaseModel):
    func: Callable = Field(exclude=True)
    name: str
    description: str = ""
    parameters: dict = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)
    model_config = {"arbitrary_types_allowed": True}

    def __init__(self, func: Callable, name: str | None = None):
        parameters, required = _build_parameters_schema(func)
        super().__init__(
            func=func,
            name=name or func.__name__,
            description=_summary_line(func),
            parameters=parameters,
            required=required,
        )

    def model_dump(self, **kwargs):
        """Return the function-calling schema instead of internal attributes."""
        return self.get_schema()

    def model_dump_json(self, **kwargs):
        return json.dumps(self.get_schema())

    def get_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    @property
    def wants_context(self) -> bool:
        return "context" in inspect.signature(self.func).parameters

    async def __call__(self, *args, **kwargs) -> ToolOutcome:
        result = self.func(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, ToolOutcome):
            return result
        raw = result if isinstance(result, str) else json.dumps(result)
        return ToolOutcome(ok=True, summary=raw, raw=raw)


def tool(func: Callable) -> Tool:
    """Decorator turning a plain or async function into a :class:`Tool`."""
    return Tool(func)
