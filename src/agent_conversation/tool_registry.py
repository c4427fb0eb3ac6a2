"""
Simple tool registry for automatic schema generation and tool execution.

Maps Python callables and remote tool descriptors to OpenAI Responses API
function schemas, and executes them by name.
"""

import inspect
import json
import logging
from typing import Any, Callable, Dict, List, Optional, get_type_hints

from .connection import call_remote_tool

logger = logging.getLogger(__name__)


def callable_to_tool_schema(
    callable_func: Callable, name: str, description: Optional[str] = None
) -> Dict[str, Any]:
    """
    Convert a Python callable (function or method) to OpenAI tool schema format.

    Args:
        callable_func: The callable to convert
        name: Tool name
        description: Optional description

    Returns:
        OpenAI tool schema dictionary
    """
    sig = inspect.signature(callable_func)
    type_hints = get_type_hints(callable_func)

    # Get description from docstring if not provided
    if description is None:
        doc = inspect.getdoc(callable_func)
        description = doc.strip() if doc else f"Execute {name}"

    parameters: Dict[str, Any] = {"type": "object", "properties": {}, "required": []}

    for param_name, param in sig.parameters.items():
        if param_name == "self":
            continue

        param_type = type_hints.get(param_name, str)

        if param_type is bool:
            json_type = "boolean"
        elif param_type is int:
            json_type = "integer"
        elif param_type is float:
            json_type = "number"
        else:
            json_type = "string"  # Default fallback

        parameters["properties"][param_name] = {
            "type": json_type,
            "description": f"The {param_name} parameter",
        }

        if param.default is inspect.Parameter.empty:
            parameters["required"].append(param_name)

    return function_schema(name, description, parameters)


def function_schema(name: str, description: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
    """Build a Responses API function tool entry."""
    return {
        "type": "function",
        "name": name,
        "description": description,
        "parameters": parameters,
        "strict": False,
    }


class ToolRegistry:
    """Registry for managing tools and their schemas."""

    def __init__(self):
        self.tools: Dict[str, Callable] = {}  # name -> callable
        self.schemas: List[Dict[str, Any]] = []  # OpenAI schemas

    def _add(self, name: str, callable_func: Callable, schema: Dict[str, Any]) -> bool:
        if name in self.tools:
            logger.warning(f"Tool '{name}' already registered, skipping duplicate")
            return False
        self.tools[name] = callable_func
        self.schemas.append(schema)
        return True

    def register_callable(
        self,
        callable_func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> bool:
        """
        Register a callable (function or method) and auto-generate its OpenAI tool schema.

        Args:
            callable_func: The callable to register
            name: Optional name override (defaults to callable name)
            description: Optional description

        Returns:
            False if a tool with the same name was already registered.
        """
        tool_name = name or callable_func.__name__
        schema = callable_to_tool_schema(callable_func, tool_name, description)
        return self._add(tool_name, callable_func, schema)

    def register_remote(self, descriptor: Any, client: Any) -> bool:
        """
        Register a tool served by the remote tool server.

        Args:
            descriptor: A ToolDescriptor (name, description, input_schema)
            client: The session used to invoke the tool

        Returns:
            False if a tool with the same name was already registered.
        """
        name = descriptor.name

        async def invoke(**arguments):
            return await call_remote_tool(client, name, arguments)

        schema = function_schema(
            name, descriptor.description or f"Execute {name}", descriptor.input_schema
        )
        return self._add(name, invoke, schema)

    def get_schemas(self) -> List[Dict[str, Any]]:
        """Get all tool schemas for OpenAI API."""
        return self.schemas

    def get_tool_names(self) -> List[str]:
        """Get list of registered tool names."""
        return list(self.tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self.tools

    async def execute_tool(self, name: str, args: Dict[str, Any]) -> Any:
        """
        Execute a registered tool by name.

        Args:
            name: Tool name
            args: Tool arguments

        Returns:
            Tool execution result

        Raises:
            KeyError: If tool is not registered
        """
        if name not in self.tools:
            raise KeyError(f"Tool '{name}' not found in registry")

        callable_func = self.tools[name]

        # Execute the callable (handle both sync and async)
        if inspect.iscoroutinefunction(callable_func):
            return await callable_func(**args)
        else:
            return callable_func(**args)

    async def execute_function_call(self, item: Any) -> Dict[str, Any]:
        """
        Execute a tool from a Responses API function_call item.

        Args:
            item: The function call output item (must have name, arguments, call_id).

        Returns:
            A function_call_output dictionary for the next model request.
        """
        name = item.name

        try:
            args = json.loads(item.arguments) if item.arguments else {}
            result = await self.execute_tool(name, args)

            if isinstance(result, (dict, list)):
                output = json.dumps(result, ensure_ascii=False)
            else:
                output = str(result) if result is not None else "Tool executed successfully"
        except json.JSONDecodeError as e:
            logger.info(f"TOOL JSON ERROR: {name} - {str(e)}")
            output = f"Error parsing arguments: {str(e)}"
        except Exception as e:
            logger.info(f"TOOL ERROR: {name} - {str(e)}")
            output = f"Error: {str(e)}"

        return {
            "type": "function_call_output",
            "call_id": item.call_id,
            "output": output,
        }

    def __len__(self) -> int:
        """Get number of registered tools."""
        return len(self.tools)
