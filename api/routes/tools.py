"""api/routes/tools.py — Direct tool invocation endpoint.

POST /tools/call  — Run a registered GenreTool by name with a params dict.
GET  /tools/list  — Registered tools with their parameter schemas.

Thin HTTP boundary over the ToolRegistry singleton in tools/registry.py.
Tool failures come back in the body as success=False; only an unknown
tool name is an HTTP error.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from tools.registry import get_registry

router = APIRouter(prefix="/tools", tags=["tools"])


class ToolCallRequest(BaseModel):
    """POST /tools/call request body."""

    name: str = Field(..., min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)


class ToolCallResponse(BaseModel):
    """Mirror of ToolResult."""

    success: bool
    data: Any = None
    error: str | None = None
    metadata: dict[str, Any] | None = None


@router.post("/call", response_model=ToolCallResponse)
def call_tool(request: ToolCallRequest) -> ToolCallResponse:
    """Execute a registered tool.

    Raises:
        HTTPException(404): No tool with that name.
    """
    registry = get_registry()
    tool = registry.get(request.name)
    if tool is None:
        available = [t["name"] for t in registry.list_tools()]
        raise HTTPException(
            status_code=404,
            detail=f"Tool '{request.name}' not found. Available tools: {available}",
        )

    result = tool(**request.params)
    return ToolCallResponse(
        success=result.success,
        data=result.data,
        error=result.error,
        metadata=result.metadata,
    )


@router.get("/list")
def list_tools() -> list[dict[str, Any]]:
    """Registered tools, each with name, description and parameters."""
    return get_registry().list_tools()
