"""
Example: Letting an OpenAI-compatible model explore a workspace

The model is offered the workspace tools through function calling. Each
tool call it makes is executed with LLMFileSystemTools and the result is
sent back until the model answers in plain text.

Works with LM Studio, Ollama (OpenAI endpoint) or the OpenAI API:

    export LLM_BASE_URL=http://localhost:1234/v1
    export LLM_MODEL=qwen/qwen3-coder-30b
    python examples/openai_tool_loop.py /path/to/project
"""

import asyncio
import json
import os
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv

from workspace_tools import FileSystemAccessConfig, LLMFileSystemTools

PROMPT = (
    "List the files in the src directory and then search for \"export\" in "
    "TypeScript files. Then list each file name that you found that contains it."
)


async def run(workspace: Path, max_iterations: int = 8) -> str:
    base_url = os.getenv("LLM_BASE_URL", "http://localhost:1234/v1").rstrip("/")
    model = os.getenv("LLM_MODEL", "qwen/qwen3-coder-30b")
    api_key = os.getenv("OPENAI_API_KEY") or os.getenv("LLM_API_KEY")

    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    tools = LLMFileSystemTools(FileSystemAccessConfig(workspace_root=workspace))
    messages = [{"role": "user", "content": PROMPT}]

    async with httpx.AsyncClient(base_url=base_url, headers=headers, timeout=120.0) as client:
        for _ in range(max_iterations):
            response = await client.post(
                "/chat/completions",
                json={
                    "model": model,
                    "messages": messages,
                    "tools": tools.get_tool_schemas(),
                },
            )
            response.raise_for_status()
            message = response.json()["choices"][0]["message"]
            messages.append(message)

            tool_calls = message.get("tool_calls") or []
            if not tool_calls:
                return message.get("content") or ""

            for call in tool_calls:
                name = call["function"]["name"]
                arguments = json.loads(call["function"]["arguments"] or "{}")
                print(f"-> {name}({arguments})")

                try:
                    result = await tools.execute_tool(name, arguments)
                except ValueError as e:
                    result = {"success": False, "error": str(e), "error_type": "UnknownTool"}

                messages.append({
                    "role": "tool",
                    "tool_call_id": call["id"],
                    "content": json.dumps(result),
                })

    return "Stopped: too many tool calls"


def main():
    load_dotenv()
    workspace = Path(sys.argv[1]) if len(sys.argv) > 1 else Path.cwd()
    print(asyncio.run(run(workspace)))


if __name__ == "__main__":
    main()
