#!/usr/bin/env python3
"""
SQLiteExt MCP Server

Exposes the SQLiteExt API v1 (table copy, query, execute) as an MCP server
for LLM integration.
"""

import json
import logging
from pathlib import Path
from typing import Any

import requests
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    Tool,
    TextContent,
    Resource,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("sqliteext-mcp")

# Load configuration
CONFIG_PATH = Path(__file__).parent / "config.json"
with open(CONFIG_PATH) as f:
    config = json.load(f)

API_BASE = config["api_base_url"]
SERVER_NAME = config["server_name"]
SERVER_VERSION = config["server_version"]

# Initialize MCP server
app = Server(SERVER_NAME)


# --- Tool Definitions ---

@app.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    return [
        Tool(
            name="list_tables",
            description="List the user tables of a database file under the data root.",
            inputSchema={
                "type": "object",
                "properties": {
                    "db": {
                        "type": "string",
                        "description": "Database file name relative to the data root (e.g., 'main.db')"
                    }
                },
                "required": ["db"]
            }
        ),
        Tool(
            name="copy_table",
            description=(
                "Copy the rows of a table into another table, in the same database or a different one. "
                "Can create the destination table from the source schema and clear it first. "
                "Use mode 'replace' to merge rows by primary key instead of failing on conflicts."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "source_db": {"type": "string", "description": "Source database file"},
                    "source_table": {"type": "string", "description": "Table to copy"},
                    "destination_db": {
                        "type": "string",
                        "description": "Destination database file (defaults to the source)"
                    },
                    "destination_table": {
                        "type": "string",
                        "description": "Destination table (defaults to the source table name)"
                    },
                    "mode": {
                        "type": "string",
                        "enum": ["insert", "replace"],
                        "description": "INSERT (fail on conflict) or INSERT OR REPLACE",
                        "default": "insert"
                    },
                    "clear_first": {
                        "type": "boolean",
                        "description": "Delete destination rows first (drops the table when create_schema is set)",
                        "default": False
                    },
                    "create_schema": {
                        "type": "boolean",
                        "description": "Create the destination table from the source schema",
                        "default": False
                    }
                },
                "required": ["source_db", "source_table"]
            }
        ),
        Tool(
            name="run_query",
            description="Run a read-only SELECT against a database and return the rows.",
            inputSchema={
                "type": "object",
                "properties": {
                    "db": {"type": "string", "description": "Database file"},
                    "sql": {"type": "string", "description": "SELECT statement"},
                    "limit": {"type": "integer", "description": "Maximum rows", "default": 50}
                },
                "required": ["db", "sql"]
            }
        ),
        Tool(
            name="execute_sql",
            description="Run a non-query statement (INSERT, DELETE, CREATE, DROP, ...) and commit it.",
            inputSchema={
                "type": "object",
                "properties": {
                    "db": {"type": "string", "description": "Database file"},
                    "sql": {"type": "string", "description": "Statement to execute"}
                },
                "required": ["db", "sql"]
            }
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Execute a tool."""
    try:
        if name == "list_tables":
            return await list_tables(arguments)
        elif name == "copy_table":
            return await copy_table(arguments)
        elif name == "run_query":
            return await run_query(arguments)
        elif name == "execute_sql":
            return await execute_sql(arguments)
        else:
            raise ValueError(f"Unknown tool: {name}")
    except Exception as e:
        logger.error(f"Tool execution error: {e}", exc_info=True)
        return [TextContent(type="text", text=f"Error: {str(e)}")]


# --- Tool Implementations ---

async def list_tables(args: dict) -> list[TextContent]:
    """List tables of a database."""
    response = requests.get(f"{API_BASE}/tables", params={"db": args["db"]}, timeout=10)
    response.raise_for_status()
    tables = response.json().get("tables", [])

    if not tables:
        return [TextContent(type="text", text=f"No tables in '{args['db']}'.")]
    output = f"Tables in '{args['db']}':\n"
    for t in tables:
        output += f"- {t}\n"
    return [TextContent(type="text", text=output)]


async def copy_table(args: dict) -> list[TextContent]:
    """Copy a table."""
    payload = {
        "source_db": args["source_db"],
        "source_table": args["source_table"],
        "destination_db": args.get("destination_db"),
        "destination_table": args.get("destination_table"),
        "mode": args.get("mode", "insert"),
        "clear_first": args.get("clear_first", False),
        "create_schema": args.get("create_schema", False),
    }

    response = requests.post(f"{API_BASE}/tables/copy", json=payload, timeout=300)
    data = response.json()

    if response.ok and data.get("success"):
        target = payload["destination_table"] or payload["source_table"]
        output = f"✓ Copied {data['rows_copied']} rows into '{target}'."
        if data.get("schema_created"):
            output += "\nDestination table created from the source schema."
        if data.get("mismatches"):
            output += f"\nWarning: {len(data['mismatches'])} rows did not insert exactly one row."
        return [TextContent(type="text", text=output)]
    else:
        return [TextContent(type="text", text=f"✗ Copy failed: {data.get('error', 'Unknown error')}")]


async def run_query(args: dict) -> list[TextContent]:
    """Run a SELECT."""
    payload = {"db": args["db"], "sql": args["sql"], "limit": args.get("limit", 50)}
    response = requests.post(f"{API_BASE}/query", json=payload, timeout=30)
    data = response.json()
    if not response.ok:
        return [TextContent(type="text", text=f"Error: {data.get('error', 'Unknown error')}")]

    rows = data.get("rows", [])
    if not rows:
        return [TextContent(type="text", text="Query returned no rows.")]

    columns = data["columns"]
    output = " | ".join(columns) + "\n"
    for row in rows:
        output += " | ".join(str(row.get(c)) for c in columns) + "\n"
    output += f"\n({data['row_count']} rows)"
    return [TextContent(type="text", text=output)]


async def execute_sql(args: dict) -> list[TextContent]:
    """Run a non-query statement."""
    payload = {"db": args["db"], "sql": args["sql"]}
    response = requests.post(f"{API_BASE}/execute", json=payload, timeout=60)
    data = response.json()
    if response.ok and data.get("success"):
        return [TextContent(type="text", text=f"✓ {data['rows_affected']} rows affected.")]
    return [TextContent(type="text", text=f"✗ Execution failed: {data.get('error', 'Unknown error')}")]


# --- Resource Definitions ---

@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri="sqliteext://api/docs",
            name="API Documentation",
            mimeType="text/markdown",
            description="SQLiteExt HTTP API endpoints and parameters"
        )
    ]


@app.read_resource()
async def read_resource(uri: str) -> str:
    """Read a resource."""
    if str(uri) == "sqliteext://api/docs":
        return """# SQLiteExt API Documentation

## Endpoints

### GET /api/v1/tables
List tables.
- `db` (string): Database file under the data root

### POST /api/v1/tables/copy
Copy a table's rows, optionally creating its schema first.
- `source_db`, `source_table` (string): Source
- `destination_db`, `destination_table` (string, optional): Destination
- `mode` (string): `insert` or `replace`
- `clear_first`, `create_schema`, `transaction` (bool)

### POST /api/v1/query
Run a SELECT.
- `db`, `sql` (string), `limit` (int)

### POST /api/v1/execute
Run a non-query statement.
- `db`, `sql` (string)
"""
    else:
        raise ValueError(f"Unknown resource: {uri}")


# --- Main Entry Point ---

async def main():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await app.run(
            read_stream,
            write_stream,
            app.create_initialization_options()
        )


if __name__ == "__main__":
    import asyncio
    asyncio.run(main())
