import unittest
from unittest.mock import patch, MagicMock
from mcp_server.server import call_tool, copy_table, list_tables, read_resource, run_query

def _response(payload, ok=True):
    response = MagicMock()
    response.ok = ok
    response.json.return_value = payload
    response.raise_for_status = MagicMock()
    return response

class TestMCPServer(unittest.IsolatedAsyncioTestCase):
    @patch('mcp_server.server.requests.post')
    async def test_copy_table_tool(self, mock_post):
        mock_post.return_value = _response({
            "success": True, "rows_copied": 2, "mismatches": [], "schema_created": True
        })

        result = await copy_table({"source_db": "a.db", "source_table": "T", "destination_db": "b.db",
                                   "create_schema": True})

        self.assertIn("Copied 2 rows into 'T'", result[0].text)
        self.assertIn("created from the source schema", result[0].text)
        payload = mock_post.call_args.kwargs["json"]
        self.assertEqual(payload["mode"], "insert")
        self.assertTrue(payload["create_schema"])

    @patch('mcp_server.server.requests.post')
    async def test_copy_table_tool_reports_failure(self, mock_post):
        mock_post.return_value = _response(
            {"success": False, "error": "Source and destination are the same table"}, ok=False
        )

        result = await copy_table({"source_db": "a.db", "source_table": "T"})
        self.assertIn("Copy failed: Source and destination are the same table", result[0].text)

    @patch('mcp_server.server.requests.get')
    async def test_list_tables_tool(self, mock_get):
        mock_get.return_value = _response({"tables": ["T", "U"]})

        result = await list_tables({"db": "a.db"})
        self.assertIn("- T", result[0].text)
        self.assertIn("- U", result[0].text)

    @patch('mcp_server.server.requests.post')
    async def test_run_query_tool(self, mock_post):
        mock_post.return_value = _response({
            "columns": ["id", "name"], "rows": [{"id": 1, "name": "a"}], "row_count": 1
        })

        result = await run_query({"db": "a.db", "sql": "SELECT * FROM T"})
        self.assertIn("id | name", result[0].text)
        self.assertIn("1 | a", result[0].text)

    async def test_unknown_tool_returns_error_text(self):
        result = await call_tool("drop_everything", {})
        self.assertIn("Unknown tool", result[0].text)

    async def test_api_docs_resource(self):
        docs = await read_resource("sqliteext://api/docs")
        self.assertIn("/api/v1/tables/copy", docs)

if __name__ == '__main__':
    unittest.main()
