"""
Tests for the built-in operations.

Search runs against a mocked SearXNG response; calculate is local.
"""

from unittest.mock import Mock, patch

import pytest
import requests

from chatops_orchestrator.operations import OperationRegistry, calculate, search
from chatops_orchestrator.operations.calculator import preprocess_expression


def _searx_response(results):
    response = Mock()
    response.json.return_value = {"results": results}
    response.raise_for_status.return_value = None
    return response


class TestSearch:
    """Tests for the SearXNG search operation."""

    @patch("requests.get")
    def test_results_trimmed(self, mock_get):
        mock_get.return_value = _searx_response(
            [{"title": f"t{n}", "url": f"https://e/{n}", "content": "c", "score": 1} for n in range(8)]
        )

        result = search("python news", categories="news", num_results=3)

        assert result["summary"] == "3 result(s) for 'python news'"
        assert result["results"][0] == {"title": "t0", "url": "https://e/0", "content": "c"}
        params = mock_get.call_args.kwargs["params"]
        assert params == {"q": "python news", "format": "json", "categories": "news"}

    def test_empty_query(self):
        result = search("   ")
        assert "error" in result
        assert result["results"] == []

    @patch("requests.get")
    def test_connection_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")
        result = search("anything")
        assert result["error"] == "refused"
        assert result["results"] == []

    @patch("requests.get")
    def test_invalid_json(self, mock_get):
        response = _searx_response([])
        response.json.side_effect = ValueError("not json")
        mock_get.return_value = response
        assert search("anything")["error"] == "not json"

    @patch("requests.get")
    async def test_handler_clamps_count(self, mock_get):
        mock_get.return_value = _searx_response(
            [{"title": str(n), "url": "", "content": ""} for n in range(20)]
        )
        handler = OperationRegistry.get("search").handler
        result = await handler({"query": "q", "num_results": "50"}, None)
        assert len(result["results"]) == 10


class TestCalculate:
    """Tests for the calculate operation."""

    @pytest.mark.parametrize(
        "expression, expected",
        [
            ("2 + 2", 4),
            ("(10 + 5) * 2 - 3", 27),
            ("sqrt(144)", 12),
            ("2^16", 65536),
            ("5!", 120),
            ("ceil(3.2)", 4),
            ("floor(3.7)", 3),
        ],
    )
    def test_expressions(self, expression, expected):
        result = calculate(expression)
        assert result["result"] == expected
        assert result["summary"] == f"{expression} = {expected}"

    def test_degrees(self):
        assert calculate("sin(30 degrees)")["result"] == pytest.approx(0.5)

    def test_pi(self):
        assert calculate("pi")["result"] == pytest.approx(3.14159265358979)

    def test_preprocess(self):
        assert preprocess_expression("cos(90 deg)") == "cos((90 * pi / 180))"
        assert preprocess_expression("ceil(x)") == "ceiling(x)"

    def test_empty_expression(self):
        assert "error" in calculate("")

    def test_unresolved_symbol(self):
        result = calculate("x + 1")
        assert "error" in result
        assert "result" not in result

    async def test_handler(self):
        handler = OperationRegistry.get("calculate").handler
        result = await handler({"expression": "7 * 8"}, None)
        assert result["result"] == 56
