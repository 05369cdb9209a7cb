"""Tests for MCP error responses, pagination, validation and rate limiting."""

import threading
from unittest.mock import patch

from falgraph.mcp_utils import (
    RateLimiter,
    build_rate_limiter,
    mcp_error,
    mcp_tool_wrapper,
    not_found_error,
    paginate,
    validate_range,
    validate_required,
    validate_type,
)


class TestResponses:
    def test_mcp_error(self):
        assert mcp_error("boom") == {"error": "boom", "code": "TOOL_ERROR", "isError": True}
        assert mcp_error("boom", "X", {"a": 1})["details"] == {"a": 1}

    def test_not_found(self):
        result = not_found_error("Node", "fal-x")
        assert result["error"] == "Node not found: fal-x"
        assert result["details"] == {"node": "fal-x"}


class TestPaginate:
    def test_pages(self):
        first = paginate(list(range(5)), limit=2)
        assert first["items"] == [0, 1]
        assert first["total"] == 5
        second = paginate(list(range(5)), first["nextCursor"], limit=2)
        assert second["items"] == [2, 3]
        last = paginate(list(range(5)), second["nextCursor"], limit=2)
        assert last["items"] == [4]
        assert last["nextCursor"] is None

    def test_bad_cursor_restarts(self):
        assert paginate([1, 2], "not-base64!", limit=5)["items"] == [1, 2]

    def test_cursor_past_end_restarts(self):
        cursor = paginate(list(range(10)), limit=8)["nextCursor"]
        assert paginate([1, 2], cursor, limit=5)["items"] == [1, 2]


class TestValidation:
    def test_required(self):
        assert validate_required({"uid": "x"}, ["uid"]) is None
        error = validate_required({"uid": ""}, ["uid"])
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"] == {"field": "uid"}

    def test_type(self):
        assert validate_type({}, dict, "inputs") is None
        assert "must be dict" in validate_type([], dict, "inputs")["error"]

    def test_range(self):
        assert validate_range(5, "limit", 1, 100) is None
        assert validate_range(0, "limit", 1, 100)["details"] == {"field": "limit"}
        assert "<= 100" in validate_range(101, "limit", 1, 100)["error"]


class TestRateLimiter:
    def test_window_fills_per_tool(self):
        limiter = RateLimiter(default_limit=2, window_seconds=60)
        assert limiter.check("run_node")
        assert limiter.check("run_node")
        assert not limiter.check("run_node")
        assert limiter.check("list_nodes")

    def test_window_expires(self):
        limiter = RateLimiter(default_limit=1, window_seconds=10)
        with patch("falgraph.mcp_utils.time.time", return_value=1000.0):
            assert limiter.check("run_node")
            assert not limiter.check("run_node")
            assert limiter.retry_after("run_node") == 10.0
        with patch("falgraph.mcp_utils.time.time", return_value=1011.0):
            assert limiter.retry_after("run_node") == 0.0
            assert limiter.check("run_node")

    def test_per_tool_limits(self):
        limiter = RateLimiter(default_limit=5, limits={"run_node": 1})
        assert limiter.limit_for("run_node") == 1
        assert limiter.limit_for("list_nodes") == 5
        assert limiter.check("run_node")
        assert not limiter.check("run_node")

    def test_run_node_limit_from_env(self, monkeypatch):
        monkeypatch.setenv("FALGRAPH_RATE_LIMIT", "40")
        monkeypatch.setenv("FALGRAPH_RUN_RATE_LIMIT", "3")
        limiter = build_rate_limiter()
        assert limiter.limit_for("run_node") == 3
        assert limiter.limit_for("get_node_schema") == 40

    def test_concurrent_checks_respect_limit(self):
        limiter = RateLimiter(default_limit=50, window_seconds=60)
        accepted = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            for _ in range(20):
                if limiter.check("run_node"):
                    accepted.append(1)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(accepted) == 50


class TestToolWrapper:
    def test_passes_result_through(self, capturing_logger):
        @mcp_tool_wrapper
        def sample_tool():
            return {"ok": True}

        assert sample_tool() == {"ok": True}
        log = capturing_logger.get_json_logs()[-1]
        assert log["message"] == "tool_completed"
        assert log["tool"] == "sample_tool"

    def test_exception_becomes_error(self, capturing_logger):
        @mcp_tool_wrapper
        def failing_tool():
            raise RuntimeError("kaput")

        result = failing_tool()
        assert result == {"error": "kaput", "code": "INTERNAL_ERROR", "isError": True}
        assert "tool_failed" in capturing_logger.messages()

    def test_error_dict_logs_code(self, capturing_logger):
        @mcp_tool_wrapper
        def lookup_tool():
            return not_found_error("Node", "fal-x")

        lookup_tool()
        log = capturing_logger.get_json_logs()[-1]
        assert log["message"] == "tool_failed"
        assert log["code"] == "NOT_FOUND"

    def test_rate_limited(self, capturing_logger):
        with patch("falgraph.mcp_utils._rate_limiter", RateLimiter(default_limit=0)):

            @mcp_tool_wrapper
            def limited_tool():
                return {}

            result = limited_tool()
        assert result["code"] == "RATE_LIMITED"
        assert result["details"]["limit"] == 0
        assert "tool_rate_limited" in capturing_logger.messages()
