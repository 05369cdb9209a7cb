"""
Tests for the falgraph CLI - argument parsing, command dispatch, output format, exit codes.
"""

import json

import pytest

from falgraph.cli import (
    EXIT_CONNECTION,
    EXIT_ERROR,
    EXIT_NOT_FOUND,
    EXIT_OK,
    EXIT_VALIDATION,
    _classify_error,
    _exit_code_for_error,
    _parse_json_arg,
    build_parser,
    main,
)

FLUX_RESULT = {"images": [{"url": "https://fal.media/files/a/out.png"}], "seed": 3}


def run_cli(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def stdout_json(capsys):
    return json.loads(capsys.readouterr().out)


class TestParserConstruction:
    def test_parser_has_all_commands(self):
        parser = build_parser()
        for argv in (
            ["list"],
            ["categories"],
            ["schema", "fal-veo3-text-to-video"],
            ["estimate", "fal-veo3-text-to-video"],
            ["run", "fal-veo3-text-to-video"],
            ["assets", "list"],
        ):
            assert parser.parse_args(argv).command == argv[0]

    def test_run_args(self):
        args = build_parser().parse_args(
            ["run", "fal-veo3-text-to-video", "-i", '{"prompt":"x"}', "-p", "@p.json", "-o", "out", "-q", "--pretty"]
        )
        assert args.uid == "fal-veo3-text-to-video"
        assert args.inputs == '{"prompt":"x"}'
        assert args.params == "@p.json"
        assert args.output == "out"
        assert args.quiet is True
        assert args.pretty is True


class TestErrorClassification:
    @pytest.mark.parametrize(
        "code,expected",
        [
            ("MISSING_INPUT", EXIT_VALIDATION),
            ("INVALID_PARAMETER", EXIT_VALIDATION),
            ("VALIDATION_ERROR", EXIT_VALIDATION),
            ("NOT_FOUND", EXIT_NOT_FOUND),
            ("ASSET_TRANSFER", EXIT_CONNECTION),
            ("CONNECTION_ERROR", EXIT_CONNECTION),
            ("PROVIDER_ERROR", EXIT_ERROR),
            ("EMPTY_RESULT", EXIT_ERROR),
        ],
    )
    def test_exit_codes(self, code, expected):
        assert _exit_code_for_error(_classify_error({"code": code, "error": "x"})) == expected

    def test_provider_connection_message(self):
        assert _classify_error({"code": "PROVIDER_ERROR", "error": "Connection refused"}) == "CONNECTION_ERROR"


class TestParseJsonArg:
    def test_inline(self):
        assert _parse_json_arg('{"a": 1}') == {"a": 1}

    def test_empty(self):
        assert _parse_json_arg(None) == {}

    def test_file(self, tmp_path):
        path = tmp_path / "p.json"
        path.write_text('{"duration": "10"}')
        assert _parse_json_arg(f"@{path}") == {"duration": "10"}

    def test_missing_file_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            _parse_json_arg(f"@{tmp_path / 'nope.json'}")
        assert exc.value.code == EXIT_VALIDATION


class TestCommands:
    def test_no_command(self):
        assert run_cli([]) == EXIT_ERROR

    def test_list(self, capsys):
        assert run_cli(["list", "--category", "Vision"]) == EXIT_OK
        out = stdout_json(capsys)
        assert out["count"] == 3
        assert {n["uid"] for n in out["nodes"]} == {
            "fal-moondream2-describe",
            "fal-moondream2-visual-query",
            "fal-moondream2-object-detection",
        }

    def test_categories(self, capsys):
        assert run_cli(["categories"]) == EXIT_OK
        assert "Upscaling" in stdout_json(capsys)["categories"]

    def test_schema_not_found(self, capsys):
        assert run_cli(["schema", "nope"]) == EXIT_NOT_FOUND
        assert stdout_json(capsys)["code"] == "NOT_FOUND"

    def test_estimate(self, capsys):
        code = run_cli(["estimate", "fal-veo3-text-to-video", "--params", '{"model_variant": "fast"}'])
        assert code == EXIT_OK
        out = stdout_json(capsys)
        assert out["endpoint"] == "fal-ai/veo3/fast"
        assert out["expected_ms"] == 65000

    def test_invalid_json(self, capsys):
        assert run_cli(["estimate", "fal-veo3-text-to-video", "--params", "{bad"]) == EXIT_VALIDATION
        assert stdout_json(capsys)["code"] == "INVALID_PARAMS"

    def test_run_success(self, capsys, fake_client, global_client, global_store, tmp_path):
        global_client(fake_client(result=FLUX_RESULT))
        out_dir = tmp_path / "out"

        code = run_cli(
            ["run", "fal-flux-pro-text-to-image", "--inputs", '{"prompt": "owl"}', "--output", str(out_dir)]
        )

        captured = capsys.readouterr()
        assert code == EXIT_OK
        out = json.loads(captured.out)
        assert out["outputs"]["seed"] == [3]
        assert len(out["files"]) == 1
        assert (out_dir / out["files"][0].split("/")[-1]).exists()
        assert "[100%] Finalizing images..." in captured.err

    def test_run_quiet(self, capsys, fake_client, global_client, global_store):
        global_client(fake_client(result=FLUX_RESULT))
        assert run_cli(["run", "fal-flux-pro-text-to-image", "-i", '{"prompt": "owl"}', "-q"]) == EXIT_OK
        assert "%]" not in capsys.readouterr().err

    def test_run_missing_input(self, capsys, fake_client, global_client, global_store):
        global_client(fake_client())
        assert run_cli(["run", "fal-flux-pro-text-to-image", "-q"]) == EXIT_VALIDATION
        assert stdout_json(capsys)["code"] == "MISSING_INPUT"

    def test_run_asset_failure(self, capsys, fake_client, global_client, global_store):
        global_client(fake_client())
        code = run_cli(["run", "fal-moondream2-describe", "-i", '{"image": "asset://gone"}', "-q"])
        assert code == EXIT_CONNECTION

    def test_assets_list(self, capsys, global_store):
        global_store.upload(b"x", "video", "a.mp4")
        assert run_cli(["assets", "list", "--type", "video"]) == EXIT_OK
        assert stdout_json(capsys)["count"] == 1

    def test_pretty_env(self, capsys, monkeypatch):
        monkeypatch.setenv("FALGRAPH_PRETTY", "1")
        run_cli(["categories"])
        assert capsys.readouterr().out.startswith("{\n")
