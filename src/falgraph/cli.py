"""
falgraph CLI - run hosted generative-media nodes from the shell.

Usage:
    falgraph list [--category "Video Generation"]
    falgraph categories
    falgraph schema fal-veo3-text-to-video
    falgraph estimate fal-seedance-text-to-video --params '{"model_variant":"pro","duration":"10"}'
    falgraph run fal-flux-pro-text-to-image --inputs '{"prompt":"a dragon"}' --params @params.json
    falgraph run fal-moondream2-describe --inputs '{"image":"photo.jpg"}' -o ./out
    falgraph assets list --type video
"""

import argparse
import json
import os
import shutil
import sys
from pathlib import Path
from typing import Optional

# Exit codes
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_VALIDATION = 3
EXIT_CONNECTION = 5
EXIT_NOT_FOUND = 6


# ─── Error classification ────────────────────────────────────────────

_VALIDATION_ERRORS = {"MISSING_INPUT", "INVALID_PARAMETER", "VALIDATION_ERROR", "INVALID_PARAMS"}
_CONNECTION_ERRORS = {"CONNECTION_ERROR", "ASSET_TRANSFER"}


def _classify_error(result: dict) -> str:
    """Classify an error result into a category for the exit code."""
    code = result.get("code", "")
    error_msg = str(result.get("error", "")).lower()

    if code in _VALIDATION_ERRORS:
        return "VALIDATION_ERROR"
    if code in _CONNECTION_ERRORS:
        return "CONNECTION_ERROR"
    if code == "NOT_FOUND":
        return "NOT_FOUND"

    if code == "PROVIDER_ERROR" and any(kw in error_msg for kw in ("connection", "unreachable", "refused")):
        return "CONNECTION_ERROR"

    return code or "UNKNOWN"


def _exit_code_for_error(error_class: str) -> int:
    """Map an error classification to an exit code."""
    return {
        "CONNECTION_ERROR": EXIT_CONNECTION,
        "NOT_FOUND": EXIT_NOT_FOUND,
        "VALIDATION_ERROR": EXIT_VALIDATION,
    }.get(error_class, EXIT_ERROR)


def _output(data: dict, pretty: bool = False) -> None:
    """Write JSON data to stdout (results/data only)."""
    if pretty:
        json.dump(data, sys.stdout, indent=2, default=str)
    else:
        json.dump(data, sys.stdout, default=str)
    sys.stdout.write("\n")
    sys.stdout.flush()


def _msg(text: str) -> None:
    """Write a status/progress message to stderr."""
    sys.stderr.write(text)
    if not text.endswith("\n"):
        sys.stderr.write("\n")
    sys.stderr.flush()


def _error(message: str, code: str = "CLI_ERROR") -> dict:
    return {"error": message, "code": code}


def _is_pretty() -> bool:
    return os.environ.get("FALGRAPH_PRETTY", "").lower() in ("1", "true", "yes")


def _parse_json_arg(value: Optional[str]) -> dict:
    """Parse a JSON string argument, supporting both raw JSON and @file references."""
    if not value:
        return {}
    if value.startswith("@"):
        path = Path(value[1:])
        if not path.exists():
            _msg(json.dumps(_error(f"File not found: {path}", "INVALID_PARAMS")))
            sys.exit(EXIT_VALIDATION)
        return json.loads(path.read_text())
    return json.loads(value)


def _print_status(status: dict) -> None:
    progress = status.get("progress")
    if status.get("type") == "error":
        _msg(f"[error] {status.get('message')}")
    elif progress:
        _msg(f"[{progress['step']:3d}%] {status.get('message')}")
    else:
        _msg(f"[    ] {status.get('message')}")


def _export_outputs(outputs: dict, directory: str) -> list:
    """Copy asset outputs out of the local store; returns the written paths."""
    from .assets import ASSET_SCHEME, get_store

    store = get_store()
    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    written = []
    for values in outputs.values():
        for value in values:
            if not isinstance(value, str) or not value.startswith(ASSET_SCHEME):
                continue
            source = store.path_for(value)
            if source is None:
                continue
            dest = target / source.name
            shutil.copyfile(source, dest)
            written.append(str(dest))
    return written


# ─── Commands ────────────────────────────────────────────────────────


def cmd_list(args):
    """List registered nodes."""
    from . import model_registry

    pretty = args.pretty or _is_pretty()
    nodes = model_registry.list_nodes(args.category)
    _output({"nodes": nodes, "count": len(nodes)}, pretty)
    return EXIT_OK


def cmd_categories(args):
    """List node categories."""
    from . import model_registry

    _output({"categories": model_registry.list_categories()}, args.pretty or _is_pretty())
    return EXIT_OK


def cmd_schema(args):
    """Show a node's inputs, parameters and outputs."""
    from . import model_registry

    pretty = args.pretty or _is_pretty()
    result = model_registry.get_node_schema(args.uid)
    _output(result, pretty)
    if result.get("isError"):
        return _exit_code_for_error(_classify_error(result))
    return EXIT_OK


def cmd_estimate(args):
    """Expected duration for a parameter set."""
    from . import model_registry
    from .params import normalize_params

    pretty = args.pretty or _is_pretty()
    spec = model_registry.get_node_spec(args.uid)
    if isinstance(spec, dict):
        _output(spec, pretty)
        return EXIT_NOT_FOUND

    params = normalize_params(spec, _parse_json_arg(args.params))
    counts = _parse_json_arg(args.counts)
    _output(
        {
            "uid": args.uid,
            "endpoint": spec.resolve_endpoint(params),
            "expected_ms": model_registry.estimate_expected_ms(spec, params, counts),
        },
        pretty,
    )
    return EXIT_OK


def cmd_run(args):
    """Run a node and wait for its outputs."""
    from .errors import NodeExecutionError
    from .execution import execute_node

    pretty = args.pretty or _is_pretty()
    inputs = _parse_json_arg(args.inputs)
    params = _parse_json_arg(args.params)

    try:
        outputs = execute_node(args.uid, inputs, params, context=None if args.quiet else _print_status)
    except NodeExecutionError as e:
        result = e.to_dict()
        _output(result, pretty)
        return _exit_code_for_error(_classify_error(result))

    result = {"uid": args.uid, "outputs": outputs}
    if args.output:
        result["files"] = _export_outputs(outputs, args.output)
    _output(result, pretty)
    return EXIT_OK


def cmd_assets_list(args):
    """List assets in the local store."""
    from .assets import get_store

    pretty = args.pretty or _is_pretty()
    assets = get_store().list(asset_type=args.type)[: args.limit]
    _output({"assets": assets, "count": len(assets)}, pretty)
    return EXIT_OK


# ─── Parser ──────────────────────────────────────────────────────────


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add --pretty flag."""
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="falgraph",
        description="falgraph CLI - hosted generative media nodes",
    )
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    parser.add_argument("--asset-dir", help="Local asset store directory (overrides FALGRAPH_ASSET_DIR)")
    sub = parser.add_subparsers(dest="command", help="Available commands")

    # ── list ──
    p_list = sub.add_parser("list", help="List registered nodes")
    p_list.add_argument("--category", "-c", help="Only nodes in this category")
    _add_common_args(p_list)
    p_list.set_defaults(func=cmd_list)

    # ── categories ──
    p_cat = sub.add_parser("categories", help="List node categories")
    _add_common_args(p_cat)
    p_cat.set_defaults(func=cmd_categories)

    # ── schema ──
    p_schema = sub.add_parser("schema", help="Show a node's schema")
    p_schema.add_argument("uid", help="Node uid")
    _add_common_args(p_schema)
    p_schema.set_defaults(func=cmd_schema)

    # ── estimate ──
    p_est = sub.add_parser("estimate", help="Expected job duration")
    p_est.add_argument("uid", help="Node uid")
    p_est.add_argument("--params", help="JSON parameters (or @file.json)")
    p_est.add_argument("--counts", help='Connected inputs per group, e.g. {"images": 3}')
    _add_common_args(p_est)
    p_est.set_defaults(func=cmd_estimate)

    # ── run ──
    p_run = sub.add_parser("run", help="Run a node and wait for outputs")
    p_run.add_argument("uid", help="Node uid")
    p_run.add_argument("--inputs", "-i", help="JSON input slot values (or @file.json)")
    p_run.add_argument("--params", "-p", help="JSON parameters (or @file.json)")
    p_run.add_argument("--output", "-o", help="Copy media outputs into this directory")
    p_run.add_argument("--quiet", "-q", action="store_true", help="No progress on stderr")
    _add_common_args(p_run)
    p_run.set_defaults(func=cmd_run)

    # ── assets ──
    p_assets = sub.add_parser("assets", help="Local asset store")
    assets_sub = p_assets.add_subparsers(dest="assets_command")
    p_assets_list = assets_sub.add_parser("list", help="List stored assets")
    p_assets_list.add_argument("--type", help="image, video, mesh or file")
    p_assets_list.add_argument("--limit", type=int, default=50)
    _add_common_args(p_assets_list)
    p_assets_list.set_defaults(func=cmd_assets_list)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.asset_dir:
        os.environ["FALGRAPH_ASSET_DIR"] = args.asset_dir

    if not args.command:
        parser.print_help()
        sys.exit(EXIT_ERROR)

    func = getattr(args, "func", None)
    if func is None:
        parser.parse_args([args.command, "--help"])
        sys.exit(EXIT_ERROR)

    try:
        exit_code = func(args)
        sys.exit(exit_code or EXIT_OK)
    except json.JSONDecodeError as e:
        _output(_error(f"Invalid JSON: {e}", "INVALID_PARAMS"), args.pretty or _is_pretty())
        sys.exit(EXIT_VALIDATION)
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        _output(_error(str(e), "CLI_ERROR"), args.pretty or _is_pretty())
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
