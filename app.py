import os
import logging
from typing import Any, Dict, List, Optional

from flask import Flask, render_template, request, jsonify, abort

from protoknow import knowledge, verification
from protoknow.ast_nodes import Protocol, pretty
from protoknow.config import load_policy
from protoknow.errors import ProtocolSyntaxError
from protoknow.logging_utils import setup_logging
from protoknow.parser import SYNTAX_HELP, parse
from protoknow.policy import NamingPolicy

APP_DIR = os.path.dirname(os.path.abspath(__file__))
MAX_SOURCE_CHARS = 200_000

app = Flask(__name__, template_folder=os.path.join(APP_DIR, "templates"))
app.secret_key = "local-dev"
app.config["MAX_CONTENT_LENGTH"] = 4 * MAX_SOURCE_CHARS

logger = logging.getLogger(__name__)


# ------------------------------ analysis glue ------------------------------

class PolicyLoadError(RuntimeError):
    pass


def _policy() -> NamingPolicy:
    policy = app.config.get("NAMING_POLICY")
    if policy is None:
        try:
            policy = load_policy()
        except (OSError, ValueError) as e:
            logger.error("Cannot load naming policy: %s", e)
            raise PolicyLoadError(f"Cannot load naming policy: {e}") from e
        app.config["NAMING_POLICY"] = policy
    return policy


def _run_analysis(proto: Protocol) -> Dict[str, Any]:
    report = knowledge.analyze(proto, _policy())
    return {
        "report": report.format(),
        "knowledge": report.to_dict(),
        "warnings": verification.analyze(proto),
        "ast": pretty(proto),
        "protocol": proto.to_dict(),
    }


def _check_source(source: Optional[str]) -> str:
    if source is None or not source.strip():
        abort(400, "Missing protocol source")
    if len(source) > MAX_SOURCE_CHARS:
        abort(413, f"Protocol source longer than {MAX_SOURCE_CHARS} characters")
    return source


# ------------------------------ routes ------------------------------

@app.errorhandler(PolicyLoadError)
def policy_error(e):
    if request.path.startswith("/api/"):
        return jsonify({"ok": False, "error": {"message": str(e)}}), 500
    source = request.form.get("source", "")
    return render_template("index.html", source=source, result=None, error=str(e), syntax=SYNTAX_HELP), 500


@app.route("/", methods=["GET"])
def index():
    return render_template("index.html", source="", result=None, error=None, syntax=SYNTAX_HELP)


@app.route("/analyze", methods=["POST"])
def analyze_form():
    source = _check_source(request.form.get("source"))
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    try:
        result = _run_analysis(parse(source))
    except ProtocolSyntaxError as e:
        error = str(e)
    status = 400 if error else 200
    return render_template("index.html", source=source, result=result, error=error, syntax=SYNTAX_HELP), status


@app.route("/api/analyze", methods=["POST"])
def api_analyze():
    payload = request.get_json(silent=True)
    source = payload.get("source") if isinstance(payload, dict) else None
    if not isinstance(source, str) or not source.strip():
        return jsonify({"ok": False, "error": {"message": "Missing protocol source"}}), 400
    if len(source) > MAX_SOURCE_CHARS:
        return jsonify({"ok": False, "error": {"message": "Protocol source too long"}}), 413
    try:
        proto = parse(source)
    except ProtocolSyntaxError as e:
        logger.info("Rejected protocol: %s", e)
        return jsonify({"ok": False, "error": e.to_dict()}), 400
    out = _run_analysis(proto)
    out["ok"] = True
    return jsonify(out)


@app.route("/api/syntax", methods=["GET"])
def api_syntax():
    return jsonify({"ok": True, "text": SYNTAX_HELP})


def main(argv: Optional[List[str]] = None):
    import argparse
    ap = argparse.ArgumentParser()
    ap.add_argument("--debug", action="store_true")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=5000)
    ap.add_argument("--policy", default=None, help="JSON naming policy")
    args = ap.parse_args(argv)
    setup_logging(console_level=logging.DEBUG if args.debug else logging.INFO)
    app.config["NAMING_POLICY"] = load_policy(args.policy)
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
