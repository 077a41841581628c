# scripts/smoke.py
"""
Smoke Test Script for the tracelens pipeline.

Usage
-----
1. Run against a tiny synthetic trace built in a temp directory:
    $ uv run python scripts/smoke.py

2. Run against a real archive (or extracted directory):
    $ uv run python scripts/smoke.py --trace test-results/login-test/trace.zip
"""

import argparse
import json
import logging
import sys
import tempfile
import zipfile
from pathlib import Path

from dotenv import load_dotenv

from tracelens.core.contracts.queries import DiagnoseOptions
from tracelens.core.errors import TraceLensError
from tracelens.diagnostics.engine import diagnose
from tracelens.pipelines.inspection import open_trace
from tracelens.reports import projections
from tracelens.trace.loader import Invocation

# --------------------------------------------------------------------------- #
# Environment Setup
# --------------------------------------------------------------------------- #
env_path = Path(".env")
if env_path.exists():
    load_dotenv(env_path)
    print("✅ Loaded .env file")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

# --------------------------------------------------------------------------- #
# Test Data
# --------------------------------------------------------------------------- #
SYNTHETIC_EVENTS = [
    {"type": "context-options", "monotonicTime": 1000, "title": "smoke: login"},
    {"type": "before", "callId": "c1", "startTime": 1010, "apiName": "page.goto",
     "params": {"url": "https://example.test/login"}},
    {"type": "after", "callId": "c1", "endTime": 1150},
    {"type": "screencast-frame", "sha1": "frame-1.jpeg", "timestamp": 1160,
     "width": 1280, "height": 720},
    {"type": "console", "time": 1200, "messageType": "error",
     "text": "Failed to load resource: the server responded with a status of 500"},
    {"type": "before", "callId": "c2", "startTime": 1300, "apiName": "locator.click",
     "params": {"selector": "#submit"}},
]


def build_synthetic_archive(root: Path) -> Path:
    """Write ``<root>/smoke-test/trace.zip`` holding one browser shard."""
    test_dir = root / "smoke-test"
    test_dir.mkdir(parents=True)
    archive = test_dir / "trace.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("test.trace", "")
        zf.writestr("0-trace.trace", "".join(json.dumps(e) + "\n" for e in SYNTHETIC_EVENTS))
    return archive


def main() -> None:
    """Execute the smoke test workflow."""
    parser = argparse.ArgumentParser(description="Run tracelens Smoke Test")
    parser.add_argument("--trace", "-t", type=str, help="Path to trace.zip or extracted dir")
    args = parser.parse_args()

    with tempfile.TemporaryDirectory() as tmp:
        # 1. Prepare Input
        if args.trace:
            trace_path = Path(args.trace)
            print(f"\n📂 Using trace: {trace_path}")
        else:
            trace_path = build_synthetic_archive(Path(tmp))
            print(f"\n📝 Using synthetic trace: {trace_path}")

        # 2. Execution Phase
        try:
            session = open_trace(trace_path, Invocation(cwd=Path.cwd()))
        except TraceLensError as exc:
            print(f"\n❌ Could not open trace: {exc}")
            return

        ctx = session.context
        report = diagnose(ctx, DiagnoseOptions(verbose=True))

        # 3. Inspection Phase
        print("\n" + "=" * 60)
        print(f"✅ Loaded {ctx.test_name!r} ({ctx.verdict})")
        print("=" * 60)

        summary = projections.summary(ctx)
        print(f"\n⏱️  Duration: {summary.duration}")
        print(f"📊 Counts: {summary.counts.model_dump(by_alias=True)}")

        print("\n🧭 Timeline:")
        for entry in projections.timeline(ctx):
            print(f"  {entry.time:>10.0f}  {entry.type:<14} {entry.description}")

        print(f"\n🩺 {report.summary}")
        for issue in report.issues:
            print(f"  - [{issue.category}] @ {issue.timestamp:.0f}: {issue.snippet[:80]}")
        print(f"\n💡 {report.primary_diagnosis.remedy}")


if __name__ == "__main__":
    main()
