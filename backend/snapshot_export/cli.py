"""
命令行入口

用法：
    snapshot-export export snapshot.json -o report.pdf [--root pdf-content] [--config runtime.yaml]
    snapshot-export capture http://localhost:3000 -o snapshot.json [--root pdf-content]

失败时输出单条可读消息并以非零状态退出。
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from .config import get_config, reload_config, setup_logging
from .dom import capture_snapshot, load_snapshot, save_snapshot
from .interfaces import SnapshotExportError
from .pipeline import ExportManager, format_error_message


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="snapshot-export", description="可视树快照 → 分页PDF")
    ap.add_argument("--config", default=None, help="运行期配置 YAML（默认 config/snapshot_runtime.yaml）")
    sub = ap.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="由快照文件导出PDF")
    export.add_argument("snapshot", help="快照文件（.json / .yaml）")
    export.add_argument("-o", "--output", default=None, help="输出PDF路径（默认 output_dir/file_name）")
    export.add_argument("--root", default=None, help="根节点 id（默认取配置）")

    capture = sub.add_parser("capture", help="采集页面快照（需要 playwright）")
    capture.add_argument("url", help="页面地址")
    capture.add_argument("-o", "--output", required=True, help="快照输出路径（JSON）")
    capture.add_argument("--root", default=None, help="根节点 id（默认取配置）")
    capture.add_argument("--width", type=int, default=1280, help="视口宽度")
    capture.add_argument("--height", type=int, default=800, help="视口高度")
    return ap


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    config = reload_config(args.config) if args.config else get_config()
    setup_logging(config)

    if args.command == "capture":
        try:
            data = capture_snapshot(
                args.url,
                args.root or config.export.root_key,
                viewport=(args.width, args.height),
            )
        except SnapshotExportError as e:
            print(format_error_message(e), file=sys.stderr)
            return 1
        path = save_snapshot(data, args.output)
        print(f"快照已保存: {path}")
        return 0

    try:
        document = load_snapshot(args.snapshot)
    except (FileNotFoundError, SnapshotExportError) as e:
        print(format_error_message(e), file=sys.stderr)
        return 1

    manager = ExportManager(config=config)
    result = asyncio.run(manager.export(document, args.root, args.output))
    if not result.ok:
        print(result.message, file=sys.stderr)
        return 1

    for flag in result.job.flags:
        print(f"警告: {flag}", file=sys.stderr)
    print(result.message)
    return 0


if __name__ == "__main__":
    sys.exit(main())
