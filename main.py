# -*- coding: utf-8 -*-

from __future__ import annotations

import sys
from pathlib import Path


def _bootstrap_repo_root() -> None:
    # 包内统一用 `src.xxx` / `ai_providers` 导入，需要仓库根目录在 sys.path 上
    try:
        repo_root = Path(__file__).resolve().parent
        s = str(repo_root)
        if s not in sys.path:
            sys.path.insert(0, s)
    except Exception:
        pass


def main() -> int:
    _bootstrap_repo_root()
    # src/cli.py 里实现了完整参数解析
    from src.cli import main as real_main  # type: ignore

    return int(real_main())


if __name__ == "__main__":
    raise SystemExit(main())
