"""
cli/ui/console.py - Rich 콘솔 출력

- console: 결과 출력 (stdout)
- err_console: 실행 로그 (stderr, JSON 출력과 분리)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from rich.columns import Columns
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.tree import Tree

# requests/boto3 하위 로그는 경고 이상만
logging.getLogger("botocore").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)

SYMBOL_SUCCESS = "✓"
SYMBOL_ERROR = "✗"
SYMBOL_WARNING = "!"


def get_console(stderr: bool = False) -> Console:
    return Console(stderr=stderr, highlight=True, soft_wrap=True, markup=True)


console = get_console()
err_console = get_console(stderr=True)


def get_progress() -> Progress:
    """클러스터 평가 진행 표시 (완료 후 지워짐)"""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """stderr Rich 핸들러를 붙인 logger 반환

    이미 핸들러가 있으면 레벨만 갱신합니다.
    루트 logger로 전파하지 않으므로 basicConfig 핸들러와 중복 출력되지 않습니다.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(console=err_console, rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger


def print_success(message: str) -> None:
    console.print(f"[green]{SYMBOL_SUCCESS} {message}[/green]")


def print_error(message: str) -> None:
    console.print(f"[red]{SYMBOL_ERROR} {message}[/red]")


def print_warning(message: str) -> None:
    console.print(f"[yellow]{SYMBOL_WARNING} {message}[/yellow]")


def print_table(title: str, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*[str(cell) for cell in row])
    console.print(table)


def print_error_tree(errors: Mapping[str, Sequence[str]], title: str = "오류 요약", limit: int = 3) -> None:
    """카테고리별 에러 트리 출력

    Args:
        errors: 카테고리 → 에러 설명 목록
        title: 트리 루트 제목
        limit: 카테고리당 표시할 최대 항목 수

    Example:
        print_error_tree({
            "throttling": ["dev/Cluster0: HTTP 429"],
            "access_denied": ["prod (list_clusters): 403"],
        })
    """
    tree = Tree(f"[bold yellow]{title}[/bold yellow]")
    for category in sorted(errors):
        items = errors[category]
        branch = tree.add(f"[red]{category}[/red] ({len(items)}건)")
        for item in items[:limit]:
            branch.add(f"[dim]{item}[/dim]")
        if len(items) > limit:
            branch.add(f"[dim]... 외 {len(items) - limit}건[/dim]")
    console.print(tree)


def print_stat_panels(stats: Sequence[tuple[str, Any, str]]) -> None:
    """(제목, 값, 스타일) 통계를 같은 너비 패널로 나란히 출력"""
    panels = [Panel(f"[{style}]{value}[/{style}]", title=title) for title, value, style in stats]
    console.print(Columns(panels, expand=True, equal=True))
