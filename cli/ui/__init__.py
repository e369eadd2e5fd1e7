# cli/ui - 콘솔 출력 (rich)

from .console import (
    console,
    err_console,
    get_logger,
    get_progress,
    print_error,
    print_error_tree,
    print_stat_panels,
    print_success,
    print_table,
    print_warning,
)

__all__: list[str] = [
    "console",
    "err_console",
    "get_logger",
    "get_progress",
    "print_error",
    "print_error_tree",
    "print_stat_panels",
    "print_success",
    "print_table",
    "print_warning",
]
