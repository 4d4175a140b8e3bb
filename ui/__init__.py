"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    STATUS_TEXT,
    GaugeDisplay,
    console,
    err_console,
    print_final_results,
    print_header,
    result_table,
)
from .output import (
    append_csv,
    create_result_json,
    format_csv_header,
    format_csv_row,
    format_text_result,
    save_json,
)

__all__ = [
    "GaugeDisplay",
    "STATUS_TEXT",
    "append_csv",
    "console",
    "create_result_json",
    "err_console",
    "format_csv_header",
    "format_csv_row",
    "format_text_result",
    "print_final_results",
    "print_header",
    "result_table",
    "save_json",
]
