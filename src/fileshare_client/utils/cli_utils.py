from rich.console import Console


def get_rich_console() -> Console: return Console(stderr=True)


def human_size(size: int) -> str:
    """1536 -> '1.50 KB'. Matches the sizes shown in the admin list."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} GB"
