from rich.console import Console

# Shared Rich console for status lines, spinners, tables and panels
console = Console()
