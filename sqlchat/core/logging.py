import logging
from rich.logging import RichHandler
from rich.console import Console

# Shared console instance to ensure consistent output handling
console = Console()


def setup_logging(level: int = logging.INFO):
    """
    Configure global logging with RichHandler.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                show_time=True,
                show_path=False
            )
        ],
        force=True
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
