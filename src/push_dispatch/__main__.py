"""Entry point for ``python -m push_dispatch`` and the ``push-dispatch`` script."""

from __future__ import annotations

from push_dispatch.app.cli import cli

__all__ = ["main"]


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
