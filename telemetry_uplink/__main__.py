import sys

from . import run


def cli() -> None:
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(130)


if __name__ == "__main__":
    cli()
