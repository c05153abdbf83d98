"""Allow ``python -m remote_runner``."""

from remote_runner.main import cli

if __name__ == "__main__":
    cli()
