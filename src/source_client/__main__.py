"""Entry point for running the client as a module: python -m source_client"""

from source_client.cli.main import cli


def main():
    """Run the Source client CLI."""
    cli(prog_name="source-client")


if __name__ == "__main__":
    main()
