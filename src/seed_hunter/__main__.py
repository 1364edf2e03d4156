"""Main entry point for the seed_hunter package."""
from seed_hunter.cli import cli


def main():
    """Main entry point function."""
    cli()


if __name__ == "__main__":
    main()
