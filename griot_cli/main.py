import argparse
import sys

from content_service.observability import configure_logging
from griot_cli.content import content


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="griot", description="griot command line client")
    parser.set_defaults(parser=parser)
    commands = parser.add_subparsers(title="commands", metavar="COMMAND")
    content.register(commands)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    run = getattr(args, "run", None)
    if run is None:
        args.parser.print_help(sys.stderr)
        return 2

    configure_logging()
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
