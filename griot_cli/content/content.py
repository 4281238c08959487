from griot_cli.content import upload


def register(subparsers) -> None:
    parser = subparsers.add_parser("content", help="Manage content")
    commands = parser.add_subparsers(title="commands", metavar="COMMAND")
    upload.register(commands)
    parser.set_defaults(parser=parser)
