from collections.abc import Callable, Iterable

Validator = Callable[[], None]


class FlagRequiredError(ValueError):
    def __init__(self) -> None:
        super().__init__("flag is required")


class MustBeAFileError(ValueError):
    def __init__(self) -> None:
        super().__init__("must be a file")


class InvalidFlagError(Exception):
    def __init__(self, name: str, cause: BaseException) -> None:
        super().__init__(f"invalid flag --{name}: {cause}")
        self.name = name
        self.cause = cause
        self.__cause__ = cause


def validate_all(validators: Iterable[Validator]) -> None:
    """Run every validator and raise all failures together."""
    errors: list[InvalidFlagError] = []
    for validate in validators:
        try:
            validate()
        except InvalidFlagError as exc:
            errors.append(exc)
    if len(errors) == 1:
        raise errors[0]
    if errors:
        raise ExceptionGroup("invalid flags", errors)


def format_errors(exc: BaseException) -> list[str]:
    if isinstance(exc, BaseExceptionGroup):
        return [line for inner in exc.exceptions for line in format_errors(inner)]
    return [str(exc)]
