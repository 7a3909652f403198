class SkipguardError(Exception):
    pass


class InvalidInputs(SkipguardError):
    name: str
    raw_value: str

    def __init__(self, *args, **kwargs):
        self.name = kwargs.pop("name")
        self.raw_value = kwargs.pop("raw_value", "")
        super().__init__(*args, **kwargs)

    def __str__(self) -> str:
        return f"Invalid value for input '{self.name}': {super().__str__()}"


class MissingIdentity(SkipguardError):
    """The current run cannot be compared safely against other runs."""


class LedgerFormatError(SkipguardError):
    pass
