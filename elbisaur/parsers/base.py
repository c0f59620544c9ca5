from abc import ABC, abstractmethod
from typing import Any, Iterator

from elbisaur.listen import Listen


class BaseListenParser(ABC):
    """Abstract base class for parsers which turn an external format into listens.

    A parser is configured once and can parse any number of inputs. Every call
    of `parse` returns a new lazy iterator which is exhausted at the end of
    the input or aborted with a `FormatError`.
    """

    #: Name which identifies the parser as submission client.
    name = "elbisaur"

    @abstractmethod
    def parse(self, input: Any) -> Iterator[Listen]:
        """ Parse the given input into listens.

        Args:
            input: a text or binary stream, depending on the format

        Returns: iterator of listens in input order
        """
        pass

    def __call__(self, input: Any) -> Iterator[Listen]:
        return self.parse(input)
