from abc import ABC, abstractmethod
from typing import Callable, Generic, NoReturn, TypeVar

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):
    """A stored record that may be absent."""

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def get_or_raise(self, error: Callable[[], Exception]) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass

    def is_none(self) -> bool:
        return not self.is_some()


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> Maybe[U]:
        return Some(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def get_or_raise(self, error: Callable[[], Exception]) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> Maybe[U]:
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default

    def get_or_raise(self, error: Callable[[], Exception]) -> NoReturn:
        raise error()

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):
    """Outcome of a validation step: Left carries the problem, Right the value."""

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass

    @abstractmethod
    def get_or_raise(self, error: Callable[[E], Exception]) -> T:
        pass

    def is_left(self) -> bool:
        return not self.is_right()


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def bind(self, f: Callable[[T], Either[E, U]]) -> Either[E, U]:
        return f(self._value)

    def is_right(self) -> bool:
        return True

    def get_error(self) -> E:
        raise ValueError("Right carries no error")

    def get_or_raise(self, error: Callable[[E], Exception]) -> T:
        return self._value

    def __repr__(self) -> str:
        return f"Right({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def bind(self, f: Callable[[T], Either[E, U]]) -> Either[E, U]:
        return Left(self._error)

    def is_right(self) -> bool:
        return False

    def get_error(self) -> E:
        return self._error

    def get_or_raise(self, error: Callable[[E], Exception]) -> NoReturn:
        raise error(self._error)

    def __repr__(self) -> str:
        return f"Left({self._error!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error
