"""
    Definitions of essential Parser classes and combinators
"""
import re
import sys
import threading
from abc import abstractmethod
from typing import Any, Callable, Generic, Iterable, List, NamedTuple, Optional, Sequence, TypeVar, Union

IS_DEBUG = False

T = TypeVar('T')
T2 = TypeVar('T2')


class ParserError(Exception):
    """ Base class of parser errors """

class ParseFailed(ParserError):
    """ No parse on the given input """

class NotAllCharsUsed(ParserError):
    """ Not all given string used Exception """
    def __init__(self, msg:str, value:Any=None, remainder:str=''):
        ParserError.__init__(self, msg)
        self.value = value
        self.remainder = remainder

class LazyParserNotReady(ParserError):
    """ Lazy parser invoked while its builder is still running """


class ParseResult(NamedTuple):
    """ A value made by a successful parse and the unconsumed input """
    value: Any
    remainder: str

Results = List[ParseResult]


class ParserABC(Generic[T]):
    """ Parser ABC
        A parser is a function from the remaining input (cursor)
        to zero or more parse results. No result means no parse.
    """

    @abstractmethod
    def parse(self, cur:str) -> Results:
        """ Parse a given cursor """
        raise NotImplementedError()

    def map(self, f:Callable[[T], T2]) -> 'Parser[T2]':
        """ Transform each result value (remainders are kept) """
        def _parse(cur:str) -> Results:
            return [ParseResult(f(res.value), res.remainder) for res in self.parse(cur)]
        return Parser(_parse, name='map')

    def chain(self, f:Callable[[T], 'ParserABC[T2]']) -> 'Parser[T2]':
        """ Run a parser made from each result value on its remainder
            (Monadic bind)
        """
        def _parse(cur:str) -> Results:
            results = []
            for value, remainder in self.parse(cur):
                results.extend(f(value).parse(remainder))
            return results
        return Parser(_parse, name='chain')

    def many(self) -> 'Parser[List[T]]':
        """ Repeat zero or more times (never fails) """
        def _parse(cur:str) -> Results:
            values = []
            while results := self.parse(cur):
                value, remainder = results[0]
                values.append(value)
                is_zero_width = len(remainder) >= len(cur)
                cur = remainder
                if is_zero_width: # would repeat forever
                    break
            return [ParseResult(values, cur)]
        return Parser(_parse, name='many')

    def some(self) -> 'Parser[List[T]]':
        """ Repeat one or more times """
        return self.many().chain(lambda values: lift(values) if values else fail())

    def tryparse(self, text:str, *, use_all:bool=True) -> T:
        """ Parse a given string and returns the first result value
            If use_all options is True (default),
            assumes all characters on the string are used for parsing
        """
        try:
            results = self.parse(text)
        except RecursionError as e:
            self.debug('tryparse: recursion limit on', self)
            raise ParseFailed('Failed to parse on %r: nesting too deep' % self) from e
        if not results:
            self.debug('tryparse: no parse on', self)
            raise ParseFailed('Failed to parse on %r' % self)
        value, remainder = results[0]
        if use_all and remainder:
            self.debug('tryparse: remainder', repr(remainder))
            raise NotAllCharsUsed(
                'Failed to parse, as there is remainder: %r' % remainder,
                value=value, remainder=remainder,
            )
        return value

    def debug(self, *args, **kwargs):
        """ Print a debug output """
        if IS_DEBUG:
            print(*args, **kwargs, file=sys.stderr)


class Parser(ParserABC[T]):
    """ Parser made from a plain function """
    def __init__(self, fn:Callable[[str], Results], *, name:Optional[str]=None):
        self.fn = fn
        self.name = name
        self.parse = fn # type: ignore # call the function without a wrapper frame

    def parse(self, cur:str) -> Results:
        return self.fn(cur)

    def __repr__(self) -> str:
        return '<Parser:%s>' % (self.name or getattr(self.fn, '__name__', '?'))


class Lazy(ParserABC[T]):
    """ Parser built on the first use (memoized)
        Used for recursive rules which can not be built eagerly
    """
    def __init__(self, builder:Callable[[], ParserABC[T]], *, name:Optional[str]=None):
        self.builder = builder
        self.name = name
        self.parser:Optional[ParserABC[T]] = None
        self._building = False
        self._lock = threading.RLock()

    @property
    def is_built(self) -> bool:
        return self.parser is not None

    def get(self) -> ParserABC[T]:
        """ Returns the built parser (builds it at most once) """
        if self.parser is None:
            with self._lock:
                if self.parser is None:
                    if self._building:
                        raise LazyParserNotReady('%r is invoked while being built' % self)
                    self._building = True
                    try:
                        self.debug('Lazy: build', self)
                        self.parser = self.builder()
                        self.parse = self.parser.parse # type: ignore
                    finally:
                        self._building = False
        return self.parser

    def parse(self, cur:str) -> Results:
        return self.get().parse(cur)

    def __repr__(self) -> str:
        return '<Lazy:%s>' % (self.name or getattr(self.builder, '__name__', '?'))


class First(ParserABC[T]):
    """ Ordered choice
        Returns the results of the first parser which makes any result.
        Every alternative is tried on the original cursor.
    """
    def __init__(self, *parsers:ParserABC[T]):
        self.parsers = list(parsers)

    def parse(self, cur:str) -> Results:
        for i, parser in enumerate(self.parsers):
            if results := parser.parse(cur):
                self.debug('First: alternative #%d' % i, parser)
                return results
        return []

    def add(self, parser:ParserABC[T]):
        """ Add a new alternative to this choice """
        self.parsers.append(parser)

    def __repr__(self) -> str:
        return '<First:%s>' % '|'.join(map(repr, self.parsers))


def lift(value:T) -> Parser[T]:
    """ Always succeeds without consuming input """
    return Parser(lambda cur: [ParseResult(value, cur)], name='lift')

def fail() -> Parser[Any]:
    """ Never succeeds """
    return Parser(lambda cur: [], name='fail')

def lazy(builder:Callable[[], ParserABC[T]], *, name:Optional[str]=None) -> Lazy[T]:
    return Lazy(builder, name=name)

def first(parsers:Iterable[ParserABC[T]]) -> First[T]:
    return First(*parsers)

def pipe(parsers:Sequence[ParserABC]) -> Callable[[Callable[[list], ParserABC[T]]], ParserABC[T]]:
    """ Sequence parsers left to right
        Usage: pipe([p1, p2, ...])(lambda values: lift(...))
        The handler receives a list of values of each parser
        and makes the parser for the rest of input.
    """
    parsers = list(parsers)

    def with_handler(handler:Callable[[list], ParserABC[T]]) -> ParserABC[T]:
        def _parse(cur:str) -> Results:
            # Values so far and the remainder, for each result (as chain does)
            states = [([], cur)]
            for parser in parsers:
                next_states = []
                for values, rest in states:
                    for value, remainder in parser.parse(rest):
                        next_states.append(([*values, value], remainder))
                if not next_states:
                    return []
                states = next_states

            results = []
            for values, rest in states:
                results.extend(handler(values).parse(rest))
            return results
        return Parser(_parse, name='pipe')

    return with_handler

def join(parser:ParserABC[Sequence[str]], sep:str) -> Parser[str]:
    """ Join a sequence of strings into one string """
    return parser.map(sep.join)

def join_p(parsers:Sequence[ParserABC[str]], sep:str) -> ParserABC[str]:
    """ Sequence parsers and join their strings """
    return pipe(parsers)(lambda values: lift(sep.join(values)))


def _one_char(cur:str) -> Results:
    if not cur:
        return []
    return [ParseResult(cur[0], cur[1:])]

one_char:Parser[str] = Parser(_one_char, name='one_char')

def check(predicate:Callable[[str], bool]) -> Parser[str]:
    """ One character which satisfies the predicate """
    return one_char.chain(lambda ch: lift(ch) if predicate(ch) else fail())

def char(ch:str) -> Parser[str]:
    return check(lambda _ch: _ch == ch)

def literal(s:str) -> Parser[str]:
    """ Exact prefix string """
    def _parse(cur:str) -> Results:
        if cur.startswith(s):
            return [ParseResult(s, cur[len(s):])]
        return []
    return Parser(_parse, name='literal:%s' % s)

def regex(pattern:Union[str, re.Pattern], group:Union[int, str]=0, flags:int=0) -> Parser[str]:
    """ Leftmost match of the pattern anywhere in the cursor
        (not only at the cursor start, unless the pattern starts with '^')
        Returns the given group, and the remainder after the whole match.
    """
    compiled = re.compile(pattern, flags) if isinstance(pattern, str) else pattern

    def _parse(cur:str) -> Results:
        m = compiled.search(cur)
        if m is None:
            return []
        value = m.group(group)
        return [ParseResult('' if value is None else value, cur[m.end():])]

    return Parser(_parse, name='regex:%s' % compiled.pattern)


digit:Parser[str] = check(lambda ch: '0' <= ch <= '9')
letter:Parser[str] = check(lambda ch: 'a' <= ch <= 'z' or 'A' <= ch <= 'Z')
digits:Parser[str] = join(digit.many(), '')
natural_num:Parser[int] = join(digit.some(), '').map(int)
