"""
    JSON grammar built on the parser combinators
"""
import re
from typing import Any, Optional

from combjson.parser import ParserABC, char, check, digits, fail, first, join, join_p, lazy, lift, literal, pipe, regex

# Escaped characters (except unicode ones) and their values
ESCAPE_CHARS = {
    '"' : '"',
    '\\': '\\',
    'b' : '\b',
    'f' : '\f',
    'n' : '\n',
    'r' : '\r',
    't' : '\t',
}

NUMBER_PATTERN = re.compile(r'-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?')


def to_number(numstr:str) -> ParserABC[float]:
    """ Make a number from an accumulated numeric literal (or fail)
        Literals out of the float range become +-inf, as `json.loads` does.
    """
    if not NUMBER_PATTERN.fullmatch(numstr):
        return fail()
    try:
        return lift(float(numstr))
    except ValueError:
        return fail()

def combine_surrogates(s:str) -> str:
    """ Combine each valid pair of UTF-16 surrogates into one character
        (Unpaired surrogates are kept as they are)
    """
    return s.encode('utf-16-le', 'surrogatepass').decode('utf-16-le', 'surrogatepass')


class JSONGrammar():
    """ Set of JSON grammar rules
        Each rule is a parser which returns the JSON value and the remainder.

        strict_separators:
            If False (default), every item in arrays and objects may be
            followed by an optional comma (so `[1,2,]` and `[1 2]` are accepted).
            If True, items must be separated by exactly one comma.
        combine_surrogates:
            If False (default), each `\\uXXXX` escape is decoded into its own
            UTF-16 code unit. If True, surrogate pairs are combined.
    """
    def __init__(self, *, strict_separators:bool=False, combine_surrogates:bool=False):
        self.strict_separators = strict_separators
        self.combine_surrogates = combine_surrogates

        self.whitespace = lazy(lambda: regex(r'^[ \t\n\r]*'), name='whitespace')
        self.number     = lazy(self.make_number, name='number')
        self.string     = lazy(self.make_string, name='string')
        self.true       = literal('true').map(lambda _: True)
        self.false      = literal('false').map(lambda _: False)
        self.null       = literal('null').map(lambda _: None)
        self.array      = lazy(self.make_array, name='array')
        self.object     = lazy(self.make_object, name='object')
        self.value      = lazy(self.make_value, name='value')

    def make_number(self) -> ParserABC[float]:
        one_to_nine = check(lambda ch: '1' <= ch <= '9')
        zero = char('0')
        fraction = join_p([literal('.'), digits], '')
        exponent = join_p([
            first([literal('e'), literal('E')]),
            first([literal('+'), literal('-'), lift('')]),
            digits,
        ], '')

        # Once a fraction or an exponent is started, it must be complete
        return join_p([
            first([literal('-'), lift('')]),
            first([zero, join_p([one_to_nine, digits], '')]),
            first([fraction, lift('')]),
            first([exponent, lift('')]),
        ], '').chain(to_number)

    def make_string(self) -> ParserABC[str]:
        non_control_chars = regex(r'^[^"\\\x00-\x1f]+')
        solidus = literal('\\/').map(lambda _: '/')
        escapes = pipe([
            literal('\\'),
            first([literal(ch) for ch in ESCAPE_CHARS]),
        ])(lambda values: lift(ESCAPE_CHARS[values[1]]))
        unicode = pipe([
            literal('\\u'),
            regex(r'^[0-9a-fA-F]{4}'),
        ])(lambda values: lift(chr(int(values[1], 16))))

        body = join(first([non_control_chars, solidus, escapes, unicode]).some(), '')
        if self.combine_surrogates:
            body = body.map(combine_surrogates)

        non_empty_string = pipe([literal('"'), body, literal('"')])(lambda values: lift(values[1]))
        empty_string = pipe([literal('"'), literal('"')])(lambda _: lift(''))
        return first([empty_string, non_empty_string])

    def make_items(self, item:ParserABC) -> ParserABC[list]:
        """ One or more items with separators """
        sep = literal(',')
        if self.strict_separators:
            return pipe([
                item,
                pipe([sep, item])(lambda values: lift(values[1])).many(),
            ])(lambda values: lift([values[0], *values[1]]))
        return pipe([item, first([sep, lift('')])])(lambda values: lift(values[0])).some()

    def make_array(self) -> ParserABC[list]:
        left_bracket = literal('[')
        right_bracket = literal(']')

        empty_array = pipe([left_bracket, self.whitespace, right_bracket])(lambda _: lift([]))
        non_empty_array = pipe([
            left_bracket,
            self.make_items(self.value),
            right_bracket,
        ])(lambda values: lift(values[1]))
        return first([empty_array, non_empty_array])

    def make_object(self) -> ParserABC[dict]:
        left_brace = literal('{')
        right_brace = literal('}')

        empty_object = pipe([left_brace, self.whitespace, right_brace])(lambda _: lift({}))
        pair = pipe([
            self.whitespace,
            self.string,
            self.whitespace,
            literal(':'),
            self.value,
        ])(lambda values: lift((values[1], values[4])))

        # Later duplicate keys overwrite earlier ones
        non_empty_object = pipe([
            left_brace,
            self.make_items(pair),
            right_brace,
        ])(lambda values: lift(dict(values[1])))
        return first([empty_object, non_empty_object])

    def make_value(self) -> ParserABC[Any]:
        return pipe([
            self.whitespace,
            first([
                self.string,
                self.number,
                self.array,
                self.object,
                self.true,
                self.false,
                self.null,
            ]),
            self.whitespace,
        ])(lambda values: lift(values[1]))


JSON = JSONGrammar()

def parse_json(text:str, grammar:Optional[JSONGrammar]=None) -> Any:
    """ Parse a whole JSON text
        Raises ParseFailed if the text is not a JSON value,
        and NotAllCharsUsed if some text is left after the value.
    """
    return (grammar or JSON).value.tryparse(text)
