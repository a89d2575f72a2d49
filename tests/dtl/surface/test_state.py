import pytest

from dtl.surface.lexer import LanguageDef, default_lexer
from dtl.surface.names import user_name
from dtl.surface.sast import Assoc, FixDecl, Fixity, ParseError
from dtl.surface.state import ParserState
from dtl.surface.stream import TokenStream


def _fix(assoc: Assoc, prec: int, op: str) -> FixDecl:
    return FixDecl(Fixity(assoc, prec), op)


def _stream(src: str, state: ParserState | None = None) -> TokenStream:
    return TokenStream(default_lexer().tokenize(src), state or ParserState(), src)


def test_fixities_stay_sorted_by_precedence() -> None:
    state = ParserState()
    state.add_fixities([_fix(Assoc.LEFT, 7, "*")])
    state.add_fixities([_fix(Assoc.LEFT, 6, "+"), _fix(Assoc.RIGHT, 9, ".")])
    assert [f.fixity.prec for f in state.fixities] == [6, 7, 9]
    assert [f.op for f in state.fixities] == ["+", "*", "."]


def test_duplicate_fixities_coexist() -> None:
    state = ParserState()
    state.add_fixities([_fix(Assoc.LEFT, 6, "+")])
    state.add_fixities([_fix(Assoc.LEFT, 6, "+"), _fix(Assoc.RIGHT, 7, "+")])
    assert [f.op for f in state.fixities] == ["+", "+", "+"]


def test_implicits_registry() -> None:
    state = ParserState()
    assert state.implicits_of(user_name("f")) == []
    state.add_def(user_name("f"), [user_name("a")])
    state.add_def(user_name("f"), [user_name("b")])
    assert state.implicits_of(user_name("f")) == [user_name("b")]


def test_snapshot_and_restore() -> None:
    state = ParserState()
    state.add_def(user_name("f"), [user_name("a")])
    snap = state.snapshot()
    state.add_fixities([_fix(Assoc.LEFT, 6, "+")])
    state.add_def(user_name("g"), [])
    state.add_def(user_name("f"), [user_name("b")])
    state.restore(snap)
    assert state.fixities == ()
    assert state.implicits == {user_name("f"): [user_name("a")]}


def test_nested_snapshots_restore_in_order() -> None:
    state = ParserState()
    outer = state.snapshot()
    state.add_def(user_name("f"), [user_name("a")])
    inner = state.snapshot()
    state.add_def(user_name("f"), [user_name("b")])
    state.add_fixities([_fix(Assoc.LEFT, 6, "+")])
    state.restore(inner)
    assert state.implicits_of(user_name("f")) == [user_name("a")]
    assert state.fixities == ()
    state.restore(outer)
    assert state.implicits == {}


def test_snapshot_does_not_copy_the_state() -> None:
    state = ParserState()
    state.add_fixities([_fix(Assoc.LEFT, 6, "+")])
    for i in range(100):
        state.add_def(user_name(f"f{i}"), [user_name("a")])
    snap = state.snapshot()
    assert snap.fixities is state.fixities
    assert snap == state.snapshot()


def test_attempt_restores_position_and_state() -> None:
    stream = _stream("a b")

    def consume_then_fail() -> None:
        stream.identifier()
        stream.state.add_def(user_name("x"), [])
        stream.expect("SEMI")

    with pytest.raises(ParseError):
        stream.attempt(consume_then_fail)
    assert stream.pos == 0
    assert stream.state.implicits == {}


def test_choice_takes_first_success() -> None:
    stream = _stream("a ;")
    tok = stream.choice(lambda: stream.expect("SEMI"), lambda: stream.identifier())
    assert tok.value == "a"
    assert stream.peek().kind == "SEMI"


def test_choice_reports_merged_expectations() -> None:
    stream = _stream("( a")
    with pytest.raises(ParseError) as info:
        stream.choice(lambda: stream.expect("SEMI"), lambda: stream.identifier())
    assert info.value.expected == ('";"', "identifier")


def test_choice_reports_furthest_failure() -> None:
    stream = _stream("a b c")

    def deep() -> None:
        stream.identifier()
        stream.identifier()
        stream.expect("SEMI")

    with pytest.raises(ParseError) as info:
        stream.choice(deep, lambda: stream.expect("SEMI"))
    assert info.value.span.start == 4


def test_many_and_sep_by1() -> None:
    stream = _stream("a b , c , d ;")
    assert [t.value for t in stream.many(stream.identifier)] == ["a", "b"]
    stream.expect("COMMA")
    items = stream.sep_by1(stream.identifier, lambda: stream.expect("COMMA"))
    assert [t.value for t in items] == ["c", "d"]
    stream.expect("SEMI")
    assert stream.at_end()


def test_sep_by1_needs_one_item() -> None:
    stream = _stream(", a")
    with pytest.raises(ParseError):
        stream.sep_by1(stream.identifier, lambda: stream.expect("COMMA"))


def test_operator_rejects_reserved_operators() -> None:
    stream = _stream("= +")
    with pytest.raises(ParseError):
        stream.operator()
    stream.reserved_op("=")
    assert stream.operator().value == "+"


def test_operator_follows_the_language_reserved_operators() -> None:
    language = LanguageDef(reserved_op_names=frozenset({"+"}))
    assert language.is_reserved_op("+")
    assert not language.is_reserved_op("=")
    tokens = default_lexer().tokenize("+ =")
    stream = TokenStream(tokens, ParserState(), "+ =", "(input)", language)
    with pytest.raises(ParseError):
        stream.operator()
    stream.advance()
    assert stream.operator().value == "="


def test_natural_reads_an_int() -> None:
    stream = _stream("42")
    assert stream.natural() == 42


def test_choice_needs_alternatives() -> None:
    with pytest.raises(ValueError):
        _stream("a").choice()
