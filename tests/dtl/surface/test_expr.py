import pytest

from dtl.common.span import Span
from dtl.surface.expr import ARROW_BINDER, application, build_table, parse_term
from dtl.surface.lexer import default_lexer
from dtl.surface.names import UserName, user_name
from dtl.surface.sast import (
    Assoc,
    FixDecl,
    Fixity,
    ParseError,
    PApp,
    PLam,
    PPi,
    PQuote,
    PRef,
    PSet,
    PTerm,
    Placeholder,
    Plicity,
)
from dtl.surface.state import ParserState
from dtl.surface.stream import TokenStream


def ref(name: str) -> PRef:
    return PRef(user_name(name))


def app(fn: str, *args: PTerm) -> PApp:
    return PApp(ref(fn), (), args)


def op(symbol: str, x: PTerm, y: PTerm) -> PApp:
    return PApp(PRef(UserName((symbol,))), (), (x, y))


def arrow(x: PTerm, y: PTerm) -> PPi:
    return PPi(Plicity.EXPLICIT, ARROW_BINDER, x, y)


def _state(*decls: tuple[Assoc, int, str]) -> ParserState:
    state = ParserState()
    state.add_fixities([FixDecl(Fixity(assoc, prec), sym) for assoc, prec, sym in decls])
    return state


def test_atoms() -> None:
    assert parse_term("x") == ref("x")
    assert parse_term("_") == Placeholder()
    assert parse_term("Set") == PSet()
    assert parse_term("(x)") == ref("x")
    assert parse_term("![f x]") == PQuote(app("f", ref("x")))


def test_operator_name_reference() -> None:
    assert parse_term("(+)") == PRef(UserName(("+",)))
    assert parse_term("(+) a b") == op("+", ref("a"), ref("b"))


def test_application() -> None:
    assert parse_term("f x y") == app("f", ref("x"), ref("y"))
    assert parse_term("Vect (S n) a") == app("Vect", app("S", ref("n")), ref("a"))


def test_application_with_implicit_arguments() -> None:
    term = parse_term("f {a} {b = Nat} x")
    assert term == PApp(
        ref("f"),
        ((user_name("a"), ref("a")), (user_name("b"), ref("Nat"))),
        (ref("x"),),
    )


def test_implicit_arguments_need_a_positional_argument() -> None:
    with pytest.raises(ParseError):
        parse_term("f {a = Nat}")


def test_lambda() -> None:
    assert parse_term("\\x => x") == PLam(user_name("x"), Placeholder(), ref("x"))
    assert parse_term("\\x : Nat => f x") == PLam(
        user_name("x"), ref("Nat"), app("f", ref("x"))
    )


def test_dependent_function_types() -> None:
    assert parse_term("(x : Nat) -> Vect x") == PPi(
        Plicity.EXPLICIT, user_name("x"), ref("Nat"), app("Vect", ref("x"))
    )
    assert parse_term("{a : Set} -> a") == PPi(
        Plicity.IMPLICIT, user_name("a"), PSet(), ref("a")
    )


def test_arrow_is_right_associative() -> None:
    assert parse_term("A -> B -> C") == arrow(ref("A"), arrow(ref("B"), ref("C")))
    assert parse_term("(A -> B) -> C") == arrow(arrow(ref("A"), ref("B")), ref("C"))


def test_equality_binds_tighter_than_arrow() -> None:
    assert parse_term("a = b -> c") == arrow(op("=", ref("a"), ref("b")), ref("c"))
    assert parse_term("a = b = c") == op("=", op("=", ref("a"), ref("b")), ref("c"))


def test_declared_operator_is_left_nested() -> None:
    state = _state((Assoc.LEFT, 6, "+"))
    term = parse_term("a + b + c", state)
    assert term == op("+", op("+", ref("a"), ref("b")), ref("c"))


def test_undeclared_operator_does_not_parse() -> None:
    with pytest.raises(ParseError):
        parse_term("a + b")


def test_precedence_levels() -> None:
    state = _state((Assoc.LEFT, 6, "+"), (Assoc.LEFT, 7, "*"))
    assert parse_term("a + b * c", state) == op(
        "+", ref("a"), op("*", ref("b"), ref("c"))
    )
    assert parse_term("a * b + c", state) == op(
        "+", op("*", ref("a"), ref("b")), ref("c")
    )


def test_application_binds_tighter_than_operators() -> None:
    state = _state((Assoc.LEFT, 6, "+"))
    assert parse_term("f x + g y", state) == op(
        "+", app("f", ref("x")), app("g", ref("y"))
    )


def test_user_operators_bind_tighter_than_equality() -> None:
    state = _state((Assoc.LEFT, 6, "+"))
    assert parse_term("a + b = c", state) == op(
        "=", op("+", ref("a"), ref("b")), ref("c")
    )


def test_right_associative_operator() -> None:
    state = _state((Assoc.RIGHT, 5, "::"))
    assert parse_term("a :: b :: c", state) == op(
        "::", ref("a"), op("::", ref("b"), ref("c"))
    )


def test_same_level_left_operators_chain() -> None:
    state = _state((Assoc.LEFT, 6, "+"), (Assoc.LEFT, 6, "-"))
    assert parse_term("a + b - c", state) == op(
        "-", op("+", ref("a"), ref("b")), ref("c")
    )


def test_non_associative_operators_do_not_chain() -> None:
    state = _state((Assoc.NON, 4, "~"), (Assoc.NON, 4, "=="))
    assert parse_term("a ~ b", state) == op("~", ref("a"), ref("b"))
    with pytest.raises(ParseError, match="non associative"):
        parse_term("a ~ b ~ c", state)
    with pytest.raises(ParseError, match="non associative"):
        parse_term("a ~ b == c", state)


def test_mixed_associativity_at_one_level_is_ambiguous() -> None:
    state = _state((Assoc.LEFT, 5, "<+"), (Assoc.RIGHT, 5, "+>"))
    with pytest.raises(ParseError, match="ambiguous use"):
        parse_term("a <+ b +> c", state)


def test_build_table_groups_by_precedence() -> None:
    state = _state((Assoc.LEFT, 6, "+"), (Assoc.LEFT, 6, "-"), (Assoc.RIGHT, 7, "*"))
    table = build_table(state.fixities)
    assert [[o.symbol for o in level] for level in table] == [
        ["*"],
        ["-", "+"],
        ["="],
        ["->"],
    ]
    assert [[o.assoc for o in level] for level in table] == [
        [Assoc.RIGHT],
        [Assoc.LEFT, Assoc.LEFT],
        [Assoc.LEFT],
        [Assoc.RIGHT],
    ]


def test_build_table_without_fixities() -> None:
    table = build_table([])
    assert [[o.symbol for o in level] for level in table] == [["="], ["->"]]


def test_builtin_desugaring() -> None:
    eq, fn = build_table([])
    assert eq[0].build(ref("a"), ref("b")) == op("=", ref("a"), ref("b"))
    assert fn[0].build(ref("A"), ref("B")) == arrow(ref("A"), ref("B"))


def test_spans() -> None:
    term = parse_term("f x")
    assert term.span == Span(0, 3)
    assert isinstance(term, PApp)
    assert term.args[0].span == Span(2, 3)


def test_trailing_input_is_an_error() -> None:
    with pytest.raises(ParseError, match="end of input"):
        parse_term("f x )")


def test_same_symbol_declared_twice_at_one_level_prefers_right() -> None:
    state = _state((Assoc.LEFT, 6, "+"), (Assoc.RIGHT, 6, "+"))
    assert [o.assoc for o in build_table(state.fixities)[0]] == [
        Assoc.RIGHT,
        Assoc.LEFT,
    ]
    assert parse_term("a + b + c", state) == op(
        "+", ref("a"), op("+", ref("b"), ref("c"))
    )


def test_numerals_are_not_terms() -> None:
    state = _state((Assoc.LEFT, 6, "+"))
    with pytest.raises(ParseError, match="unexpected '1'"):
        parse_term("1 + 2 + 3", state)


def test_application_with_parsed_head() -> None:
    stream = TokenStream(default_lexer().tokenize("f x y"), ParserState())
    head = ref("f")
    stream.advance()
    assert application(stream, head, 0) == app("f", ref("x"), ref("y"))
    assert stream.at_end()


def test_deeply_nested_parentheses() -> None:
    assert parse_term("(" * 30 + "f x" + ")" * 30) == app("f", ref("x"))
