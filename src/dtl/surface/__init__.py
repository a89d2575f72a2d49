"""Surface front end: tokenizer, extensible-fixity parser and clause collector."""

from loguru import logger

from dtl.surface.collect import collect
from dtl.surface.expr import build_table, parse_term
from dtl.surface.implicit import add_impl, implicitise
from dtl.surface.lexer import IDRIS_DEF, LanguageDef, Lexer
from dtl.surface.parse import parse_file, parse_program
from dtl.surface.pretty import pretty, pretty_decl
from dtl.surface.sast import ImplicitError, ParseError, SurfaceError
from dtl.surface.state import ParserState

# Library logging stays silent until an application calls logger.enable("dtl").
logger.disable("dtl")

__all__ = [
    "IDRIS_DEF",
    "ImplicitError",
    "LanguageDef",
    "Lexer",
    "ParseError",
    "ParserState",
    "SurfaceError",
    "add_impl",
    "build_table",
    "collect",
    "implicitise",
    "parse_file",
    "parse_program",
    "parse_term",
    "pretty",
    "pretty_decl",
]
