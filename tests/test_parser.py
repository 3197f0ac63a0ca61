"""Tests for the TSL parser."""

import dataclasses

import pytest
from datetime import datetime, timezone

from tsl import (
    Aggregate,
    AggregateKind,
    Between,
    BinaryOp,
    BinaryOperator,
    Identifier,
    In,
    IsNull,
    LexerError,
    Like,
    ListLiteral,
    Literal,
    ParseError,
    Parser,
    SyntaxErrorKind,
    TSLConfig,
    UnaryOp,
    UnaryOperator,
    parse,
    parse_tokens,
    tokenize,
)


def ident(name: str) -> Identifier:
    return Identifier(name)


def num(value: float) -> Literal:
    return Literal(float(value))


class TestParserLiterals:
    def test_parse_literal_number(self):
        ast = parse("42")
        assert isinstance(ast, Literal)
        assert ast.value == 42

    def test_parse_literal_string(self):
        assert parse("'hello'") == Literal("hello")

    def test_parse_literal_boolean(self):
        assert parse("TRUE") == Literal(True)
        assert parse("false") == Literal(False)

    def test_parse_literal_null(self):
        assert parse("null") == Literal(None)

    def test_parse_literal_date(self):
        assert parse("2024-01-01") == Literal(datetime(2024, 1, 1, tzinfo=timezone.utc))

    def test_parse_identifier(self):
        ast = parse("spec.pages")
        assert isinstance(ast, Identifier)
        assert ast.name == "spec.pages"

    def test_parse_list_literal(self):
        assert parse("[1, a, 'x']") == ListLiteral((num(1), ident("a"), Literal("x")))

    def test_parse_empty_list(self):
        assert parse("[]") == ListLiteral(())


class TestParserPrecedence:
    def test_multiplication_binds_tighter_than_addition(self):
        assert parse("1 + 2 * 3 = 7") == BinaryOp(
            BinaryOperator.EQ,
            BinaryOp(
                BinaryOperator.ADD,
                num(1),
                BinaryOp(BinaryOperator.MUL, num(2), num(3)),
            ),
            num(7),
        )

    def test_not_binds_tighter_than_and(self):
        assert parse("NOT a AND b") == BinaryOp(
            BinaryOperator.AND,
            UnaryOp(UnaryOperator.NOT, ident("a")),
            ident("b"),
        )

    def test_and_binds_tighter_than_or(self):
        assert parse("a OR b AND c") == BinaryOp(
            BinaryOperator.OR,
            ident("a"),
            BinaryOp(BinaryOperator.AND, ident("b"), ident("c")),
        )

    def test_not_applies_to_whole_comparison(self):
        assert parse("NOT a = 1") == UnaryOp(
            UnaryOperator.NOT,
            BinaryOp(BinaryOperator.EQ, ident("a"), num(1)),
        )

    def test_subtraction_is_left_associative(self):
        assert parse("a - b - c") == BinaryOp(
            BinaryOperator.SUB,
            BinaryOp(BinaryOperator.SUB, ident("a"), ident("b")),
            ident("c"),
        )

    def test_unary_minus_binds_tighter_than_multiplication(self):
        assert parse("-a * b") == BinaryOp(
            BinaryOperator.MUL,
            UnaryOp(UnaryOperator.NEGATE, ident("a")),
            ident("b"),
        )

    def test_unary_minus_is_right_associative(self):
        assert parse("- -a") == UnaryOp(
            UnaryOperator.NEGATE, UnaryOp(UnaryOperator.NEGATE, ident("a"))
        )

    def test_parentheses_override_precedence(self):
        assert parse("(1 + 2) * 3") == BinaryOp(
            BinaryOperator.MUL,
            BinaryOp(BinaryOperator.ADD, num(1), num(2)),
            num(3),
        )

    def test_modulo_and_division(self):
        assert parse("a / b % c") == BinaryOp(
            BinaryOperator.MOD,
            BinaryOp(BinaryOperator.DIV, ident("a"), ident("b")),
            ident("c"),
        )


class TestParserComparisons:
    @pytest.mark.parametrize("source, operator", [
        ("a = 1", BinaryOperator.EQ),
        ("a != 1", BinaryOperator.NE),
        ("a < 1", BinaryOperator.LT),
        ("a <= 1", BinaryOperator.LE),
        ("a > 1", BinaryOperator.GT),
        ("a >= 1", BinaryOperator.GE),
        ("a =~ 1", BinaryOperator.REGEX_EQ),
        ("a !~ 1", BinaryOperator.REGEX_NE),
    ])
    def test_binary_comparisons(self, source, operator):
        assert parse(source) == BinaryOp(operator, ident("a"), num(1))

    def test_like(self):
        assert parse("name LIKE 'j%'") == Like(ident("name"), Literal("j%"))

    def test_ilike(self):
        assert parse("name ILIKE 'j%'") == Like(
            ident("name"), Literal("j%"), case_insensitive=True
        )

    def test_not_like(self):
        assert parse("name NOT ILIKE 'j%'") == Like(
            ident("name"), Literal("j%"), case_insensitive=True, negated=True
        )

    def test_between(self):
        assert parse("x BETWEEN 1 AND 10") == Between(ident("x"), num(1), num(10))

    def test_between_and_is_not_logical_and(self):
        assert parse("x BETWEEN 1 AND 10 AND y") == BinaryOp(
            BinaryOperator.AND,
            Between(ident("x"), num(1), num(10)),
            ident("y"),
        )

    def test_between_bounds_are_arithmetic(self):
        assert parse("x BETWEEN a + 1 AND b * 2") == Between(
            ident("x"),
            BinaryOp(BinaryOperator.ADD, ident("a"), num(1)),
            BinaryOp(BinaryOperator.MUL, ident("b"), num(2)),
        )

    def test_not_between(self):
        assert parse("x NOT BETWEEN 1 AND 10") == Between(
            ident("x"), num(1), num(10), negated=True
        )

    def test_in(self):
        assert parse("status IN ('active', 'pending')") == In(
            ident("status"), (Literal("active"), Literal("pending"))
        )

    def test_in_with_brackets(self):
        assert parse("x IN [1, 2]") == In(ident("x"), (num(1), num(2)))

    def test_in_empty(self):
        assert parse("x IN ()") == In(ident("x"), ())

    def test_not_in(self):
        assert parse("x NOT IN (1)") == In(ident("x"), (num(1),), negated=True)

    def test_is_null(self):
        assert parse("x IS NULL") == IsNull(ident("x"))

    def test_is_not_null(self):
        assert parse("x is not null") == IsNull(ident("x"), negated=True)

    def test_parenthesized_comparisons_can_be_compared(self):
        assert parse("(a = 1) = (b = 2)") == BinaryOp(
            BinaryOperator.EQ,
            BinaryOp(BinaryOperator.EQ, ident("a"), num(1)),
            BinaryOp(BinaryOperator.EQ, ident("b"), num(2)),
        )

    def test_no_semantic_validation(self):
        assert parse("1 LIKE 2") == Like(num(1), num(2))


class TestParserAggregates:
    @pytest.mark.parametrize("name, kind", [
        ("LEN", AggregateKind.LEN),
        ("any", AggregateKind.ANY),
        ("All", AggregateKind.ALL),
        ("SUM", AggregateKind.SUM),
    ])
    def test_aggregate(self, name, kind):
        assert parse(f"{name}(tags)") == Aggregate(kind, ident("tags"))

    def test_aggregate_of_list(self):
        assert parse("SUM([1, 2]) = 3") == BinaryOp(
            BinaryOperator.EQ,
            Aggregate(AggregateKind.SUM, ListLiteral((num(1), num(2)))),
            num(3),
        )

    def test_aggregate_of_expression(self):
        assert parse("ANY([a > 1, b])") == Aggregate(
            AggregateKind.ANY,
            ListLiteral((BinaryOp(BinaryOperator.GT, ident("a"), num(1)), ident("b"))),
        )


class TestParserErrors:
    def test_empty_expression(self):
        with pytest.raises(ParseError) as exc_info:
            parse("   ")
        assert exc_info.value.kind is SyntaxErrorKind.UNEXPECTED_END_OF_INPUT

    def test_unclosed_parenthesis(self):
        with pytest.raises(ParseError) as exc_info:
            parse("(1 + 2")
        assert exc_info.value.kind is SyntaxErrorKind.MISMATCHED_DELIMITER
        assert exc_info.value.expected == "')'"

    def test_unmatched_closing_parenthesis(self):
        with pytest.raises(ParseError) as exc_info:
            parse("1 + 2)")
        assert exc_info.value.kind is SyntaxErrorKind.MISMATCHED_DELIMITER
        assert exc_info.value.position == 5

    def test_wrong_closing_delimiter(self):
        with pytest.raises(ParseError) as exc_info:
            parse("[1, 2)")
        assert exc_info.value.kind is SyntaxErrorKind.MISMATCHED_DELIMITER

    def test_missing_comma_in_list(self):
        with pytest.raises(ParseError) as exc_info:
            parse("[1 2]")
        assert exc_info.value.kind is SyntaxErrorKind.UNEXPECTED_TOKEN
        assert exc_info.value.expected == "',' or ']'"
        assert exc_info.value.found == "2"

    @pytest.mark.parametrize("source", ["a < b < c", "a = b = c", "a = 1 IS NULL"])
    def test_comparisons_do_not_chain(self, source):
        with pytest.raises(ParseError) as exc_info:
            parse(source)
        assert exc_info.value.kind is SyntaxErrorKind.UNEXPECTED_TOKEN

    def test_chained_comparison_position(self):
        with pytest.raises(ParseError) as exc_info:
            parse("a < b < c")
        assert exc_info.value.position == 6

    def test_dangling_operator(self):
        with pytest.raises(ParseError) as exc_info:
            parse("1 +")
        assert exc_info.value.kind is SyntaxErrorKind.UNEXPECTED_END_OF_INPUT

    def test_between_without_and(self):
        with pytest.raises(ParseError) as exc_info:
            parse("x BETWEEN 1")
        assert exc_info.value.kind is SyntaxErrorKind.UNEXPECTED_END_OF_INPUT
        assert "AND" in exc_info.value.expected

    def test_between_with_or(self):
        with pytest.raises(ParseError) as exc_info:
            parse("x BETWEEN 1 OR 2")
        assert exc_info.value.kind is SyntaxErrorKind.UNEXPECTED_TOKEN
        assert exc_info.value.found == "OR"

    @pytest.mark.parametrize("source", ["LEN(a, b)", "LEN()", "LEN a"])
    def test_aggregate_arity(self, source):
        with pytest.raises(ParseError) as exc_info:
            parse(source)
        assert exc_info.value.kind is SyntaxErrorKind.UNEXPECTED_TOKEN

    def test_in_requires_list(self):
        with pytest.raises(ParseError) as exc_info:
            parse("x IN 1")
        assert exc_info.value.kind is SyntaxErrorKind.UNEXPECTED_TOKEN

    def test_is_requires_null(self):
        with pytest.raises(ParseError) as exc_info:
            parse("x IS 1")
        assert exc_info.value.kind is SyntaxErrorKind.UNEXPECTED_TOKEN

    def test_trailing_tokens(self):
        with pytest.raises(ParseError) as exc_info:
            parse("1 2")
        assert exc_info.value.kind is SyntaxErrorKind.UNEXPECTED_TOKEN
        assert exc_info.value.position == 2
        assert exc_info.value.found == "2"

    def test_not_is_not_an_operand(self):
        with pytest.raises(ParseError):
            parse("a = NOT b")

    def test_lexer_errors_propagate(self):
        with pytest.raises(LexerError):
            parse('name = "abc')

    def test_nesting_limit(self):
        source = "(" * 10 + "1" + ")" * 10
        with pytest.raises(ParseError) as exc_info:
            parse(source, TSLConfig(max_depth=5))
        assert exc_info.value.kind is SyntaxErrorKind.NESTING_TOO_DEEP

    def test_nesting_within_default_limit(self):
        source = "(" * 50 + "1" + ")" * 50
        assert parse(source) == num(1)

    def test_input_length_limit(self):
        with pytest.raises(ParseError) as exc_info:
            parse("a" * 20, TSLConfig(max_length=10))
        assert exc_info.value.kind is SyntaxErrorKind.INPUT_TOO_LONG

    def test_error_to_dict(self):
        with pytest.raises(ParseError) as exc_info:
            parse("1 2")
        data = exc_info.value.to_dict()
        assert data["kind"] == "unexpected_token"
        assert data["expected"] == "end of input"
        assert data["found"] == "2"


class TestParserInstances:
    def test_parse_tokens(self):
        assert parse_tokens(tokenize("a = 1")) == parse("a = 1")

    def test_parsers_are_independent(self):
        first = Parser("a = 1")
        second = Parser("b = 2")
        assert second.parse() == BinaryOp(BinaryOperator.EQ, ident("b"), num(2))
        assert first.parse() == BinaryOp(BinaryOperator.EQ, ident("a"), num(1))

    def test_ast_is_immutable(self):
        ast = parse("a = 1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            ast.left = ident("b")

    def test_ast_is_hashable(self):
        assert hash(parse("x IN (1, 2)")) == hash(parse("x IN (1, 2)"))
