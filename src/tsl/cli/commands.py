"""Expression CLI commands: parse, eval, filter and aggregates."""

import json
import logging
from pathlib import Path
from typing import Any, NoReturn

import click
import yaml

from tsl.aggregates import AggregateRegistry
from tsl.config import TSLConfig
from tsl.errors import EvaluationError, TSLError
from tsl.evaluator import evaluate, evaluate_bool
from tsl.parser import parse
from tsl.printer import to_dict, to_tsl
from tsl.values import from_value

logger = logging.getLogger(__name__)


def _load_data(path: Path) -> Any:
    """Load a JSON or YAML document."""
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        _fail(e, f"reading {path}")


def _dump(data: Any, output_format: str) -> str:
    if output_format == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True).rstrip()
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _parse_assignment(assignment: str) -> tuple[str, Any]:
    """Split FIELD=VALUE, reading the value as a YAML scalar."""
    field, sep, raw = assignment.partition("=")
    if not sep or not field:
        raise click.BadParameter(
            f"expected FIELD=VALUE, got {assignment!r}", param_hint="--set"
        )
    try:
        return field, yaml.safe_load(raw) if raw else ""
    except yaml.YAMLError as e:
        _fail(e, f"--set {field}")


def _fail(error: Exception, where: str | None = None) -> NoReturn:
    prefix = f"Error ({where})" if where else "Error"
    click.echo(click.style(f"{prefix}: {error}", fg="red"), err=True)
    raise SystemExit(1)


@click.command("parse")
@click.argument("expression")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["tsl", "json", "yaml"]),
    default="json",
    show_default=True,
    help="Print the tree as canonical TSL, JSON or YAML.",
)
@click.pass_obj
def parse_cmd(config: TSLConfig, expression: str, output_format: str):
    """Parse EXPRESSION and print its syntax tree."""
    try:
        ast = parse(expression, config)
    except TSLError as e:
        _fail(e)

    if output_format == "tsl":
        click.echo(to_tsl(ast))
    else:
        click.echo(_dump(to_dict(ast), output_format))


@click.command("eval")
@click.argument("expression")
@click.option(
    "--record",
    "record_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON or YAML file holding the record's fields.",
)
@click.option(
    "--set",
    "assignments",
    multiple=True,
    metavar="FIELD=VALUE",
    help="Set a field (value read as YAML). Repeatable; overrides --record.",
)
@click.option(
    "--strict/--lenient",
    default=None,
    help="Fail on unknown fields instead of treating them as NULL.",
)
@click.pass_obj
def eval_cmd(
    config: TSLConfig,
    expression: str,
    record_path: Path | None,
    assignments: tuple[str, ...],
    strict: bool | None,
):
    """Evaluate EXPRESSION against one record and print the result as JSON."""
    record: dict[str, Any] = {}
    if record_path is not None:
        data = _load_data(record_path)
        if not isinstance(data, dict):
            click.echo(f"Error: {record_path} must contain a mapping of fields", err=True)
            raise SystemExit(1)
        record.update(data)

    for assignment in assignments:
        field, value = _parse_assignment(assignment)
        record[field] = value

    try:
        result = evaluate(expression, record, strict=strict, config=config)
    except TSLError as e:
        _fail(e)

    click.echo(json.dumps(from_value(result), ensure_ascii=False))


@click.command("filter")
@click.argument("expression")
@click.option(
    "--input",
    "input_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON or YAML file holding a list of records.",
)
@click.option(
    "--strict/--lenient",
    default=None,
    help="Fail on unknown fields instead of treating them as NULL.",
)
@click.option(
    "--on-error",
    type=click.Choice(["fail", "skip"]),
    default="fail",
    show_default=True,
    help="Abort on the first evaluation error, or log it and skip the record.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "yaml"]),
    default="json",
    show_default=True,
)
@click.pass_obj
def filter_cmd(
    config: TSLConfig,
    expression: str,
    input_path: Path,
    strict: bool | None,
    on_error: str,
    output_format: str,
):
    """Print the records of --input matching EXPRESSION."""
    try:
        ast = parse(expression, config)
    except TSLError as e:
        _fail(e)

    records = _load_data(input_path)
    if not isinstance(records, list):
        click.echo(f"Error: {input_path} must contain a list of records", err=True)
        raise SystemExit(1)

    if strict is None:
        strict = config.strict_fields

    matched = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            click.echo(f"Error: record {index} is not a mapping", err=True)
            raise SystemExit(1)
        try:
            if evaluate_bool(ast, record, strict=strict):
                matched.append(record)
        except EvaluationError as e:
            if on_error == "fail":
                _fail(e, f"record {index}")
            logger.warning("Skipping record %d: %s", index, e)

    logger.info("%d of %d records matched", len(matched), len(records))
    click.echo(_dump(matched, output_format))


@click.command()
def aggregates():
    """List the aggregate functions available in expressions."""
    registry = AggregateRegistry.with_builtins()
    click.echo(json.dumps(registry.export_documentation(), indent=2))
