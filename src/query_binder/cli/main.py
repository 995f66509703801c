from __future__ import annotations

import argparse
import json

from query_binder.binding.binder import QueryBinder
from query_binder.binding.errors import BindingFailed, NotBindableType
from query_binder.binding.schema import resolve_schema
from query_binder.cli.loader import load_model, parse_query_string, to_jsonable
from query_binder.core.config import get_settings
from query_binder.core.logging import configure_logging


def main(argv: list[str] | None = None) -> int:
    """
    A CLI for trying query models out from the terminal.

    The `cmd` options are:
    ## bind:
    Bind a query string onto a model and print the result as JSON.
    - `--model` as `package.module:ClassName`
    - `QUERY` as the raw query string, with or without the leading `?`

    Exit code is `0` when every field bound, `1` when any field failed.

    ### Example bind usage:
    - `querybind bind --model myapp.queries:ProductQuery "pageSize=10&sort=name"`

    ## describe:
    List every bindable field of a model: external name, attribute, shape and default.
    - `querybind describe --model myapp.queries:ProductQuery`

    A model that can't be imported, or isn't marked with `@query_model`, exits with `2`.
    """
    settings = get_settings()

    p = argparse.ArgumentParser(prog="querybind")
    p.add_argument("--log-level", default=settings.log_level, help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    sub = p.add_subparsers(dest="cmd", required=True)

    # bind cmd
    bind_p = sub.add_parser("bind", help="Bind a query string onto a model and print JSON.")
    bind_p.add_argument("--model", required=True, help="Model reference, `package.module:ClassName`.")
    bind_p.add_argument("--strict", action="store_true", help="Print the bound record only, or a 400-style error body.")
    bind_p.add_argument("query", help="Raw query string, ex: 'page=2&sort=name'.")

    # describe cmd
    describe_p = sub.add_parser("describe", help="List the bindable fields of a model.")
    describe_p.add_argument("--model", required=True, help="Model reference, `package.module:ClassName`.")

    args = p.parse_args(argv)
    configure_logging(args.log_level)

    try:
        model = load_model(args.model)
    except (ImportError, AttributeError, ValueError) as e:
        print(f"error: cannot load model {args.model!r}: {e}")
        return 2

    try:
        if args.cmd == "describe":
            schema = resolve_schema(model)
            for f in schema.fields:
                print(f.render_one_line())
            for name, _ in schema.unbound:
                print(f"(skipped) {name}")
            return 0

        if args.cmd == "bind":
            binder = QueryBinder(settings=settings)
            query = parse_query_string(args.query)

            if args.strict:
                try:
                    value = binder.bind(model, query)
                except BindingFailed as e:
                    print(json.dumps(e.to_problem_details(), indent=2, sort_keys=True))
                    return 1
                print(json.dumps(to_jsonable(value), indent=2, sort_keys=True))
                return 0

            result = binder.try_bind(model, query)
            body = {
                "success": result.success,
                "value": to_jsonable(result.value),
                "errors": dict(result.errors),
            }
            print(json.dumps(body, indent=2, sort_keys=True))
            return 0 if result.success else 1

    except NotBindableType as e:
        print(f"error: {e}")
        return 2

    return 2
