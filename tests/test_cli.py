"""Unit tests describing the CLI presentation layer contract."""

from __future__ import annotations

import argparse
from datetime import date
from decimal import Decimal

import pytest

from shop_ledger import cli, core_logic, data_manager
from shop_ledger.access_control import WrongCurrentSecret


WRITE_COMMANDS = {
    "add-product",
    "update-product",
    "delete-product",
    "add-staff",
    "update-staff",
    "delete-staff",
    "sale",
    "delete-sale",
}

READ_COMMANDS = {
    "products",
    "staff",
    "sales",
    "dashboard",
    "report",
}

ADMIN_COMMANDS = {"change-pin", "clear-data"}


def _parse(*argv: str) -> argparse.Namespace:
    parser = cli.build_parser()
    cli.configure_subcommands(parser)
    return parser.parse_args(list(argv))


def _registered_choices(parser: argparse.ArgumentParser) -> set[str]:
    for action in parser._actions:
        if isinstance(action, argparse._SubParsersAction):
            return set(action.choices)
    return set()


# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def test_build_parser_sets_program_metadata():
    parser = cli.build_parser()

    assert parser.prog == "shop-ledger"
    assert "Shop Ledger" in (parser.description or "")


def test_configure_subcommands_registers_every_command(cli_parser):
    command_table = cli.configure_subcommands(cli_parser)

    expected = WRITE_COMMANDS | READ_COMMANDS | ADMIN_COMMANDS
    assert set(command_table) == expected
    assert _registered_choices(cli_parser) == expected


def test_register_write_commands_returns_command_specs(subparsers_action):
    specs = cli.register_write_commands(subparsers_action)

    assert set(specs) == WRITE_COMMANDS
    assert all(isinstance(spec, cli.CommandSpec) and spec.help_text for spec in specs.values())
    assert WRITE_COMMANDS <= set(subparsers_action.choices)


def test_register_read_commands_returns_command_specs(subparsers_action):
    specs = cli.register_read_commands(subparsers_action)

    assert set(specs) == READ_COMMANDS
    assert READ_COMMANDS <= set(subparsers_action.choices)


def test_build_command_table_indexes_by_name(command_spec_iterable):
    table = cli.build_command_table(command_spec_iterable)

    assert list(table) == ["alpha", "beta", "gamma"]


def test_build_command_table_rejects_duplicates(command_spec_iterable):
    with pytest.raises(ValueError):
        cli.build_command_table([*command_spec_iterable, command_spec_iterable[0]])


def test_dispatch_command_rejects_unknown_command(context):
    with pytest.raises(KeyError):
        cli.dispatch_command(context, argparse.Namespace(command="nope"), {})


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def test_add_product_arguments_are_typed():
    args = _parse("add-product", "--name", "Widget", "--category", "Tools", "--price", "10.50", "--stock", "5")

    assert cli.translate_add_product(args) == {
        "name": "Widget",
        "category": "Tools",
        "price": Decimal("10.50"),
        "stock": 5,
    }


@pytest.mark.parametrize("raw", ["abc", "-1", "NaN", "10000000000000"])
def test_parse_money_rejects_invalid_amounts(raw):
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_money(raw)


def test_parse_money_rounds_to_cents():
    assert cli.parse_money("2.345") == Decimal("2.35")
    assert cli.parse_money("7") == Decimal("7.00")


def test_parse_date_rejects_bad_format():
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_date("01/02/2024")


def test_translate_sale_defaults_to_supplied_today():
    args = _parse("sale", "--product-id", "1", "--staff-id", "2", "--customer", "Alice", "--quantity", "3")

    command = cli.translate_sale(args, today=date(2024, 5, 5))

    assert command == core_logic.SaleCommand(1, 2, "Alice", 3, date(2024, 5, 5))


def test_translate_sale_uses_explicit_date():
    args = _parse(
        "sale", "--product-id", "1", "--staff-id", "2", "--customer", "Alice", "--quantity", "3",
        "--date", "2024-01-01",
    )

    assert cli.translate_sale(args).sale_date == date(2024, 1, 1)


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------


def test_run_add_product_and_sale(context, capsys):
    cli.dispatch_command(
        context,
        _parse("add-product", "--name", "Widget", "--category", "Tools", "--price", "10.00", "--stock", "5"),
        cli.configure_subcommands(cli.build_parser()),
    )
    cli.run_add_staff(context, _parse("add-staff", "--name", "Ama"))
    product = context.store.list_products()[0]
    staff = context.store.list_sales_staff()[0]

    exit_code = cli.run_sale(
        context,
        _parse(
            "sale", "--product-id", str(product.product_id), "--staff-id", str(staff.staff_id),
            "--customer", "Alice", "--quantity", "3", "--date", "2024-01-01",
        ),
    )

    assert exit_code == 0
    assert context.store.get_product(product.product_id).stock == 2
    output = capsys.readouterr().out
    assert "Added product" in output
    assert "Widget x3 by Ama to Alice = 30.00" in output


def test_run_sale_propagates_insufficient_stock(context, widget, alice_staff):
    args = _parse(
        "sale", "--product-id", str(widget.product_id), "--staff-id", str(alice_staff.staff_id),
        "--customer", "Alice", "--quantity", "6",
    )

    with pytest.raises(core_logic.InsufficientStock):
        cli.run_sale(context, args)


def test_run_update_and_delete_product(context, widget, capsys):
    cli.run_update_product(context, _parse("update-product", "--product-id", str(widget.product_id), "--stock", "9"))
    assert context.store.get_product(widget.product_id).stock == 9

    cli.run_delete_product(context, _parse("delete-product", "--product-id", str(widget.product_id)))
    assert context.store.list_products() == []
    assert "Deleted product" in capsys.readouterr().out


def test_run_dashboard_prints_low_stock(context, widget, capsys):
    cli.run_dashboard(context, _parse("dashboard"))

    output = capsys.readouterr().out
    assert "Test Shop" in output
    assert "Widget: 5 left" in output
    assert "No sales yet" in output


def test_run_report_prints_summary_and_leaders(context, widget, alice_staff, capsys):
    context.store.record_sale(
        core_logic.SaleCommand(widget.product_id, alice_staff.staff_id, "Alice", 2, date(2024, 6, 1))
    )

    cli.run_report(context, _parse("report", "--days", "30", "--as-of", "2024-06-15"))

    output = capsys.readouterr().out
    assert "Total revenue:       20.00" in output
    assert "#1 Widget: 2 sold" in output
    assert "#1 Ama Mensah: 20.00" in output


def test_run_report_with_no_matches(context, capsys):
    cli.run_report(context, _parse("report"))

    output = capsys.readouterr().out
    assert "Average order value: 0.00" in output
    assert "No sales found for the selected filters" in output


def test_run_staff_lists_performance(context, alice_staff, capsys):
    cli.run_staff(context, _parse("staff"))

    assert "orders=0 revenue=0.00" in capsys.readouterr().out


def test_run_change_pin_uses_arguments(context):
    cli.run_change_pin(context, _parse("change-pin", "--current", "1234", "--new", "4321", "--confirm", "4321"))

    assert context.access.verify("4321")


def test_run_clear_data_prompts_for_pin(context, widget, monkeypatch):
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt="": "1234")

    cli.run_clear_data(context, _parse("clear-data"))

    assert context.store.list_products() == []


def test_run_clear_data_rejects_wrong_pin(context, widget):
    with pytest.raises(WrongCurrentSecret):
        cli.run_clear_data(context, _parse("clear-data", "--pin", "0000"))

    assert context.store.list_products() == [widget]


# ---------------------------------------------------------------------------
# Error handling and main
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (core_logic.InsufficientStock("none left"), 2),
        (WrongCurrentSecret("nope"), 2),
        (FileNotFoundError("missing"), 3),
        (data_manager.PersistenceError("disk"), 1),
    ],
)
def test_handle_cli_error_maps_exit_codes(error, expected):
    assert cli.handle_cli_error(error) == expected


def test_main_runs_against_config(config_file, capsys):
    exit_code = cli.main(
        ["--config", str(config_file), "add-product", "--name", "Widget", "--category", "Tools",
         "--price", "2.00", "--stock", "1"]
    )

    assert exit_code == 0
    assert cli.main(["--config", str(config_file), "products"]) == 0
    assert "Widget [Tools] price=2.00 stock=1" in capsys.readouterr().out


def test_main_reports_business_rule_violations(config_file):
    assert cli.main(["--config", str(config_file), "delete-sale", "--sale-id", "1"]) == 2


def test_main_reports_missing_config(tmp_path):
    assert cli.main(["--config", str(tmp_path / "missing.ini"), "products"]) == 3
