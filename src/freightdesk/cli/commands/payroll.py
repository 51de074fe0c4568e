"""Payroll commands."""

from datetime import date

import click
from freightdesk.cli.error_handling import handle_domain_error, parse_amount_option
from freightdesk.domain.manpower_cost import (
    build_manpower_report,
    format_period_name,
    read_employee_payroll_csv,
    validate_period,
)
from freightdesk.domain.payroll import (
    allowance_setups,
    calculate_full_payroll,
    generate_period_name,
    validate_payroll_period,
)
from freightdesk.utils.amount_parser import format_idr
from freightdesk.utils.date_parser import parse_date


@click.group()
def payroll_group():
    """Payroll calculations."""
    pass


@payroll_group.command("calc")
@click.option("--base-salary", required=True, help="Monthly base salary")
@click.option("--overtime-hours", default="0", show_default=True, help="Overtime hours worked")
@click.option("--transport", help="Transport allowance")
@click.option("--meal", help="Meal allowance")
@click.option("--year", type=int, default=lambda: date.today().year, help="Payroll year")
@click.option("--month", type=int, default=lambda: date.today().month, help="Payroll month")
@click.option("--pay-date", help="Pay date, checked against the period end")
@click.pass_context
def calc(ctx, base_salary, overtime_hours, transport, meal, year, month, pay_date):
    """Print an estimated pay slip for one employee.

    Deductions cover the BPJS employee shares and a simplified PPh 21.

    Examples:
        freightdesk payroll calc --base-salary 8000000 --overtime-hours 10
        freightdesk payroll calc --base-salary "Rp 12.000.000" --transport 500000 --year 2025 --month 3
    """
    if pay_date is not None:
        try:
            parsed_pay_date = parse_date(pay_date)
        except ValueError as e:
            click.echo(f"Error: Invalid pay date: {e}", err=True)
            ctx.exit(1)
        result = validate_payroll_period(year, month, parsed_pay_date)
    else:
        result = validate_payroll_period(year, month, date(2100, 12, 31))
    if not result.valid:
        click.echo(f"Error: {'; '.join(result.errors)}", err=True)
        ctx.exit(1)

    base = parse_amount_option(ctx, base_salary, "base salary")
    if base <= 0:
        click.echo("Error: Base salary must be positive", err=True)
        ctx.exit(1)
    hours = parse_amount_option(ctx, overtime_hours, "overtime hours")

    transport_amount = parse_amount_option(ctx, transport, "transport allowance")
    meal_amount = parse_amount_option(ctx, meal, "meal allowance")
    setups = allowance_setups(transport=transport_amount, meal=meal_amount)

    slip = calculate_full_payroll(base, setups=setups, overtime_hours=hours)

    click.echo(f"Pay slip - {generate_period_name(year, month)}")
    click.echo("=" * 50)
    sections = (
        ("Earnings", slip.earnings),
        ("Deductions", slip.deductions),
        ("Company contributions", slip.company_contributions),
    )
    for title, items in sections:
        click.echo(f"\n{title}:")
        for item in items:
            click.echo(f"  {item.name:32s} {format_idr(item.amount):>16s}")
    click.echo("\n" + "-" * 50)
    click.echo(f"  {'Gross salary':32s} {format_idr(slip.gross_salary):>16s}")
    click.echo(f"  {'Total deductions':32s} {format_idr(slip.total_deductions):>16s}")
    click.echo(f"  {'Net salary':32s} {format_idr(slip.net_salary):>16s}")
    click.echo(f"  {'Total company cost':32s} {format_idr(slip.total_company_cost):>16s}")


@payroll_group.command("department-cost")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--year", type=int, default=lambda: date.today().year, help="Payroll year")
@click.option("--month", type=int, default=lambda: date.today().month, help="Payroll month")
@click.pass_context
def department_cost(ctx, csv_file, year, month):
    """Manpower cost per department from an employee CSV.

    The file needs department and base_salary columns; overtime_hours,
    transport and meal are optional.

    Examples:
        freightdesk payroll department-cost employees.csv --year 2025 --month 3
    """
    if not validate_period(year, month):
        click.echo(f"Error: Invalid payroll period {year}-{month}", err=True)
        ctx.exit(1)
    try:
        imported = read_employee_payroll_csv(csv_file)
    except ValueError as e:
        handle_domain_error(ctx, e)

    for error in imported.errors:
        click.echo(f"Skipped {error}", err=True)
    if not imported.records:
        click.echo("No employees to report.")
        return

    report = build_manpower_report(imported.records)
    click.echo(f"Manpower cost - {format_period_name(year, month)}")
    click.echo(
        f"{'Department':16s} {'Staff':>5s} {'Gross':>16s} {'Company cost':>16s} "
        f"{'Per employee':>16s} {'Share':>7s}"
    )
    click.echo("-" * 82)
    shares = {s.department: s.percentage for s in report.shares}
    for row in report.departments:
        click.echo(
            f"{row.department[:16]:16s} {row.employee_count:>5d} {format_idr(row.total_gross):>16s} "
            f"{format_idr(row.total_company_cost):>16s} {format_idr(row.cost_per_employee):>16s} "
            f"{shares[row.department]:>6.1f}%"
        )
    total = report.total
    click.echo("-" * 82)
    click.echo(
        f"{total.department:16s} {total.employee_count:>5d} {format_idr(total.total_gross):>16s} "
        f"{format_idr(total.total_company_cost):>16s} {format_idr(total.cost_per_employee):>16s}"
    )



def register_commands(cli):
    """Register payroll commands with main CLI."""
    cli.add_command(payroll_group, name="payroll")
