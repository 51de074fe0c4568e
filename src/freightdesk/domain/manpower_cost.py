"""Manpower cost reporting by department."""

import csv
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from typing import Iterable, Sequence

from freightdesk.domain.payroll import PayrollResult, allowance_setups, calculate_full_payroll
from freightdesk.utils.amount_parser import parse_amount, to_decimal

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

ZERO = Decimal("0")
REQUIRED_COLUMNS = ("department", "base_salary")


@dataclass(frozen=True)
class DepartmentCost:
    """Payroll totals of one department for one period."""

    department: str
    employee_count: int = 0
    total_base_salary: Decimal = ZERO
    total_allowances: Decimal = ZERO
    total_overtime: Decimal = ZERO
    total_gross: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net: Decimal = ZERO
    total_company_contributions: Decimal = ZERO
    total_company_cost: Decimal = ZERO
    avg_salary: Decimal = ZERO
    cost_per_employee: Decimal = ZERO


@dataclass(frozen=True)
class DepartmentShare:
    department: str
    total_company_cost: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class EmployeePayroll:
    """Pay slip of one employee tagged with their department."""

    department: str
    result: PayrollResult


_SUMMED_FIELDS = (
    "employee_count",
    "total_base_salary",
    "total_allowances",
    "total_overtime",
    "total_gross",
    "total_deductions",
    "total_net",
    "total_company_contributions",
    "total_company_cost",
)


def calculate_percentage(part: Decimal, total: Decimal) -> Decimal:
    total = to_decimal(total)
    if total == 0:
        return ZERO
    return to_decimal(part) / total * Decimal("100")


def format_period_name(year: int, month: int) -> str:
    """English period name, e.g. "December 2025", or just the year."""
    if 1 <= month <= 12:
        return f"{MONTH_NAMES[month - 1]} {year}"
    return str(year)


def get_month_abbreviation(month: int) -> str:
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1][:3]
    return ""


def validate_period(year, month) -> bool:
    if not isinstance(year, int) or not isinstance(month, int):
        return False
    if isinstance(year, bool) or isinstance(month, bool):
        return False
    return 2000 <= year <= 2099 and 1 <= month <= 12


def get_last_n_months(year: int, month: int, n: int) -> list[dict[str, int]]:
    """Return the n months ending at year/month, oldest first."""
    months = []
    for offset in range(n - 1, -1, -1):
        index = year * 12 + (month - 1) - offset
        months.append({"year": index // 12, "month": index % 12 + 1})
    return months


def sort_by_total_cost_desc(departments: Iterable[DepartmentCost]) -> list[DepartmentCost]:
    return sorted(departments, key=lambda d: d.total_company_cost, reverse=True)


def _with_averages(row: DepartmentCost) -> DepartmentCost:
    if row.employee_count == 0:
        return replace(row, avg_salary=ZERO, cost_per_employee=ZERO)
    return replace(
        row,
        avg_salary=row.total_gross / row.employee_count,
        cost_per_employee=row.total_company_cost / row.employee_count,
    )


def calculate_total_row(departments: Sequence[DepartmentCost]) -> DepartmentCost:
    """Sum departments into a "Total" row with averages over all employees."""
    totals = {name: sum((getattr(d, name) for d in departments), 0) for name in _SUMMED_FIELDS}
    for name in _SUMMED_FIELDS[1:]:
        totals[name] = to_decimal(totals[name])
    return _with_averages(DepartmentCost(department="Total", **totals))


def calculate_department_percentages(
    departments: Sequence[DepartmentCost],
) -> list[DepartmentShare]:
    """Each department's share of total company cost, largest first."""
    grand_total = sum((d.total_company_cost for d in departments), ZERO)
    shares = [
        DepartmentShare(
            department=d.department,
            total_company_cost=d.total_company_cost,
            percentage=calculate_percentage(d.total_company_cost, grand_total),
        )
        for d in departments
    ]
    return sorted(shares, key=lambda s: s.percentage, reverse=True)


def format_chart_axis_value(value) -> str:
    """Short axis label: 1.5B, 200M, 50K, or the raw number."""
    value = to_decimal(value)
    if value >= 1_000_000_000:
        scaled = (value / 1_000_000_000).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        return f"{scaled}B"
    for threshold, suffix in ((1_000_000, "M"), (1_000, "K")):
        if value >= threshold:
            scaled = (value / threshold).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            return f"{scaled}{suffix}"
    return f"{value.normalize():f}" if value else "0"


def generate_export_filename(year: int, month: int) -> str:
    return f"manpower-cost-{year}-{month:02d}.xlsx"


def summarize_payroll_by_department(records: Iterable[EmployeePayroll]) -> list[DepartmentCost]:
    """Roll employee pay slips up into per-department cost rows.

    Rows come back sorted by total company cost, highest first.
    """
    rows: dict[str, dict] = {}
    for record in records:
        result = record.result
        row = rows.setdefault(
            record.department, {name: (0 if name == "employee_count" else ZERO) for name in _SUMMED_FIELDS}
        )
        amounts = {item.code: item.amount for item in result.earnings}
        base = amounts.pop("base_salary", ZERO)
        overtime = amounts.pop("overtime", ZERO)

        row["employee_count"] += 1
        row["total_base_salary"] += base
        row["total_overtime"] += overtime
        row["total_allowances"] += sum(amounts.values(), ZERO)
        row["total_gross"] += result.gross_salary
        row["total_deductions"] += result.total_deductions
        row["total_net"] += result.net_salary
        row["total_company_contributions"] += result.total_company_cost - result.gross_salary
        row["total_company_cost"] += result.total_company_cost

    return sort_by_total_cost_desc(
        _with_averages(DepartmentCost(department=name, **totals)) for name, totals in rows.items()
    )


@dataclass(frozen=True)
class ManpowerReport:
    departments: list[DepartmentCost]
    total: DepartmentCost
    shares: list[DepartmentShare]


@dataclass
class PayrollImport:
    """Employees read from a CSV file and the rows that were skipped."""

    records: list[EmployeePayroll] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def build_manpower_report(records: Iterable[EmployeePayroll]) -> ManpowerReport:
    departments = summarize_payroll_by_department(records)
    return ManpowerReport(
        departments=departments,
        total=calculate_total_row(departments),
        shares=calculate_department_percentages(departments),
    )


def _optional_amount(row: dict, column: str):
    value = (row.get(column) or "").strip()
    return parse_amount(value) if value else None


def read_employee_payroll_csv(csv_file_path: str) -> PayrollImport:
    """Compute a pay slip for every employee row of a CSV file.

    Rows with a missing department or an unparseable amount are reported in
    ``errors`` and skipped; the other rows are still read.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file has no header or lacks a required column
    """
    csv_path = Path(csv_file_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_file_path}")

    result = PayrollImport()
    with open(csv_path, "r", encoding="utf-8-sig") as f:
        sample = f.read(1024)
        f.seek(0)
        try:
            delimiter = csv.Sniffer().sniff(sample, delimiters=",;\t").delimiter
        except csv.Error:
            delimiter = ","

        reader = csv.DictReader(f, delimiter=delimiter)
        if reader.fieldnames is None:
            raise ValueError("CSV file has no columns")
        missing = [c for c in REQUIRED_COLUMNS if c not in reader.fieldnames]
        if missing:
            raise ValueError(f"CSV file missing required columns: {', '.join(missing)}")

        for row_num, row in enumerate(reader, start=2):
            department = (row.get("department") or "").strip()
            if not department:
                result.errors.append(f"Row {row_num}: Missing department")
                continue
            try:
                base_salary = parse_amount(row.get("base_salary") or "")
                overtime_hours = _optional_amount(row, "overtime_hours") or ZERO
                setups = allowance_setups(
                    transport=_optional_amount(row, "transport"),
                    meal=_optional_amount(row, "meal"),
                )
            except ValueError as e:
                result.errors.append(f"Row {row_num}: {e}")
                continue
            if base_salary <= 0:
                result.errors.append(f"Row {row_num}: Base salary must be positive")
                continue

            slip = calculate_full_payroll(base_salary, setups=setups, overtime_hours=overtime_hours)
            result.records.append(EmployeePayroll(department, slip))

    logger.info(
        "Read %d employees from %s (%d rows skipped)",
        len(result.records),
        csv_path.name,
        len(result.errors),
    )
    return result
