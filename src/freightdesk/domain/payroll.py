"""Monthly payroll: BPJS contributions, PPh21 estimate and pay slips."""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from freightdesk.domain.entities import ValidationResult
from freightdesk.utils.amount_parser import round_rupiah, to_decimal
from freightdesk.utils.date_parser import month_bounds

MONTH_NAMES_ID = (
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
)

# Percentages of the contribution base; None means the side doesn't pay.
BPJS_RATES = {
    "kesehatan": {"employee": Decimal("1"), "company": Decimal("4"), "max_base": Decimal("12000000")},
    "jht": {"employee": Decimal("2"), "company": Decimal("3.7"), "max_base": None},
    "jp": {"employee": Decimal("1"), "company": Decimal("2"), "max_base": Decimal("9559600")},
    "jkk": {"employee": None, "company": Decimal("0.24"), "max_base": None},
    "jkm": {"employee": None, "company": Decimal("0.3"), "max_base": None},
}

MONTHLY_WORK_HOURS = Decimal("173")
OVERTIME_MULTIPLIER = Decimal("1.5")
MONTHLY_PTKP = Decimal("4500000")

# (bracket width, rate); the last bracket is open-ended
PPH21_BRACKETS = (
    (Decimal("5000000"), Decimal("0.05")),
    (Decimal("15000000"), Decimal("0.15")),
    (Decimal("20000000"), Decimal("0.25")),
    (None, Decimal("0.30")),
)

EARNING = "earning"
DEDUCTION = "deduction"
BENEFIT = "benefit"


@dataclass(frozen=True)
class PayrollComponent:
    """Line type that can appear on a pay slip."""

    id: int
    code: str
    name: str
    component_type: str
    calculation_type: str = "fixed"
    default_amount: Decimal = Decimal("0")
    percentage_rate: Decimal = Decimal("0")
    percentage_of: str = "base_salary"
    is_active: bool = True


@dataclass(frozen=True)
class EmployeeComponentSetup:
    """Per-employee override of a component's amount or rate."""

    component_id: int
    custom_amount: Optional[Decimal] = None
    custom_rate: Optional[Decimal] = None
    is_active: bool = True


@dataclass(frozen=True)
class PayrollItem:
    component_id: int
    code: str
    name: str
    amount: Decimal


@dataclass(frozen=True)
class PayrollResult:
    earnings: list[PayrollItem]
    deductions: list[PayrollItem]
    company_contributions: list[PayrollItem]
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    total_company_cost: Decimal


@dataclass(frozen=True)
class AttendanceSummary:
    work_days: int
    present_days: int
    absent_days: int = 0
    leave_days: int = 0
    overtime_hours: Decimal = field(default_factory=lambda: Decimal("0"))


DEFAULT_COMPONENTS = (
    PayrollComponent(1, "base_salary", "Gaji Pokok", EARNING),
    PayrollComponent(2, "overtime", "Lembur", EARNING),
    PayrollComponent(3, "transport_allowance", "Tunjangan Transport", EARNING),
    PayrollComponent(4, "meal_allowance", "Tunjangan Makan", EARNING),
    PayrollComponent(10, "bpjs_kes_emp", "BPJS Kesehatan (Karyawan)", DEDUCTION),
    PayrollComponent(11, "bpjs_jht_emp", "BPJS JHT (Karyawan)", DEDUCTION),
    PayrollComponent(12, "bpjs_jp_emp", "BPJS JP (Karyawan)", DEDUCTION),
    PayrollComponent(13, "pph21", "PPh 21", DEDUCTION),
    PayrollComponent(20, "bpjs_kes_com", "BPJS Kesehatan (Perusahaan)", BENEFIT),
    PayrollComponent(21, "bpjs_jht_com", "BPJS JHT (Perusahaan)", BENEFIT),
    PayrollComponent(22, "bpjs_jkk", "BPJS JKK", BENEFIT),
    PayrollComponent(23, "bpjs_jkm", "BPJS JKM", BENEFIT),
)

# Component code -> (BPJS program, employee share)
_BPJS_COMPONENTS = {
    "bpjs_kes_emp": ("kesehatan", True),
    "bpjs_jht_emp": ("jht", True),
    "bpjs_jp_emp": ("jp", True),
    "bpjs_kes_com": ("kesehatan", False),
    "bpjs_jht_com": ("jht", False),
    "bpjs_jkk": ("jkk", False),
    "bpjs_jkm": ("jkm", False),
}


def generate_period_name(year: int, month: int) -> str:
    """Indonesian period name, e.g. "Desember 2025"."""
    if month < 1 or month > 12:
        raise ValueError("Month must be between 1 and 12")
    return f"{MONTH_NAMES_ID[month - 1]} {year}"


def get_period_dates(year: int, month: int) -> tuple[date, date]:
    return month_bounds(year, month)


def calculate_bpjs(base_salary: Decimal, program: str, is_employee: bool) -> Decimal:
    """Contribution for one BPJS program, rounded to whole rupiah.

    Kesehatan and JP are computed on a capped base. JKK and JKM are paid by
    the company only.
    """
    base_salary = to_decimal(base_salary)
    if base_salary <= 0:
        return Decimal("0")

    rates = BPJS_RATES[program]
    rate = rates["employee" if is_employee else "company"]
    if rate is None:
        return Decimal("0")

    base = base_salary
    if rates["max_base"] is not None:
        base = min(base, rates["max_base"])
    return round_rupiah(base * rate / Decimal("100"))


def calculate_simplified_pph21(gross_salary: Decimal) -> Decimal:
    """Monthly income tax estimate above a single-person PTKP."""
    remaining = to_decimal(gross_salary) - MONTHLY_PTKP
    if remaining <= 0:
        return Decimal("0")

    tax = Decimal("0")
    for width, rate in PPH21_BRACKETS:
        portion = remaining if width is None else min(remaining, width)
        tax += portion * rate
        remaining -= portion
        if remaining <= 0:
            break
    return round_rupiah(tax)


def _setup_for(component: PayrollComponent, setups: Sequence[EmployeeComponentSetup]):
    for setup in setups:
        if setup.component_id == component.id and setup.is_active:
            return setup
    return None


def _configured_amount(
    component: PayrollComponent,
    setups: Sequence[EmployeeComponentSetup],
    base_salary: Decimal,
    gross_salary: Decimal,
) -> Decimal:
    setup = _setup_for(component, setups)
    if component.calculation_type == "fixed":
        if setup is not None and setup.custom_amount is not None:
            return to_decimal(setup.custom_amount)
        return to_decimal(component.default_amount)
    if component.calculation_type == "percentage":
        if setup is not None and setup.custom_rate is not None:
            rate = to_decimal(setup.custom_rate)
        else:
            rate = to_decimal(component.percentage_rate)
        base = base_salary if component.percentage_of == "base_salary" else gross_salary
        return round_rupiah(base * rate / Decimal("100"))
    return Decimal("0")


def _active(components: Iterable[PayrollComponent], component_type: str):
    return [c for c in components if c.component_type == component_type and c.is_active]


def _item(component: PayrollComponent, amount: Decimal) -> PayrollItem:
    return PayrollItem(component.id, component.code, component.name, amount)


def calculate_earnings(
    base_salary: Decimal,
    components: Sequence[PayrollComponent] = DEFAULT_COMPONENTS,
    setups: Sequence[EmployeeComponentSetup] = (),
    overtime_hours: Decimal = Decimal("0"),
) -> list[PayrollItem]:
    """Earning lines of a pay slip; only positive amounts are listed.

    Overtime pays 1.5x the hourly rate, which is the base salary over 173
    hours. Percentage earnings are always taken on the base salary.
    """
    base_salary = to_decimal(base_salary)
    overtime_hours = to_decimal(overtime_hours)
    earnings = []
    for component in _active(components, EARNING):
        if component.code == "base_salary":
            amount = base_salary
        elif component.code == "overtime":
            amount = Decimal("0")
            if overtime_hours > 0 and base_salary > 0:
                hourly = base_salary / MONTHLY_WORK_HOURS
                amount = round_rupiah(hourly * OVERTIME_MULTIPLIER * overtime_hours)
        else:
            # gross is not known yet, so gross-based earnings come to 0
            amount = _configured_amount(component, setups, base_salary, Decimal("0"))
        if amount > 0:
            earnings.append(_item(component, amount))
    return earnings


def calculate_deductions(
    gross_salary: Decimal,
    base_salary: Decimal,
    components: Sequence[PayrollComponent] = DEFAULT_COMPONENTS,
    setups: Sequence[EmployeeComponentSetup] = (),
) -> list[PayrollItem]:
    """Deduction lines: BPJS employee shares, PPh21 and configured items."""
    gross_salary = to_decimal(gross_salary)
    base_salary = to_decimal(base_salary)
    deductions = []
    for component in _active(components, DEDUCTION):
        if component.code in _BPJS_COMPONENTS:
            program, is_employee = _BPJS_COMPONENTS[component.code]
            amount = calculate_bpjs(base_salary, program, is_employee)
        elif component.code == "pph21":
            amount = calculate_simplified_pph21(gross_salary)
        else:
            amount = _configured_amount(component, setups, base_salary, gross_salary)
        if amount > 0:
            deductions.append(_item(component, amount))
    return deductions


def calculate_company_contributions(
    gross_salary: Decimal,
    base_salary: Decimal,
    components: Sequence[PayrollComponent] = DEFAULT_COMPONENTS,
    setups: Sequence[EmployeeComponentSetup] = (),
) -> list[PayrollItem]:
    """Benefit lines paid by the company on top of gross salary."""
    gross_salary = to_decimal(gross_salary)
    base_salary = to_decimal(base_salary)
    contributions = []
    for component in _active(components, BENEFIT):
        if component.code in _BPJS_COMPONENTS:
            program, is_employee = _BPJS_COMPONENTS[component.code]
            amount = calculate_bpjs(base_salary, program, is_employee)
        else:
            amount = _configured_amount(component, setups, base_salary, gross_salary)
        if amount > 0:
            contributions.append(_item(component, amount))
    return contributions


def sum_component_amounts(items: Iterable[PayrollItem]) -> Decimal:
    return sum((item.amount for item in items), Decimal("0"))


def allowance_setups(
    transport: Optional[Decimal] = None, meal: Optional[Decimal] = None
) -> list[EmployeeComponentSetup]:
    """Overrides for the default transport and meal allowances; None keeps the default."""
    setups = []
    for code, amount in (("transport_allowance", transport), ("meal_allowance", meal)):
        if amount is not None:
            component = next(c for c in DEFAULT_COMPONENTS if c.code == code)
            setups.append(EmployeeComponentSetup(component.id, custom_amount=amount))
    return setups


def calculate_full_payroll(
    base_salary: Decimal,
    components: Sequence[PayrollComponent] = DEFAULT_COMPONENTS,
    setups: Sequence[EmployeeComponentSetup] = (),
    overtime_hours: Decimal = Decimal("0"),
) -> PayrollResult:
    """Compute a complete pay slip for one employee.

    Args:
        base_salary: Monthly base salary
        components: Active and inactive payroll components
        setups: Per-employee overrides
        overtime_hours: Overtime hours worked in the period

    Returns:
        PayrollResult with net salary (gross less deductions) and total
        company cost (gross plus contributions)
    """
    earnings = calculate_earnings(base_salary, components, setups, overtime_hours)
    gross = sum_component_amounts(earnings)
    deductions = calculate_deductions(gross, base_salary, components, setups)
    contributions = calculate_company_contributions(gross, base_salary, components, setups)
    total_deductions = sum_component_amounts(deductions)
    total_contributions = sum_component_amounts(contributions)
    return PayrollResult(
        earnings=earnings,
        deductions=deductions,
        company_contributions=contributions,
        gross_salary=gross,
        total_deductions=total_deductions,
        net_salary=gross - total_deductions,
        total_company_cost=gross + total_contributions,
    )


def validate_payroll_period(year: int, month: int, pay_date: Optional[date]) -> ValidationResult:
    errors = []
    year_ok = bool(year) and 2020 <= year <= 2100
    month_ok = bool(month) and 1 <= month <= 12
    if not year_ok:
        errors.append("Invalid year")
    if not month_ok:
        errors.append("Invalid month")
    if pay_date is None:
        errors.append("Pay date is required")
    elif year_ok and month_ok:
        _, end_date = get_period_dates(year, month)
        if pay_date < end_date:
            errors.append("Pay date must be on or after the period end date")
    return ValidationResult.from_errors(errors)


def get_default_attendance_summary(year: int, month: int) -> AttendanceSummary:
    """Full attendance over the weekdays of a month."""
    start, end = get_period_dates(year, month)
    work_days = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            work_days += 1
        current += timedelta(days=1)
    return AttendanceSummary(work_days=work_days, present_days=work_days)
