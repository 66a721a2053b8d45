"""
List queries with a matching summary.

Every ``get-all`` route goes through ``run_query``. The row query, the total
count and the summary aggregates are all built from one predicate, so the
figures shown under a table always describe exactly the rows that can be
paged through in it, search term included.

Field names arriving from clients are checked against the allow-list of the
entity's ``EntityReport`` before they reach SQL.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import JSON, DateTime, Enum, String, Text, and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.core.exceptions import ValidationError
from retail_backend.core.logging_config import get_logger
from retail_backend.models.customer_models import Customer
from retail_backend.models.finance_models import Expense, VendorTransaction
from retail_backend.models.order_models import PreOrder, Sale, SalesReturn
from retail_backend.models.product_models import Product, ProductPurchase
from retail_backend.schemas.query_schemas import (
    FilterAndPagination, FilterClause, ListResponse, QueryPlan, QueryResult
)

logger = get_logger("services.reporting")

_TOTAL_COUNT = "_total_count"


@dataclass(frozen=True)
class EntityReport:
    name: str
    model: Any
    fields: Tuple[str, ...]
    searchable: Tuple[str, ...] = ()
    # summary key -> factory of the aggregate expression
    summary: Dict[str, Callable[[], Any]] = field(default_factory=dict)


def sum_of(expr):
    return lambda: func.coalesce(func.sum(expr), 0)


def margin_of(total, cost, positive: bool):
    """
    Profit (``positive``) or loss as a non-negative sum. Each row counts on
    one side only, so ``total_profit - total_loss`` is the net margin.
    """
    diff = total - cost if positive else cost - total
    return lambda: func.coalesce(func.sum(case((diff > 0, diff), else_=0)), 0)


_ORDER_FIELDS = (
    "id", "invoice_no", "customer", "customer_id", "customer_phone", "salesman",
    "salesman_id", "salesman_phone", "products", "sold_date", "sold_date_string",
    "reference_no", "discount_type", "discount_amount", "discount_percent",
    "shipping_charge", "sub_total", "total", "total_purchase_price", "status",
    "month", "year", "created_at", "updated_at",
)

REPORTS: Dict[str, EntityReport] = {
    "products": EntityReport(
        name="products",
        model=Product,
        fields=(
            "id", "product_code", "name", "sku", "model", "others", "description",
            "category", "subcategory", "brand", "unit", "quantity", "sold_quantity",
            "purchase_price", "sale_price", "min_quantity", "status",
            "created_at_string", "created_at", "updated_at",
        ),
        searchable=("name", "sku", "model"),
        summary={
            "total_quantity": sum_of(Product.quantity),
            "sum_purchase_price": sum_of(Product.purchase_price),
            "sum_sale_price": sum_of(Product.sale_price),
            "total_purchase_price": sum_of(Product.purchase_price * Product.quantity),
            "total_sale_price": sum_of(Product.sale_price * Product.quantity),
        },
    ),
    "sales": EntityReport(
        name="sales",
        model=Sale,
        fields=_ORDER_FIELDS,
        searchable=("invoice_no", "customer_phone", "salesman_phone"),
        summary={
            "grand_total": sum_of(Sale.total),
            "total_purchase_price": sum_of(Sale.total_purchase_price),
            "total_profit": margin_of(Sale.total, Sale.total_purchase_price, positive=True),
            "total_loss": margin_of(Sale.total, Sale.total_purchase_price, positive=False),
        },
    ),
    "pre_orders": EntityReport(
        name="pre_orders",
        model=PreOrder,
        fields=_ORDER_FIELDS,
        searchable=("invoice_no", "customer_phone", "salesman_phone"),
        summary={"grand_total": sum_of(PreOrder.total)},
    ),
    "returns": EntityReport(
        name="returns",
        model=SalesReturn,
        fields=(
            "id", "invoice_no", "sale_id", "customer", "customer_phone", "salesman",
            "products", "return_date", "return_date_string", "sub_total", "total",
            "month", "year", "created_at",
        ),
        searchable=("invoice_no", "customer_phone"),
        summary={"grand_total": sum_of(SalesReturn.total)},
    ),
    "expenses": EntityReport(
        name="expenses",
        model=Expense,
        fields=(
            "id", "date", "date_string", "expense_for", "description",
            "paid_amount", "due_amount", "created_at",
        ),
        searchable=("expense_for", "description"),
        summary={
            "total_paid_amount": sum_of(Expense.paid_amount),
            "total_due_amount": sum_of(Expense.due_amount),
        },
    ),
    "transactions": EntityReport(
        name="transactions",
        model=VendorTransaction,
        fields=(
            "id", "vendor", "vendor_name", "description", "paid_amount", "due_amount",
            "transaction_date", "transaction_date_string", "created_at",
        ),
        searchable=("description", "vendor_name"),
        summary={
            "total_paid": sum_of(VendorTransaction.paid_amount),
            "total_due": sum_of(VendorTransaction.due_amount),
        },
    ),
    "ledger": EntityReport(
        name="ledger",
        model=ProductPurchase,
        fields=(
            "id", "product_id", "product", "previous_quantity", "updated_quantity",
            "reason", "reference", "month", "year", "created_at_string", "created_at",
        ),
        searchable=("reason", "reference"),
    ),
    "customers": EntityReport(
        name="customers",
        model=Customer,
        fields=("id", "name", "phone", "email", "address", "created_at", "updated_at"),
        searchable=("name", "phone"),
    ),
}


def get_report(name: str) -> EntityReport:
    try:
        return REPORTS[name]
    except KeyError:
        raise ValidationError(f"Unknown report '{name}'")


# ---------------------------------------------------
# PREDICATE
# ---------------------------------------------------
def _column(report: EntityReport, name: str, purpose: str):
    if name not in report.fields:
        raise ValidationError(f"Unknown {purpose} field '{name}' for {report.name}")
    return getattr(report.model, name)


def _scalar_column(report: EntityReport, name: str, purpose: str):
    """An allow-listed column that can be compared; JSON snapshots cannot."""
    column = _column(report, name, purpose)
    if isinstance(column.type, JSON):
        raise ValidationError(f"Field '{name}' of {report.name} cannot be used to {purpose}")
    return column


def _coerce(column, value):
    """Bring a JSON value to the column's Python type."""
    if value is None:
        return None
    col_type = column.type
    if isinstance(col_type, Enum) and col_type.enum_class is not None:
        try:
            return col_type.enum_class(value)
        except ValueError:
            raise ValidationError(f"Invalid value '{value}' for '{column.key}'")
    if isinstance(col_type, DateTime) and isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            raise ValidationError(f"Invalid datetime '{value}' for '{column.key}'")
    if isinstance(col_type, DateTime) and isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    return value


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filter_condition(report: EntityReport, clause: FilterClause):
    column = _scalar_column(report, clause.field, "filter")

    if clause.op == "eq":
        value = _coerce(column, clause.value)
        return column.is_(None) if value is None else column == value
    if clause.op == "in":
        if not isinstance(clause.value, (list, tuple)):
            raise ValidationError(f"Filter 'in' on '{clause.field}' expects a list")
        return column.in_([_coerce(column, v) for v in clause.value])
    if clause.op == "contains":
        if not isinstance(column.type, (String, Text)):
            raise ValidationError(f"Filter 'contains' needs a text field, got '{clause.field}'")
        return column.ilike(f"%{_escape_like(str(clause.value))}%", escape="\\")
    if clause.op == "gte":
        return column >= _coerce(column, clause.value)
    if clause.op == "lte":
        return column <= _coerce(column, clause.value)
    raise ValidationError(f"Unsupported filter operator '{clause.op}'")


def build_predicate(report: EntityReport, plan: QueryPlan) -> list:
    """AND of the filter clauses, AND-ed with an OR of the search clauses."""
    conditions = [_filter_condition(report, clause) for clause in plan.filters]
    if plan.search and report.searchable:
        pattern = f"%{_escape_like(plan.search)}%"
        conditions.append(
            or_(*[getattr(report.model, name).ilike(pattern, escape="\\") for name in report.searchable])
        )
    return conditions


def _order_by(report: EntityReport, plan: QueryPlan) -> list:
    model = report.model
    if not plan.sort:
        return [model.created_at.desc(), model.id.desc()]

    clauses = []
    for key in plan.sort:
        column = _scalar_column(report, key.field, "sort")
        clauses.append(column.desc() if key.descending else column.asc())
    if "id" not in {key.field for key in plan.sort}:
        clauses.append(model.id.asc())
    return clauses


def _projection(report: EntityReport, plan: QueryPlan) -> list:
    names = plan.select or report.fields
    return [_column(report, name, "select").label(name) for name in names]


# ---------------------------------------------------
# SUMMARY
# ---------------------------------------------------
async def summarize(
    db: AsyncSession,
    model,
    conditions: List,
    expressions: Dict[str, Callable[[], Any]],
) -> Optional[Dict[str, float]]:
    """One aggregate statement over ``conditions``; ``None`` when no row matches."""
    if not expressions:
        return None
    stmt = select(
        func.count().label(_TOTAL_COUNT),
        *[factory().label(key) for key, factory in expressions.items()],
    ).select_from(model)
    if conditions:
        stmt = stmt.where(and_(*conditions))

    row = (await db.execute(stmt)).mappings().one()
    if not row[_TOTAL_COUNT]:
        return None
    return {key: float(row[key] or 0) for key in expressions}


# ---------------------------------------------------
# QUERY
# ---------------------------------------------------
async def run_query(db: AsyncSession, report: EntityReport, plan: QueryPlan) -> QueryResult:
    model = report.model
    conditions = build_predicate(report, plan)
    columns = _projection(report, plan)
    order_by = _order_by(report, plan)

    stmt = select(*columns).select_from(model)
    if conditions:
        stmt = stmt.where(and_(*conditions))
    stmt = stmt.order_by(*order_by)

    if plan.pagination is not None:
        page = plan.pagination
        paged = (
            stmt.add_columns(func.count().over().label(_TOTAL_COUNT))
            .limit(page.page_size)
            .offset(page.offset)
        )
        result = (await db.execute(paged)).mappings().all()
        if result:
            total_count = result[0][_TOTAL_COUNT]
        else:
            count_stmt = select(func.count()).select_from(model)
            if conditions:
                count_stmt = count_stmt.where(and_(*conditions))
            total_count = await db.scalar(count_stmt)
        rows = [{k: v for k, v in r.items() if k != _TOTAL_COUNT} for r in result]
    else:
        result = (await db.execute(stmt)).mappings().all()
        rows = [dict(r) for r in result]
        total_count = len(rows)

    summary = None
    if total_count:
        summary = await summarize(db, model, conditions, report.summary)

    logger.debug(
        "report_query",
        extra={
            "report": report.name,
            "filters": len(plan.filters),
            "search": plan.search,
            "total_count": total_count,
            "returned": len(rows),
        },
    )
    return QueryResult(rows=rows, total_count=total_count or 0, summary=summary)


async def get_all(
    db: AsyncSession, report_name: str, query: FilterAndPagination, search: Optional[str] = None
) -> ListResponse:
    report = get_report(report_name)
    result = await run_query(db, report, query.to_plan(search))
    return ListResponse(
        message=f"{report.name.replace('_', ' ').capitalize()} retrieved successfully",
        total=result.total_count,
        data=result.rows,
        summary=result.summary,
    )
