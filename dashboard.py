"""Summary figures for the dashboard page."""

import calendar
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Tuple

from pymongo.database import Database

from database import get_documents
from errors import ValidationError

PERIODS = ("week", "month", "quarter", "year")


def _shift_months(dt: datetime, months: int) -> datetime:
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def _back(dt: datetime, period: str) -> datetime:
    if period == "week":
        return dt - timedelta(days=7)
    if period == "month":
        return _shift_months(dt, -1)
    if period == "quarter":
        return _shift_months(dt, -3)
    return _shift_months(dt, -12)


def period_bounds(period: str, end: datetime) -> Tuple[datetime, datetime, datetime, datetime]:
    """Return (start, end, previous_start, previous_end) for a reporting period."""
    if period not in PERIODS:
        raise ValidationError(f"Unknown period: {period}")
    start = _back(end, period)
    return start, end, _back(start, period), _back(end, period)


def growth(current: float, previous: float) -> float:
    if previous == 0:
        return 100
    return round((current - previous) / previous * 100, 1)


def _revenue(db: Database, start: datetime, end: datetime) -> float:
    rows = list(db["orders"].aggregate([
        {"$match": {"created_at": {"$gte": start, "$lte": end}}},
        {"$group": {"_id": None, "total": {"$sum": "$total_amount"}}},
    ]))
    return rows[0]["total"] if rows else 0


def _top_products(db: Database) -> List[Dict[str, Any]]:
    rows = list(db["orders"].aggregate([
        {"$unwind": "$items"},
        {"$group": {
            "_id": "$items.product",
            "name": {"$first": "$items.name"},
            "total_sales": {"$sum": "$items.quantity"},
            "total_revenue": {"$sum": {"$multiply": ["$items.price", "$items.quantity"]}},
        }},
        {"$sort": {"total_revenue": -1}},
        {"$limit": 5},
    ]))
    products = {p["_id"]: p for p in db["products"].find({"_id": {"$in": [r["_id"] for r in rows]}}, {"category": 1})}
    category_ids = [p.get("category") for p in products.values()]
    names = {c["_id"]: c["name"] for c in db["categories"].find({"_id": {"$in": category_ids}}, {"name": 1})}
    out = []
    for r in rows:
        category = names.get(products.get(r["_id"], {}).get("category"), "Uncategorized")
        out.append({
            "id": str(r["_id"]),
            "name": r["name"],
            "category": category,
            "sales": r["total_sales"],
            "revenue": r["total_revenue"],
        })
    return out


def summary(db: Database, period: str = "month") -> Dict[str, Any]:
    # stored timestamps come back as naive UTC
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    start, end, prev_start, prev_end = period_bounds(period, now)

    orders = db["orders"]
    total_orders = orders.count_documents({"created_at": {"$gte": start, "$lte": end}})
    previous_orders = orders.count_documents({"created_at": {"$gte": prev_start, "$lte": prev_end}})
    revenue = _revenue(db, start, end)
    previous_revenue = _revenue(db, prev_start, prev_end)

    activities = [
        {
            "id": str(o["_id"]),
            "title": "New order received",
            "description": f"Order {o['order_number']} from {o['customer']['name']}",
            "timestamp": o["created_at"],
            "type": "order",
        }
        for o in get_documents(db, "orders", limit=5)
    ] + [
        {
            "id": str(t["_id"]),
            "title": "Payment received" if t["type"] == "Credit" else "Payment made",
            "description": t["description"],
            "timestamp": t["created_at"],
            "type": "payment",
        }
        for t in get_documents(db, "transactions", limit=5)
    ]
    activities.sort(key=lambda a: a["timestamp"], reverse=True)

    return {
        "total_revenue": revenue,
        "total_orders": total_orders,
        "total_products": db["products"].count_documents({}),
        "total_customers": len(orders.distinct("customer.email")),
        "total_employees": db["users"].count_documents({}),
        "revenue_growth": growth(revenue, previous_revenue),
        "orders_growth": growth(total_orders, previous_orders),
        "recent_activities": activities[:5],
        "top_products": _top_products(db),
    }
