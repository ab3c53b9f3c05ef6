#!/usr/bin/env python3
"""Seed script – creates a ``demo`` schema with orders and a few routines.

The routines cover each invocation style the server supports:

* ``demo.AddTax``        scalar function
* ``demo.OrdersSince``   inline table-valued function
* ``demo.UpdateOrder``   procedure without row sets
* ``demo.OrderSummary``  procedure with two row sets and an OUTPUT parameter

Run against the database named in DATABASE_URL_SYNC:
    python -m scripts.seed
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from decimal import Decimal

from faker import Faker
from sqlalchemy import DateTime, Integer, Numeric, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from mssql_mcp.config import settings

fake = Faker()
Faker.seed(42)
random.seed(42)

SCHEMA = "demo"
STATUSES = ["pending", "paid", "shipped", "cancelled"]
ORDER_COUNT = 50


class Base(DeclarativeBase):
    pass


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer: Mapped[str] = mapped_column(String(120), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    order_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)


# ---------------------------------------------------------------------------
# Routine definitions (one batch each)
# ---------------------------------------------------------------------------

ROUTINES = [
    f"""
CREATE OR ALTER FUNCTION {SCHEMA}.AddTax(@amount DECIMAL(38,10), @rate DECIMAL(38,10))
RETURNS DECIMAL(18,2)
AS
BEGIN
    RETURN CAST(@amount * (1 + @rate) AS DECIMAL(18,2));
END
""",
    f"""
CREATE OR ALTER FUNCTION {SCHEMA}.OrdersSince(@since DATETIME2)
RETURNS TABLE
AS
RETURN (
    SELECT id, customer, amount, status, order_date
    FROM {SCHEMA}.orders
    WHERE order_date >= @since
)
""",
    f"""
CREATE OR ALTER PROCEDURE {SCHEMA}.UpdateOrder
    @OrderId INT = NULL,
    @Status NVARCHAR(20) = N'shipped'
AS
BEGIN
    SET NOCOUNT ON;
    UPDATE {SCHEMA}.orders SET status = @Status
    WHERE @OrderId IS NULL OR id = @OrderId;
    RETURN 0;
END
""",
    f"""
CREATE OR ALTER PROCEDURE {SCHEMA}.OrderSummary
    @Status NVARCHAR(20),
    @Total DECIMAL(18,2) OUTPUT
AS
BEGIN
    SET NOCOUNT ON;
    SELECT id, customer, amount, order_date
    FROM {SCHEMA}.orders WHERE status = @Status ORDER BY order_date;

    SELECT status, COUNT(*) AS orders, SUM(amount) AS total
    FROM {SCHEMA}.orders GROUP BY status ORDER BY status;

    SELECT @Total = COALESCE(SUM(amount), 0) FROM {SCHEMA}.orders WHERE status = @Status;
    RETURN @@ROWCOUNT;
END
""",
]


# ---------------------------------------------------------------------------
# Seed functions
# ---------------------------------------------------------------------------


def seed_orders(session: Session) -> int:
    """Generate ORDER_COUNT orders spread over the last 90 days."""
    start = datetime.now().replace(microsecond=0) - timedelta(days=90)
    for _ in range(ORDER_COUNT):
        session.add(
            Order(
                customer=fake.company(),
                amount=Decimal(str(round(random.uniform(10.0, 5_000.0), 2))),
                status=random.choice(STATUSES),
                order_date=start + timedelta(minutes=random.randint(0, 90 * 24 * 60)),
            )
        )
    session.flush()
    return ORDER_COUNT


def install_routines(engine) -> int:
    with engine.begin() as conn:
        for ddl in ROUTINES:
            conn.exec_driver_sql(ddl)
    return len(ROUTINES)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> None:
    print("Seeding database …")
    engine = create_engine(settings.database_url_sync, echo=False)

    with engine.begin() as conn:
        # CREATE SCHEMA must be alone in its batch
        conn.exec_driver_sql(f"IF SCHEMA_ID('{SCHEMA}') IS NULL EXEC('CREATE SCHEMA {SCHEMA}')")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        session.execute(Order.__table__.delete())
        session.commit()

        n_orders = seed_orders(session)
        print(f"  {n_orders} orders")
        session.commit()

    n_routines = install_routines(engine)
    print(f"  {n_routines} routines")
    print("Seeding complete!")


if __name__ == "__main__":
    main()
