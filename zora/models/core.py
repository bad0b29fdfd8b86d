from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Date, Integer, Index, text
)
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum as PyEnum
from datetime import datetime, date
from decimal import Decimal
from zora.db import Base
from zora.models.common import IdMixin, TSMixin, utcnow

MONEY = Numeric(12, 2)
QTY = Numeric(12, 3)

# ── Enums ───────────────────────────────────────────────────────────────────
class UserRole(PyEnum):
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"

class PaymentMethod(PyEnum):
    CASH = "CASH"
    TRANSFER = "TRANSFER"
    CREDIT = "CREDIT"  # fiado; only valid on orders and expenses

class PriceSegment(PyEnum):
    PUBLIC = "PUBLIC"
    SAN_ALAS = "SAN_ALAS"
    EMPLOYEES = "EMPLOYEES"

class SaleStatus(PyEnum):
    COMPLETED = "COMPLETED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"

class OrderStatus(PyEnum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"

class MoveType(PyEnum):
    IN = "IN"
    OUT = "OUT"
    ADJUST = "ADJUST"  # inventory only; sets the absolute level

class CashRef(PyEnum):
    SALE = "SALE"
    ORDER_PAYMENT = "ORDER_PAYMENT"
    RETURN = "RETURN"
    EXPENSE = "EXPENSE"
    LOAN = "LOAN"
    LOAN_PAYMENT = "LOAN_PAYMENT"
    MANUAL = "MANUAL"
    SALE_REVERSAL = "SALE_REVERSAL"
    RETURN_REVERSAL = "RETURN_REVERSAL"
    EXPENSE_REVERSAL = "EXPENSE_REVERSAL"

class StockRef(PyEnum):
    SALE = "SALE"
    SALE_DELETE = "SALE_DELETE"
    ORDER = "ORDER"
    ORDER_CANCEL = "ORDER_CANCEL"
    RETURN = "RETURN"
    RETURN_CANCEL = "RETURN_CANCEL"
    PURCHASE = "PURCHASE"
    PURCHASE_DELETE = "PURCHASE_DELETE"
    MANUAL = "MANUAL"

class Business(PyEnum):
    DISTRIBUTOR = "DISTRIBUTOR"
    SAN_ALAS = "SAN_ALAS"
    EMPLOYEES = "EMPLOYEES"

class LoanType(PyEnum):
    EMPLOYEE = "EMPLOYEE"
    THIRD_PARTY = "THIRD_PARTY"

class LoanStatus(PyEnum):
    ACTIVE = "ACTIVE"
    PAID = "PAID"
    CANCELLED = "CANCELLED"

# ── Identity ────────────────────────────────────────────────────────────────
class User(Base, IdMixin, TSMixin):
    __tablename__ = "user"
    username: Mapped[str] = mapped_column(String(80), unique=True)
    name: Mapped[str] = mapped_column(String(160))
    email: Mapped[str | None] = mapped_column(String(160))
    pass_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), default=UserRole.OPERATOR)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

class Warehouse(Base, IdMixin, TSMixin):
    __tablename__ = "warehouse"
    name: Mapped[str] = mapped_column(String(120), unique=True)
    address: Mapped[str | None] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

# ── Catalog ─────────────────────────────────────────────────────────────────
class Product(Base, IdMixin, TSMixin):
    __tablename__ = "product"
    name: Mapped[str] = mapped_column(String(160))
    description: Mapped[str | None] = mapped_column(Text)
    sku: Mapped[str | None] = mapped_column(String(60))
    barcode: Mapped[str | None] = mapped_column(String(60), unique=True)
    cost: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    default_price: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    price_san_alas: Mapped[Decimal | None] = mapped_column(MONEY)
    price_employees: Mapped[Decimal | None] = mapped_column(MONEY)
    base_unit: Mapped[str] = mapped_column(String(20), default="unit")
    base_stock: Mapped[Decimal] = mapped_column(QTY, default=Decimal("0"))
    min_stock: Mapped[Decimal] = mapped_column(QTY, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

class ProductPresentation(Base, IdMixin, TSMixin):
    __tablename__ = "product_presentation"
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"), index=True)
    name: Mapped[str] = mapped_column(String(80))
    quantity: Mapped[Decimal] = mapped_column(QTY, default=Decimal("1"))  # base units per pack
    price: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    price_san_alas: Mapped[Decimal | None] = mapped_column(MONEY)
    price_employees: Mapped[Decimal | None] = mapped_column(MONEY)
    barcode: Mapped[str | None] = mapped_column(String(60), unique=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

# ── Sales ───────────────────────────────────────────────────────────────────
class Sale(Base, IdMixin, TSMixin):
    __tablename__ = "sale"
    sale_number: Mapped[int] = mapped_column(Integer, unique=True)
    warehouse_id: Mapped[str] = mapped_column(String(36), ForeignKey("warehouse.id"))
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    cash_session_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("cash_session.id"), index=True)
    order_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("customer_order.id"))
    subtotal: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    delivery_fee: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), default=PaymentMethod.CASH)
    price_segment: Mapped[PriceSegment] = mapped_column(Enum(PriceSegment), default=PriceSegment.PUBLIC)
    cash_received: Mapped[Decimal | None] = mapped_column(MONEY)
    change: Mapped[Decimal | None] = mapped_column(MONEY)
    customer_name: Mapped[str | None] = mapped_column(String(160))
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[SaleStatus] = mapped_column(Enum(SaleStatus), default=SaleStatus.COMPLETED)

class SaleItem(Base, IdMixin, TSMixin):
    __tablename__ = "sale_item"
    sale_id: Mapped[str] = mapped_column(String(36), ForeignKey("sale.id"), index=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"))
    presentation_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("product_presentation.id"))
    quantity: Mapped[Decimal] = mapped_column(QTY)
    base_quantity: Mapped[Decimal] = mapped_column(QTY)
    unit_price: Mapped[Decimal] = mapped_column(MONEY)
    unit_cost: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))  # per base unit, at sale time
    subtotal: Mapped[Decimal] = mapped_column(MONEY)

# ── Credit sales (fiados) ───────────────────────────────────────────────────
class Order(Base, IdMixin, TSMixin):
    __tablename__ = "customer_order"
    order_number: Mapped[int] = mapped_column(Integer, unique=True)
    customer_name: Mapped[str] = mapped_column(String(160))
    customer_phone: Mapped[str | None] = mapped_column(String(40))
    notes: Mapped[str | None] = mapped_column(Text)
    due_date: Mapped[date | None] = mapped_column(Date)
    warehouse_id: Mapped[str] = mapped_column(String(36), ForeignKey("warehouse.id"))
    price_segment: Mapped[PriceSegment] = mapped_column(Enum(PriceSegment), default=PriceSegment.PUBLIC)
    total: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PENDING)
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    cash_session_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("cash_session.id"), index=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    payment_method: Mapped[PaymentMethod | None] = mapped_column(Enum(PaymentMethod))
    paid_by_user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))

class OrderItem(Base, IdMixin, TSMixin):
    __tablename__ = "customer_order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("customer_order.id"), index=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"))
    product_name: Mapped[str] = mapped_column(String(160))
    presentation_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("product_presentation.id"))
    presentation_name: Mapped[str | None] = mapped_column(String(80))
    quantity: Mapped[Decimal] = mapped_column(QTY)
    base_quantity: Mapped[Decimal] = mapped_column(QTY)
    unit_price: Mapped[Decimal] = mapped_column(MONEY)
    subtotal: Mapped[Decimal] = mapped_column(MONEY)

# ── Returns ─────────────────────────────────────────────────────────────────
class ProductReturn(Base, IdMixin, TSMixin):
    __tablename__ = "product_return"
    return_number: Mapped[int] = mapped_column(Integer, unique=True)
    warehouse_id: Mapped[str] = mapped_column(String(36), ForeignKey("warehouse.id"))
    sale_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("sale.id"), index=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"))
    presentation_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("product_presentation.id"))
    quantity: Mapped[Decimal] = mapped_column(QTY)
    base_quantity: Mapped[Decimal] = mapped_column(QTY)
    unit_price: Mapped[Decimal] = mapped_column(MONEY)
    total: Mapped[Decimal] = mapped_column(MONEY)
    reason: Mapped[str] = mapped_column(String(80))
    notes: Mapped[str | None] = mapped_column(Text)
    refund_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), default=PaymentMethod.CASH)
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))

# ── Cash drawer ─────────────────────────────────────────────────────────────
class CashSession(Base, IdMixin, TSMixin):
    __tablename__ = "cash_session"
    __table_args__ = (
        # one open session per warehouse
        Index(
            "uq_cash_session_open", "warehouse_id", unique=True,
            sqlite_where=text("closed_at IS NULL"),
            postgresql_where=text("closed_at IS NULL"),
        ),
    )
    warehouse_id: Mapped[str] = mapped_column(String(36), ForeignKey("warehouse.id"))
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    opened_by_user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    opening_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closed_by_user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    closing_amount: Mapped[Decimal | None] = mapped_column(MONEY)
    expected_cash: Mapped[Decimal | None] = mapped_column(MONEY)
    cash_difference: Mapped[Decimal | None] = mapped_column(MONEY)
    total_sales: Mapped[Decimal | None] = mapped_column(MONEY)
    total_cash: Mapped[Decimal | None] = mapped_column(MONEY)
    total_transfer: Mapped[Decimal | None] = mapped_column(MONEY)
    total_fiados: Mapped[Decimal | None] = mapped_column(MONEY)
    sales_count: Mapped[int | None] = mapped_column(Integer)
    notes: Mapped[str | None] = mapped_column(Text)

class CashMovement(Base, IdMixin, TSMixin):
    __tablename__ = "cash_movement"
    session_id: Mapped[str] = mapped_column(String(36), ForeignKey("cash_session.id"), index=True)
    type: Mapped[MoveType] = mapped_column(Enum(MoveType))  # IN/OUT
    amount: Mapped[Decimal] = mapped_column(MONEY)
    reference_type: Mapped[CashRef] = mapped_column(Enum(CashRef))
    reference_id: Mapped[str | None] = mapped_column(String(36), index=True)
    notes: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))

# ── Stock ledger ────────────────────────────────────────────────────────────
class InventoryMovement(Base, IdMixin, TSMixin):
    __tablename__ = "inventory_movement"
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"), index=True)
    warehouse_id: Mapped[str] = mapped_column(String(36), ForeignKey("warehouse.id"))
    type: Mapped[MoveType] = mapped_column(Enum(MoveType))
    quantity: Mapped[Decimal] = mapped_column(QTY)  # signed delta in base units
    stock_after: Mapped[Decimal] = mapped_column(QTY)
    reference_type: Mapped[StockRef] = mapped_column(Enum(StockRef))
    reference_id: Mapped[str | None] = mapped_column(String(36), index=True)
    unit_cost: Mapped[Decimal | None] = mapped_column(MONEY)
    notes: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))

class Notification(Base, IdMixin, TSMixin):
    __tablename__ = "notification"
    type: Mapped[str] = mapped_column(String(40))  # LOW_STOCK
    message: Mapped[str] = mapped_column(Text)
    product_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("product.id"), index=True)
    warehouse_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("warehouse.id"))
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

# ── Purchases (restocking) ──────────────────────────────────────────────────
class Purchase(Base, IdMixin, TSMixin):
    __tablename__ = "purchase"
    purchase_number: Mapped[int] = mapped_column(Integer, unique=True)
    supplier_name: Mapped[str | None] = mapped_column(String(160))
    invoice_number: Mapped[str | None] = mapped_column(String(60))
    notes: Mapped[str | None] = mapped_column(Text)
    warehouse_id: Mapped[str] = mapped_column(String(36), ForeignKey("warehouse.id"))
    subtotal: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    tax: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), default="RECEIVED")
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))

class PurchaseItem(Base, IdMixin, TSMixin):
    __tablename__ = "purchase_item"
    purchase_id: Mapped[str] = mapped_column(String(36), ForeignKey("purchase.id"), index=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"))
    product_name: Mapped[str] = mapped_column(String(160))
    presentation_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("product_presentation.id"))
    presentation_name: Mapped[str | None] = mapped_column(String(80))
    quantity: Mapped[Decimal] = mapped_column(QTY)
    base_quantity: Mapped[Decimal] = mapped_column(QTY)
    unit_cost: Mapped[Decimal] = mapped_column(MONEY)  # per pack bought, or per base unit without one
    subtotal: Mapped[Decimal] = mapped_column(MONEY)

# ── Expenses & loans ────────────────────────────────────────────────────────
class ExpenseCategory(Base, IdMixin, TSMixin):
    __tablename__ = "expense_category"
    name: Mapped[str] = mapped_column(String(80))
    icon: Mapped[str | None] = mapped_column(String(40))
    color: Mapped[str | None] = mapped_column(String(20))
    business: Mapped[Business] = mapped_column(Enum(Business))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

class Expense(Base, IdMixin, TSMixin):
    __tablename__ = "expense"
    expense_date: Mapped[date] = mapped_column(Date)
    business: Mapped[Business] = mapped_column(Enum(Business))
    category: Mapped[str] = mapped_column(String(80))
    subcategory: Mapped[str | None] = mapped_column(String(80))
    supplier_name: Mapped[str | None] = mapped_column(String(160))
    description: Mapped[str | None] = mapped_column(Text)
    amount: Mapped[Decimal] = mapped_column(MONEY)
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), default=PaymentMethod.CASH)
    invoice_number: Mapped[str | None] = mapped_column(String(40), unique=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text)
    warehouse_id: Mapped[str] = mapped_column(String(36), ForeignKey("warehouse.id"))
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))

class Loan(Base, IdMixin, TSMixin):
    __tablename__ = "loan"
    type: Mapped[LoanType] = mapped_column(Enum(LoanType))
    borrower_name: Mapped[str] = mapped_column(String(160))
    borrower_phone: Mapped[str | None] = mapped_column(String(40))
    borrower_document: Mapped[str | None] = mapped_column(String(40))
    business: Mapped[Business] = mapped_column(Enum(Business), default=Business.DISTRIBUTOR)
    amount: Mapped[Decimal] = mapped_column(MONEY)
    interest_rate: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(MONEY)
    paid_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    balance: Mapped[Decimal] = mapped_column(MONEY)
    disbursement_date: Mapped[date] = mapped_column(Date)
    due_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[LoanStatus] = mapped_column(Enum(LoanStatus), default=LoanStatus.ACTIVE)
    notes: Mapped[str | None] = mapped_column(Text)
    warehouse_id: Mapped[str] = mapped_column(String(36), ForeignKey("warehouse.id"))
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))

class LoanPayment(Base, IdMixin, TSMixin):
    __tablename__ = "loan_payment"
    loan_id: Mapped[str] = mapped_column(String(36), ForeignKey("loan.id"), index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY)
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), default=PaymentMethod.CASH)
    notes: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))

# ── Audit ───────────────────────────────────────────────────────────────────
class AuditLog(Base, IdMixin, TSMixin):
    __tablename__ = "audit_log"
    actor_user_id: Mapped[str | None] = mapped_column(String(36))
    entity: Mapped[str] = mapped_column(String(60))
    entity_id: Mapped[str] = mapped_column(String(36))
    action: Mapped[str] = mapped_column(String(120))
    before: Mapped[str | None] = mapped_column(Text)
    after: Mapped[str | None] = mapped_column(Text)
