from sqlalchemy import (
    Boolean,
    String,
    Text,
    DateTime,
    Numeric,
    CheckConstraint,
    UniqueConstraint,
    Index,
    text,
    ForeignKey,
    Integer
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, declarative_base
from typing import Optional, List
from datetime import datetime, timezone
from decimal import Decimal

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserProfile(Base):
    """
    Application profile for an authenticated principal.
    user_id is the opaque subject issued by the identity provider (Supabase).
    """
    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    username: Mapped[Optional[str]] = mapped_column(String(100), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))

    # Role-based access control: "user", "seller", "admin"
    role: Mapped[str] = mapped_column(String(50), default="user", nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class Category(Base):
    """
    Product categories managed by admins
    """
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(String(200))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    products: Mapped[List["Product"]] = relationship("Product", back_populates="category")


class Seller(Base):
    """
    Store profile owned by a user. Products can only be listed once an admin
    approves the store. rating is derived from approved reviews.
    """
    __tablename__ = "sellers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    # Store profile
    store_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500))
    contact_email: Mapped[str] = mapped_column(String(100), nullable=False)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(20))
    address: Mapped[Optional[str]] = mapped_column(String(200))

    # Business Status
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Rating System
    rating: Mapped[Decimal] = mapped_column(Numeric(3, 2), default=Decimal("0.00"), nullable=False)
    total_sales: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    products: Mapped[List["Product"]] = relationship("Product", back_populates="seller")
    reviews: Mapped[List["SellerReview"]] = relationship(
        "SellerReview",
        back_populates="seller",
        cascade="all, delete-orphan"
    )


class Product(Base):
    """
    Catalog entry. stock is the only contended column in the schema: it is
    decremented by order placement and set directly by stock updates.
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="stock_non_negative_check"),
        CheckConstraint("price > 0", name="price_positive_check"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500))
    price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(500))

    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False
    )
    seller_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("sellers.id", ondelete="SET NULL"),
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    category: Mapped["Category"] = relationship("Category", back_populates="products")
    seller: Mapped[Optional["Seller"]] = relationship("Seller", back_populates="products")


class Cart(Base):
    """
    One cart per user, created lazily on first access
    """
    __tablename__ = "carts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    items: Mapped[List["CartItem"]] = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id"
    )


class CartItem(Base):
    """
    Cart line. unit_price is captured when the product is first added and is
    not refreshed from the catalog afterwards.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="unique_cart_product"),
        CheckConstraint("quantity > 0", name="cart_quantity_positive_check"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cart_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("carts.id", ondelete="CASCADE"),
        nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    cart: Mapped["Cart"] = relationship("Cart", back_populates="items")
    product: Mapped["Product"] = relationship("Product")


class Order(Base):
    """
    Buyer order. total_amount is frozen at creation; status is derived from
    the item statuses and never set by the buyer.
    """
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="total_amount_non_negative_check"),
        Index("ix_orders_order_date", "order_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    order_date: Mapped[datetime] = mapped_column(DateTime(True), default=utcnow, nullable=False)

    # "Pending", "Processing", "Shipped", "Delivered", "Cancelled"
    status: Mapped[str] = mapped_column(String(20), default="Pending", nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    # Delivery and payment details
    shipping_address: Mapped[str] = mapped_column(Text, nullable=False)
    contact_phone: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    # "Pending", "Completed", "Failed"
    payment_status: Mapped[str] = mapped_column(String(20), default="Pending", nullable=False)

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id"
    )


class OrderItem(Base):
    """
    Per-seller order line. seller_id is copied from the product when the order
    is placed so each seller only ever sees its own lines.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="order_quantity_positive_check"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )
    seller_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("sellers.id", ondelete="SET NULL"),
        index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    # "Pending", "Accepted", "Rejected", "Shipped", "Delivered"
    status: Mapped[str] = mapped_column(String(20), default="Pending", nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")
    product: Mapped["Product"] = relationship("Product")
    seller: Mapped[Optional["Seller"]] = relationship("Seller")


class WishlistItem(Base):
    """
    Saved product for a user
    """
    __tablename__ = "wishlist_items"
    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="unique_wishlist_user_product"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    added_at: Mapped[datetime] = mapped_column(DateTime(True), default=utcnow, nullable=False)

    product: Mapped["Product"] = relationship("Product")


class SellerReview(Base):
    """
    Buyer review of a seller. Only approved reviews count towards the
    seller rating. One review per (seller, user) is checked by the API.
    """
    __tablename__ = "seller_reviews"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="rating_range_check"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    seller_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("sellers.id", ondelete="CASCADE"),
        nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    rating: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-5 stars
    comment: Mapped[Optional[str]] = mapped_column(Text)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    seller: Mapped["Seller"] = relationship("Seller", back_populates="reviews")
