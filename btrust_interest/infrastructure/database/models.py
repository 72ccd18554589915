"""SQLAlchemy ORM models for accounts, fixed deposits, ledger postings and interest history"""

from sqlalchemy import Column, String, Boolean, Date, DateTime, Integer, Numeric, ForeignKey, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

MONEY = Numeric(15, 2)
RATE = Numeric(5, 2)


class SavingPlan(Base):
    """Savings product (Children, Teen, Adult, Senior, Joint)"""

    __tablename__ = "savingplan"

    saving_plan_id = Column(Integer, primary_key=True, autoincrement=True)
    plan_type = Column(String(20), nullable=False, unique=True)
    interest = Column(RATE, nullable=False)  # annual %, e.g. 12.00
    min_balance = Column(MONEY, nullable=False, default=0)


class FDPlan(Base):
    """Fixed deposit product"""

    __tablename__ = "fdplan"

    fd_plan_id = Column(Integer, primary_key=True, autoincrement=True)
    fd_options = Column(String(20), nullable=False)  # "6 months" | "1 year" | "3 years"
    interest = Column(RATE, nullable=False)


class FixedDeposit(Base):
    __tablename__ = "fixeddeposit"

    fd_id = Column(Integer, primary_key=True, autoincrement=True)
    fd_balance = Column(MONEY, nullable=False)
    auto_renewal_status = Column(Boolean, nullable=False, default=False)
    fd_status = Column(String(20), nullable=False, default="Active")  # Active | Matured | Closed
    open_date = Column(Date, nullable=False)
    maturity_date = Column(Date, nullable=False)
    fd_plan_id = Column(Integer, ForeignKey("fdplan.fd_plan_id"), nullable=False)

    plan = relationship("FDPlan")


class Account(Base):
    """Savings account; fd_id links the account that receives FD interest and principal"""

    __tablename__ = "account"

    account_id = Column(Integer, primary_key=True, autoincrement=True)
    balance = Column(MONEY, nullable=False, default=0)
    account_status = Column(String(20), nullable=False, default="Active")  # Active | Closed
    open_date = Column(Date, nullable=False)
    saving_plan_id = Column(Integer, ForeignKey("savingplan.saving_plan_id"), nullable=True)
    fd_id = Column(Integer, ForeignKey("fixeddeposit.fd_id"), nullable=True)

    saving_plan = relationship("SavingPlan")
    fixed_deposit = relationship("FixedDeposit")


class Transaction(Base):
    """Ledger posting against an account"""

    __tablename__ = "transactions"

    transaction_id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_type = Column(String(20), nullable=False)  # Deposit | Withdrawal | Interest
    amount = Column(MONEY, nullable=False)
    description = Column(Text, nullable=True)
    account_id = Column(Integer, ForeignKey("account.account_id"), nullable=False, index=True)
    employee_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class FDInterestCalculation(Base):
    """Append-only outcome of one FD interest credit attempt"""

    __tablename__ = "fd_interest_calculations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    fd_id = Column(Integer, ForeignKey("fixeddeposit.fd_id"), nullable=False, index=True)
    calculation_date = Column(Date, nullable=False)
    interest_amount = Column(MONEY, nullable=False)
    days_in_period = Column(Integer, nullable=False)
    credited_to_account_id = Column(Integer, ForeignKey("account.account_id"), nullable=False)
    interest_rate = Column(RATE, nullable=True)
    status = Column(String(10), nullable=False)  # credited | failed
    credited_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SavingsInterestCalculation(Base):
    """Append-only outcome of one savings interest credit attempt"""

    __tablename__ = "savings_interest_calculations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("account.account_id"), nullable=False, index=True)
    calculation_date = Column(Date, nullable=False)
    interest_amount = Column(MONEY, nullable=False)
    interest_rate = Column(RATE, nullable=True)
    plan_type = Column(String(20), nullable=True)
    days_in_period = Column(Integer, nullable=False)
    status = Column(String(10), nullable=False)
    credited_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
