"""Enumeration types for the HivePay distribution engine."""

from enum import Enum


class Currency(str, Enum):
    """Transferable Hive assets."""

    HIVE = "HIVE"
    HBD = "HBD"


class PaymentStatus(str, Enum):
    """Lifecycle status of a single payment."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BatchStatus(str, Enum):
    """Lifecycle status of a payment batch."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentType(str, Enum):
    """Origin of a payment."""

    SINGLE_TRANSFER = "single_transfer"
    MULTIPLE_TRANSFERS = "multiple_transfers"
    CURATION_REWARD = "curation_reward"
    DELEGATION_REWARD = "delegation_reward"


class PercentageStrategy(str, Enum):
    """How realized reward maps to a return percentage."""

    BINARY = "binary"  # any reward -> base, none -> min
    GRADED = "graded"  # scales with reward against a reference


class EmptyPolicy(str, Enum):
    """What distribute() does when no HP survives filtering."""

    RETURN_EMPTY = "return_empty"
    RAISE = "raise"
