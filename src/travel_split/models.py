"""Pydantic domain models for TravelSplit."""

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Ledger Models
# ============================================================================


class Participant(BaseModel):
    """A person sharing the trip's expenses."""

    id: str
    name: str


class Expense(BaseModel):
    """An amount paid by one participant on behalf of some beneficiaries."""

    id: str
    payer: str  # participant id
    beneficiaries: list[str] = Field(default_factory=list)  # participant ids
    description: str
    currency: str
    amount: float


class Currency(BaseModel):
    """A currency offered for expenses and settlement."""

    code: str
    name: str


# ============================================================================
# Settlement Models
# ============================================================================


class PersonBalance(BaseModel):
    """Working balance of one participant during a settlement run.

    balance > 0 means the participant should receive money,
    balance < 0 means the participant should pay.
    """

    id: str
    name: str
    total_paid: float = 0.0
    total_owed: float = 0.0
    balance: float = 0.0


class SettlementResult(BaseModel):
    """A single transfer that settles part of the group's balances.

    Serialises with the keys ``from``, ``to``, ``fromName`` and ``toName``.
    """

    model_config = ConfigDict(populate_by_name=True)

    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")
    amount: float
    from_name: str = Field(alias="fromName")
    to_name: str = Field(alias="toName")
